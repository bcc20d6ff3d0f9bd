import asyncio
import logging

from redcron import EngineConfig, ErrorEvent, JobContext, RedCron, RedisStore


def on_error(event: ErrorEvent) -> None:
    print(f"[{event.job_name}] {event.operation} failed: {event.error}")


async def main():
    # start several copies of this script: each heartbeat is printed by one of them only
    store = RedisStore.from_url("redis://localhost:6379/0")
    cron = RedCron(store, EngineConfig(on_error=on_error))

    @cron.job("heartbeat", repeat_sec=10)
    async def heartbeat(ctx: JobContext) -> None:
        print(f"heartbeat for {ctx.scheduled_at.isoformat()} from {cron.owner_id}")
        await ctx.sleep(2)

    @cron.job("report", repeat_sec=60, offset_sec=30)
    def report(ctx: JobContext) -> None:
        print(f"report for {ctx.scheduled_at.isoformat()}")

    try:
        await asyncio.sleep(120)
    finally:
        await cron.stop(timeout=10)
        await store.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
