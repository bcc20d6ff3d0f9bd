class RedCronError(Exception):
    """
    Base class for all errors raised or reported by redcron.
    """


class StoreError(RedCronError):
    """
    A store operation did not complete successfully.
    """


class StoreTimeoutError(StoreError):
    """
    A store operation did not answer within the configured operation timeout.
    """


class OwnershipLostError(RedCronError):
    """
    The current-owner record disappeared while a job was still running.
    """


class EngineStoppedError(RedCronError, RuntimeError):
    """
    The engine is stopping or stopped and cannot accept new jobs.
    """
