class UsageError(Exception):
    """Base class for errors raised out of the usage engine."""


class UsageAborted(UsageError):
    """A usage pass was cancelled before it finished.

    Expected outcome, not a failure: the caller asked for it (or superseded
    the pass with a newer one). Nothing is persisted by an aborted pass.
    """

    def __init__(self, message: str = "Aborted"):
        super().__init__(message)


class CancelToken:
    """Cooperative cancellation flag checked between units of work."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self):
        if self._cancelled:
            raise UsageAborted()
