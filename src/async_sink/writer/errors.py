"""
Exceptions raised by the async sink writer.

Per-entry rejections from a destination are never raised; they are requeued.
Everything here is either a construction problem or fatal to the writer.
"""


class AsyncSinkError(Exception):
    """Base error for the async sink writer."""

    pass


class WriterConfigError(AsyncSinkError, ValueError):
    """Invalid buffering limits supplied at construction."""

    pass


class WriterClosedError(AsyncSinkError):
    """Operation attempted on a writer that has been closed."""

    pass


class DestinationError(AsyncSinkError):
    """The destination call itself failed (not a partial, per-entry failure).

    The writer cannot tell which entries of the batch were persisted, so the
    error is fatal and the enclosing pipeline is expected to restart from its
    last checkpoint. The original exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, batch_id: int | None = None):
        super().__init__(message)
        self.batch_id = batch_id


class InFlightTimeoutError(DestinationError):
    """A dispatched batch did not complete within ``request_timeout_sec``."""

    pass
