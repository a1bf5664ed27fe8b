"""
Set Writer Interface (Port).

The remote-write seam of the set queue: one call writes one full set payload
to the remote store. Any transport (PostgREST, RPC, HTTP) can implement it.
"""
from typing import Protocol

from domain.models import QueuedOperation, WriteResult


class SetWriter(Protocol):
    """
    Callable that writes one queued operation to the remote store.

    Implementations should report failures through WriteResult rather than
    raising. The queue still converts anything raised into a retryable
    failure.
    """

    async def __call__(self, operation: QueuedOperation) -> WriteResult:
        """
        Write operation.payload for operation.set_id.

        Args:
            operation: Operation to send

        Returns:
            WriteResult.ok() on success, otherwise a failure flagged as
            retryable or not.
        """
        ...
