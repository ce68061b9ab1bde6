"""
Acquisition attempt state for the live stream download state machine.
"""

import asyncio
from enum import Enum
from typing import Optional

from .session import SessionResources
from .stream_monitor import TriggerType


READ_CHUNK_SIZE = 8 * 1024


class AcquisitionState(Enum):
    """Where a room's download currently is."""
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DRAINING = "draining"      # Releasing resources
    RETRYING = "retrying"      # Scheduling a delayed recheck


class AttemptOutcome(Enum):
    """How an attempt ended."""
    REJECTED = "rejected"      # Non-200 response
    NOT_FOUND = "not_found"    # 404 response
    FAILED = "failed"          # Exception or no URL before a stream was obtained
    ENDED = "ended"            # Zero-byte read or read error while streaming
    CANCELLED = "cancelled"    # stop_record()


def should_recheck(trigger: TriggerType, outcome: AttemptOutcome) -> bool:
    """
    Decide whether an ended attempt schedules a delayed recheck.

    Attempts started by a recheck never reschedule themselves, which keeps a
    failing recheck from looping. A user stop never reschedules either.
    """
    if outcome == AttemptOutcome.CANCELLED:
        return False
    return trigger != TriggerType.API_RECHECK


class AcquisitionAttempt:
    """
    One connect-through-cleanup cycle.

    Owns its resources and its cancellation handle; the task running it is
    attached right after creation and is what ``stop_record()`` joins.
    """

    def __init__(self, trigger: TriggerType, resources: SessionResources):
        self.trigger = trigger
        self.resources = resources
        self.task: Optional[asyncio.Task] = None
        self.outcome: Optional[AttemptOutcome] = None
        self._cancel_requested = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def done(self) -> bool:
        return self.task is None or self.task.done()

    def cancel(self) -> None:
        """Request cooperative cancellation; the pending read unwinds."""
        self._cancel_requested = True
        if self.task is not None and not self.task.done():
            self.task.cancel()

    async def wait(self) -> None:
        """Wait for the attempt's task to finish, whatever its result."""
        if self.task is None:
            return
        await asyncio.wait({self.task})
