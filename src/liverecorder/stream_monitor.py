"""
Live status monitor for bilibili rooms.
Polls the room info API and tells the room controller when to connect.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, List, Optional, Protocol, Set

from .bilibili_api import RoomInfo
from .logger import get_room_logger


class TriggerType(Enum):
    """Why an acquisition attempt was started."""
    MANUAL = "manual"
    API_TRIGGERED = "api_triggered"
    API_RECHECK = "api_recheck"
    STATUS_CHANGED = "status_changed"


class StreamStatus(Enum):
    """Stream status states."""
    UNKNOWN = "unknown"
    OFFLINE = "offline"
    LIVE = "live"


@dataclass
class MonitorEvent:
    """Room is live; carries the reason it was detected."""
    roomid: int
    trigger: TriggerType


StatusChangedHandler = Callable[[MonitorEvent], None]
RoomInfoFetcher = Callable[[int], Awaitable[Optional[RoomInfo]]]


class LiveStatusMonitor(Protocol):
    """What a room controller needs from a live status monitor."""

    roomid: int

    @property
    def is_running(self) -> bool:
        ...

    def start(self) -> bool:
        ...

    def stop(self) -> None:
        ...

    def check(self, trigger: TriggerType) -> None:
        ...

    def check_after_delay(self, seconds: float) -> None:
        ...

    def subscribe(self, handler: StatusChangedHandler) -> None:
        ...


class StreamMonitor:
    """
    Monitors one bilibili room using the room info API.

    Features:
    - Periodic polling, emitting STATUS_CHANGED when the room goes live and
      API_TRIGGERED on every later poll that still sees it live
    - On-demand checks with an explicit trigger
    - Delayed rechecks (API_RECHECK) used as retry backoff by the room
    """

    def __init__(
        self,
        roomid: int,
        fetch_room_info: RoomInfoFetcher,
        check_interval: int = 60
    ):
        """
        Initialize stream monitor.

        Args:
            roomid: Real room id to watch.
            fetch_room_info: Coroutine function returning RoomInfo for a room id.
            check_interval: Seconds between polls.
        """
        self._roomid = roomid
        self.check_interval = check_interval
        self._fetch_room_info = fetch_room_info

        self._logger = get_room_logger(roomid)
        self._handlers: List[StatusChangedHandler] = []
        self._status = StreamStatus.UNKNOWN
        self._poll_task: Optional[asyncio.Task] = None
        # One-off checks and delayed rechecks
        self._pending: Set[asyncio.Task] = set()

    @property
    def roomid(self) -> int:
        return self._roomid

    @roomid.setter
    def roomid(self, value: int) -> None:
        self._roomid = value
        self._logger.set_room(value)

    @property
    def is_running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def status(self) -> StreamStatus:
        return self._status

    def subscribe(self, handler: StatusChangedHandler) -> None:
        """Register a handler for 'room is live' events."""
        self._handlers.append(handler)

    def start(self) -> bool:
        """
        Start polling.

        Returns:
            True if polling is running, False if there is no event loop to run on.
        """
        if self.is_running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.error("Cannot start monitor outside of a running event loop")
            return False

        self._poll_task = loop.create_task(self._poll_loop())
        self._logger.info(f"Monitoring started (every {self.check_interval}s)")
        return True

    def stop(self) -> None:
        """Stop polling and drop pending rechecks."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
            self._logger.info("Monitoring stopped")
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._status = StreamStatus.UNKNOWN

    def check(self, trigger: TriggerType) -> None:
        """Check live status now; emit ``trigger`` if the room is live."""
        self._spawn(self._check(trigger))

    def check_after_delay(self, seconds: float) -> None:
        """
        Check live status after ``seconds``; emits API_RECHECK if live.

        Ignored while polling is stopped, so a stopped room is not restarted.
        """
        if not self.is_running:
            self._logger.debug("Monitor stopped, recheck dropped")
            return
        self._logger.debug(f"Recheck scheduled in {seconds}s")
        self._spawn(self._delayed_check(seconds))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self._logger.error("Cannot check live status outside of a running event loop")
            return
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _delayed_check(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        await self._check(TriggerType.API_RECHECK)

    async def _fetch_status(self) -> Optional[StreamStatus]:
        info = await self._fetch_room_info(self.roomid)
        if info is None:
            return None
        return StreamStatus.LIVE if info.is_streaming else StreamStatus.OFFLINE

    async def _check(self, trigger: TriggerType) -> None:
        try:
            status = await self._fetch_status()
        except Exception as e:
            self._logger.error(f"Live status check failed: {e}")
            return
        if status is None:
            return

        self._status = status
        if status == StreamStatus.LIVE:
            self._emit(trigger)
        else:
            self._logger.debug(f"Room is offline ({trigger.value} check)")

    async def _poll_loop(self) -> None:
        while True:
            try:
                status = await self._fetch_status()
                if status is not None:
                    old_status = self._status
                    self._status = status
                    if status == StreamStatus.LIVE and old_status != StreamStatus.LIVE:
                        self._logger.info("🔴 Stream started!")
                        self._emit(TriggerType.STATUS_CHANGED)
                    elif status == StreamStatus.LIVE:
                        # Still live: the room drops this while it is recording
                        self._emit(TriggerType.API_TRIGGERED)
                    elif status == StreamStatus.OFFLINE and old_status == StreamStatus.LIVE:
                        self._logger.info("⚫ Stream ended")
            except Exception as e:
                self._logger.error(f"Monitor error: {e}")

            await asyncio.sleep(self.check_interval)

    def _emit(self, trigger: TriggerType) -> None:
        event = MonitorEvent(roomid=self.roomid, trigger=trigger)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception as e:
                self._logger.error(f"Status handler failed: {e}", exc_info=True)
