"""
Shared fakes for room controller tests: clock, HTTP session/response/stream,
processor and live status monitor. No network access is needed.
"""

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, List, Optional

import pytest

from liverecorder.bilibili_api import RoomInfo
from liverecorder.config import RecordingConfig
from liverecorder.room import RecordedRoom
from liverecorder.stream_monitor import MonitorEvent, TriggerType


STREAM_URL = "http://stream.test/live-21452505.flv"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStream:
    """
    Byte stream returning queued chunks, then EOF.

    With ``hold_open`` the stream blocks after the queued chunks instead of
    returning EOF, like a live stream that is still running.
    """

    def __init__(self, chunks=(), clock: Optional[FakeClock] = None, step: float = 0.0,
                 hold_open: bool = False, error: Optional[Exception] = None):
        self._chunks = deque(chunks)
        self._clock = clock
        self._step = step
        self._hold_open = hold_open
        self._error = error
        self.read_sizes: List[int] = []
        self.closed = False

    async def read(self, n: int) -> bytes:
        self.read_sizes.append(n)
        await asyncio.sleep(0)
        if self._clock is not None:
            self._clock.advance(self._step)
        if self._chunks:
            return self._chunks.popleft()
        if self._error is not None:
            raise self._error
        if self._hold_open:
            await asyncio.Event().wait()
        return b""

    def close(self) -> None:
        self.closed = True


class FakeResponse:
    def __init__(self, status: int = 200, content: Optional[FakeStream] = None, reason: str = "OK"):
        self.status = status
        self.reason = reason
        self.content = content if content is not None else FakeStream()
        self.closed = False

    def close(self) -> None:
        self.closed = True


class Hang:
    """Session item that never answers, for cancelling during connect."""


class FakeSession:
    """Stands in for aiohttp.ClientSession; answers get() from a queue."""

    def __init__(self, *responses: Any):
        self._responses = list(responses)
        self.calls: List[tuple] = []

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        return self._respond()

    async def _respond(self):
        await asyncio.sleep(0)
        item = self._responses.pop(0)
        if isinstance(item, Hang):
            await asyncio.Event().wait()
        if isinstance(item, BaseException):
            raise item
        return item


class FakeProcessor:
    def __init__(self, fail_finalize: bool = False, fail_clip: bool = False):
        self.fail_finalize = fail_finalize
        self.fail_clip = fail_clip
        self.init_args: Optional[tuple] = None
        self.chunks: List[bytes] = []
        self.clip_future: Optional[int] = None
        self.clip_past: Optional[int] = None
        self.clips = 0
        self.finalized = False
        self.disposed = False

    def initialize(self, stream_path_fn, clip_path_fn, feature):
        self.init_args = (stream_path_fn, clip_path_fn, feature)
        return self

    def set_clip_future_length(self, seconds):
        self.clip_future = seconds

    def set_clip_past_length(self, seconds):
        self.clip_past = seconds

    def add_bytes(self, chunk):
        self.chunks.append(bytes(chunk))

    def clip(self):
        if self.fail_clip:
            raise RuntimeError("clip failed")
        self.clips += 1

    def finalize_file(self):
        if self.fail_finalize:
            raise IOError("disk full")
        self.finalized = True

    def dispose(self):
        self.disposed = True


class FakeMonitor:
    """Records calls made by the room and lets tests emit live events."""

    def __init__(self, roomid: int = 21452505):
        self.roomid = roomid
        self.is_running = False
        self.checks: List[TriggerType] = []
        self.rechecks: List[float] = []
        self.calls: List[str] = []
        self._handlers = []

    def start(self) -> bool:
        self.calls.append("start")
        self.is_running = True
        return True

    def stop(self) -> None:
        self.calls.append("stop")
        self.is_running = False

    def check(self, trigger: TriggerType) -> None:
        self.checks.append(trigger)

    def check_after_delay(self, seconds: float) -> None:
        self.rechecks.append(seconds)

    def subscribe(self, handler) -> None:
        self._handlers.append(handler)

    def emit(self, trigger: TriggerType) -> None:
        for handler in self._handlers:
            handler(MonitorEvent(roomid=self.roomid, trigger=trigger))


@dataclass
class RoomHarness:
    room: RecordedRoom
    monitor: FakeMonitor
    session: FakeSession
    processors: List[FakeProcessor] = field(default_factory=list)
    changes: List[tuple] = field(default_factory=list)

    async def trigger(self, trigger: TriggerType = TriggerType.STATUS_CHANGED) -> None:
        """Emit a live event and wait until the resulting attempt is over."""
        self.monitor.emit(trigger)
        await self.room.current_attempt.wait()

    def values(self, name: str) -> list:
        return [value for changed, value in self.changes if changed == name]


@pytest.fixture
def make_room(tmp_path):
    def _make(session: FakeSession, clock: Optional[FakeClock] = None,
              play_url: Optional[str] = STREAM_URL, processor_kwargs: Optional[dict] = None,
              room_info_resolver=None) -> RoomHarness:
        monitor = FakeMonitor()
        processors: List[FakeProcessor] = []

        def factory():
            processor = FakeProcessor(**(processor_kwargs or {}))
            processors.append(processor)
            return processor

        async def resolve_url(real_roomid):
            return play_url

        room = RecordedRoom(
            settings=RecordingConfig(output_dir=str(tmp_path)),
            room_info=RoomInfo(roomid=1, real_roomid=21452505, streamer_name="Streamer"),
            monitor=monitor,
            play_url_resolver=resolve_url,
            session=session,
            processor_factory=factory,
            room_info_resolver=room_info_resolver,
            clock=clock or FakeClock()
        )
        harness = RoomHarness(room=room, monitor=monitor, session=session, processors=processors)
        room.subscribe(lambda name: harness.changes.append((name, getattr(room, name))))
        return harness

    return _make
