"""
Recorded room: per-room controller of the live stream download.

Turns "room is live" events from the monitor into a single download attempt at
a time: resolve the stream URL, open the HTTP stream, pump it into a processor
and clean up, then ask the monitor to check again if the stream may resume.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

import aiohttp

from .acquisition import (
    READ_CHUNK_SIZE,
    AcquisitionAttempt,
    AcquisitionState,
    AttemptOutcome,
    should_recheck,
)
from .bilibili_api import LIVE_SITE_URL, BilibiliAPI, RoomInfo
from .config import RecordingConfig
from .logger import get_room_logger
from .observable import Observable
from .processor import FileDumpProcessor, ProcessorFactory, StreamProcessor
from .record_info import RecordInfo
from .session import SessionResources
from .speed import SpeedSampler
from .stream_monitor import (
    LiveStatusMonitor,
    MonitorEvent,
    RoomInfoFetcher,
    StreamMonitor,
    TriggerType,
)


PlayUrlResolver = Callable[[int], Awaitable[Optional[str]]]

# No total limit: a live stream is read for hours
STREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=60)


class RecordedRoom(Observable):
    """
    Public controller for one live room.

    Observable properties (names passed to subscribers): roomid, real_roomid,
    streamer_name, is_monitoring, is_recording, download_speed_kibps,
    processor, state.
    """

    def __init__(
        self,
        settings: RecordingConfig,
        room_info: RoomInfo,
        monitor: LiveStatusMonitor,
        play_url_resolver: PlayUrlResolver,
        session: aiohttp.ClientSession,
        processor_factory: ProcessorFactory = FileDumpProcessor,
        room_info_resolver: Optional[RoomInfoFetcher] = None,
        record_info: Optional[RecordInfo] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize a room controller.

        Args:
            settings: Recording settings (feature set, clip lengths, retry delay, UA).
            room_info: Resolved room identity.
            monitor: Live status monitor for this room.
            play_url_resolver: Coroutine function returning a stream URL for a real room id.
            session: HTTP session used to download the stream.
            processor_factory: Creates a fresh processor for every attempt.
            room_info_resolver: Used by refresh_room_info().
            record_info: Output path naming; built from settings if omitted.
            clock: Monotonic clock for speed sampling.
        """
        super().__init__()
        self.settings = settings
        self.monitor = monitor

        self._roomid = room_info.roomid
        self._real_roomid = room_info.real_roomid
        self._streamer_name = room_info.streamer_name
        self._is_monitoring = False
        self._is_recording = False
        self._download_speed_kibps = 0.0
        self._processor: Optional[StreamProcessor] = None
        self._state = AcquisitionState.IDLE

        self.record_info = record_info or RecordInfo(
            settings.output_dir, room_info.roomid, room_info.streamer_name
        )

        self._get_play_url = play_url_resolver
        self._resolve_room_info = room_info_resolver
        self._session = session
        self._processor_factory = processor_factory
        self._sampler = SpeedSampler(clock)
        self._attempt: Optional[AcquisitionAttempt] = None
        self._logger = get_room_logger(room_info.real_roomid, room_info.streamer_name)

        self.monitor.subscribe(self.on_stream_status_changed)

    @classmethod
    async def create(
        cls,
        roomid: int,
        api: BilibiliAPI,
        settings: RecordingConfig,
        check_interval: int = 60,
        processor_factory: ProcessorFactory = FileDumpProcessor
    ) -> 'RecordedRoom':
        """
        Resolve a room through the API and build its controller and monitor.

        Raises:
            ValueError: If the room can't be resolved.
        """
        info = await api.get_room_info(roomid)
        if info is None:
            raise ValueError(f"Could not resolve room {roomid}")

        monitor = StreamMonitor(
            roomid=info.real_roomid,
            fetch_room_info=api.get_room_info,
            check_interval=check_interval
        )
        return cls(
            settings=settings,
            room_info=info,
            monitor=monitor,
            play_url_resolver=api.get_play_url,
            session=api.session,
            processor_factory=processor_factory,
            room_info_resolver=api.get_room_info
        )

    # Observable state

    @property
    def roomid(self) -> int:
        return self._roomid

    @property
    def real_roomid(self) -> int:
        return self._real_roomid

    @property
    def streamer_name(self) -> str:
        return self._streamer_name

    @property
    def is_monitoring(self) -> bool:
        return self._is_monitoring

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def download_speed_kibps(self) -> float:
        return self._download_speed_kibps

    @property
    def processor(self) -> Optional[StreamProcessor]:
        return self._processor

    @property
    def state(self) -> AcquisitionState:
        return self._state

    @property
    def current_attempt(self) -> Optional[AcquisitionAttempt]:
        return self._attempt

    # Public operations

    def start(self) -> bool:
        """Start monitoring the room."""
        result = self.monitor.start()
        self._set_property('is_monitoring', self.monitor.is_running)
        return result

    def stop(self) -> None:
        """Stop monitoring the room. A running download is left alone."""
        self.monitor.stop()
        self._set_property('is_monitoring', self.monitor.is_running)

    def start_record(self) -> None:
        """Ask the monitor for an immediate live check."""
        try:
            self.monitor.check(TriggerType.MANUAL)
        except Exception as e:
            self._logger.error(f"Manual live check failed: {e}")

    async def stop_record(self) -> None:
        """Cancel the running download and wait until its resources are released."""
        attempt = self._attempt
        if attempt is None or attempt.done:
            return
        self._logger.info("Stopping recording...")
        attempt.cancel()
        await attempt.wait()

    def clip(self) -> None:
        """Forward a clip request to the current processor, if any."""
        processor = self._processor
        if processor is None:
            return
        try:
            processor.clip()
        except Exception as e:
            self._logger.warning(f"Clip request failed: {e}", exc_info=True)

    async def shutdown(self) -> None:
        """Stop monitoring, then stop recording."""
        self.stop()
        await self.stop_record()

    async def refresh_room_info(self) -> bool:
        """
        Re-resolve the room's real id and streamer name.

        Returns:
            True if fresh info was applied.
        """
        if self._resolve_room_info is None:
            return False
        info = await self._resolve_room_info(self._roomid)
        if info is None:
            self._logger.warning("Room info refresh failed")
            return False

        self._set_property('real_roomid', info.real_roomid)
        self.monitor.roomid = info.real_roomid
        if self._set_property('streamer_name', info.streamer_name):
            self.record_info.streamer_name = info.streamer_name
        self._logger.set_room(self._real_roomid, self._streamer_name)
        return True

    def on_stream_status_changed(self, event: MonitorEvent) -> None:
        """Monitor callback: start an attempt unless one is already running."""
        if self._attempt is not None and not self._attempt.done:
            self._logger.debug(f"Already recording, ignoring {event.trigger.value} trigger")
            return

        resources = SessionResources(
            self._sampler, self._logger, on_released=self._on_resources_released
        )
        attempt = AcquisitionAttempt(event.trigger, resources)
        attempt.task = asyncio.get_running_loop().create_task(self._run_attempt(attempt))
        self._attempt = attempt

    # State machine

    async def _run_attempt(self, attempt: AcquisitionAttempt) -> None:
        # Stays CANCELLED only if the task is cancelled from outside the room
        outcome = AttemptOutcome.CANCELLED
        self._sampler.reset()
        try:
            connected = await self._connect(attempt)
            outcome = connected if connected is not None else await self._stream(attempt)
        finally:
            attempt.outcome = outcome
            self._set_property('state', AcquisitionState.DRAINING)
            attempt.resources.release()
            if should_recheck(attempt.trigger, outcome):
                self._set_property('state', AcquisitionState.RETRYING)
                self._request_recheck()
            self._set_property('state', AcquisitionState.IDLE)

    async def _connect(self, attempt: AcquisitionAttempt) -> Optional[AttemptOutcome]:
        """Open the stream. Returns None when streaming can start, else the outcome."""
        self._set_property('state', AcquisitionState.CONNECTING)
        resources = attempt.resources
        retry_note = "" if attempt.trigger == TriggerType.API_RECHECK else \
            f" Retrying in {self.settings.retry_delay}s."

        try:
            url = await self._get_play_url(self._real_roomid)
            if not url:
                self._logger.warning(f"No playable stream URL.{retry_note}")
                return AttemptOutcome.FAILED

            resources.request = self._session.get(
                url,
                headers=self._stream_headers(),
                allow_redirects=True,
                timeout=STREAM_TIMEOUT
            )
            resources.response = response = await resources.request

            if response.status != 200:
                if response.status == 404:
                    self._logger.info(f"Stream not found (404).{retry_note}")
                    return AttemptOutcome.NOT_FOUND
                self._logger.info(
                    f"Server returned ({response.status}) {response.reason} for the stream.{retry_note}"
                )
                return AttemptOutcome.REJECTED

            # A recheck that got through is an ordinary session from now on
            if attempt.trigger == TriggerType.API_RECHECK:
                attempt.trigger = TriggerType.API_TRIGGERED

            processor = self._processor_factory().initialize(
                self.record_info.get_stream_file_path,
                self.record_info.get_clip_file_path,
                self.settings.feature
            )
            resources.processor = processor
            processor.set_clip_future_length(self.settings.clip_future)
            processor.set_clip_past_length(self.settings.clip_past)
            resources.stream = response.content

        except asyncio.CancelledError:
            if not attempt.cancel_requested:
                raise
            self._logger.info("Connect cancelled by user")
            return AttemptOutcome.CANCELLED
        except Exception as e:
            self._logger.warning(f"Failed to start stream download: {e}.{retry_note}")
            return AttemptOutcome.FAILED

        self._set_property('processor', processor)
        self._set_property('is_recording', True)
        self._logger.info(f"🔴 Recording started ({attempt.trigger.value})")
        return None

    async def _stream(self, attempt: AcquisitionAttempt) -> AttemptOutcome:
        self._set_property('state', AcquisitionState.STREAMING)
        stream = attempt.resources.stream
        processor = attempt.resources.processor

        while not attempt.cancel_requested:
            try:
                chunk = await stream.read(READ_CHUNK_SIZE)
            except asyncio.CancelledError:
                if not attempt.cancel_requested:
                    raise
                chunk = b""
            except Exception as e:
                self._logger.warning(f"Stream read failed: {e}")
                return AttemptOutcome.ENDED

            self._record_speed(len(chunk))

            if not chunk:
                break

            try:
                processor.add_bytes(chunk)
            except Exception as e:
                self._logger.warning(f"Processor rejected data: {e}", exc_info=True)
                return AttemptOutcome.ENDED

        if attempt.cancel_requested:
            self._logger.info("Recording stopped by user")
            return AttemptOutcome.CANCELLED

        retry_note = "" if attempt.trigger == TriggerType.API_RECHECK else \
            f" Retrying in {self.settings.retry_delay}s."
        self._logger.info(f"⚫ Stream ended, recording stopped.{retry_note}")
        return AttemptOutcome.ENDED

    # Helpers

    def _stream_headers(self) -> dict:
        return {
            'Accept': '*/*',
            'Referer': LIVE_SITE_URL,
            'Origin': LIVE_SITE_URL,
            'User-Agent': self.settings.user_agent,
        }

    def _record_speed(self, bytes_read: int) -> None:
        rate = self._sampler.record(bytes_read)
        if rate is not None:
            self._set_property('download_speed_kibps', rate / 1024)

    def _request_recheck(self) -> None:
        try:
            self.monitor.check_after_delay(self.settings.retry_delay)
        except Exception as e:
            self._logger.error(f"Failed to schedule recheck: {e}")

    def _on_resources_released(self) -> None:
        self._set_property('processor', None)
        self._set_property('download_speed_kibps', 0.0)
        self._set_property('is_recording', False)

    def __repr__(self) -> str:
        return f"<RecordedRoom {self._roomid} ({self._streamer_name})>"
