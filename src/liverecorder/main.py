"""
Live Recorder - Main Orchestrator.

Coordinates all modules for the recording workflow:
1. Resolve configured bilibili rooms
2. Monitor each room for going live
3. Download live streams into per-room files
4. Shut everything down cleanly on SIGINT/SIGTERM
"""

import asyncio
import signal
from typing import Dict

from .bilibili_api import BilibiliAPI
from .config import Config, load_config
from .logger import get_logger, setup_logging
from .room import RecordedRoom


class LiveRecorderApp:
    """
    Main application owning the API client and all recorded rooms.
    """

    def __init__(self, config: Config):
        """Initialize application with configuration."""
        self.config = config
        self._logger = get_logger('app')

        self.api = BilibiliAPI(
            user_agent=config.recording.user_agent,
            request_timeout=config.bilibili.request_timeout
        )
        self.rooms: Dict[int, RecordedRoom] = {}

    async def start(self) -> None:
        """Start the application and run until a shutdown signal arrives."""
        self._logger.info("Starting Live Recorder...")

        if not await self.api.connect():
            raise RuntimeError("Failed to create bilibili API session")

        try:
            await self._add_rooms()
            if not self.rooms:
                self._logger.error("No rooms could be resolved, nothing to record")
                return

            loop = asyncio.get_running_loop()
            stop_event = asyncio.Event()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop_event.set)

            await stop_event.wait()
            self._logger.info("Shutdown signal received...")
        finally:
            await self._cleanup()

    async def _add_rooms(self) -> None:
        for roomid in self.config.rooms:
            try:
                room = await RecordedRoom.create(
                    roomid,
                    self.api,
                    self.config.recording,
                    check_interval=self.config.bilibili.check_interval
                )
            except ValueError as e:
                self._logger.error(f"Skipping room {roomid}: {e}")
                continue

            self.rooms[roomid] = room
            if room.start():
                self._logger.info(f"Monitoring room {roomid} ({room.streamer_name})")
            else:
                self._logger.error(f"Failed to start monitoring room {roomid}")

    async def _cleanup(self) -> None:
        """Shut down every room, then close the API session."""
        if self.rooms:
            await asyncio.gather(
                *(room.shutdown() for room in self.rooms.values()),
                return_exceptions=True
            )
        await self.api.disconnect()
        self._logger.info("Live Recorder stopped")


async def main(config_path: str = "config.yaml"):
    """Main entry point."""
    try:
        config = load_config(config_path)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        print("Please create config.yaml from config.example.yaml")
        return
    except Exception as e:
        print(f"Configuration error: {e}")
        return

    setup_logging(
        level=config.logging.level,
        log_file=config.logging.file,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count
    )

    app = LiveRecorderApp(config)

    try:
        await app.start()
    except KeyboardInterrupt:
        pass
    except Exception as e:
        get_logger('app').error(f"Fatal error: {e}")
        raise


def cli() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == '__main__':
    cli()
