"""
Logging module for Live Recorder.

Everything logs under the ``live_recorder`` namespace. Room-scoped messages go
through a RoomLoggerAdapter, which tags each record with the room's real id
and streamer name; both the console and the rotating log file show that tag.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


ROOT_LOGGER_NAME = 'live_recorder'
NO_ROOM = '-'

RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[92m",
    logging.WARNING: "\033[93m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[95m",
}
ROOM_COLOR = "\033[96m"


def format_room(roomid: int, streamer_name: Optional[str] = None) -> str:
    """Short room tag, e.g. ``21452505 Streamer``."""
    if streamer_name:
        return f"{roomid} {streamer_name}"
    return str(roomid)


class RoomLabelFilter(logging.Filter):
    """Gives records logged outside any room the placeholder tag."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'room_label'):
            record.room_label = NO_ROOM
        return True


class ConsoleFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL [room] message``, colored when writing to a terminal."""

    def __init__(self, use_color: bool = True):
        super().__init__(datefmt='%H:%M:%S')
        self.use_color = use_color

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{RESET}" if self.use_color else text

    def format(self, record: logging.LogRecord) -> str:
        level = self._paint(f"{record.levelname:8}", LEVEL_COLORS.get(record.levelno, RESET))
        label = getattr(record, 'room_label', NO_ROOM)
        room = f"{self._paint(f'[{label}]', ROOM_COLOR)} " if label != NO_ROOM else ""

        line = f"{self.formatTime(record, self.datefmt)} {level} {room}{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(room_label)-20s | %(message)s'
FILE_DATEFMT = '%Y-%m-%d %H:%M:%S'


class RoomLoggerAdapter(logging.LoggerAdapter):
    """
    Adds ``room`` (real room id) and ``room_label`` to every record.

    The tag can be changed in place with ``set_room`` when the room is
    re-resolved, so holders of the adapter keep logging under the new id.
    """

    def __init__(self, logger: logging.Logger, roomid: int, streamer_name: Optional[str] = None):
        super().__init__(logger, {})
        self.set_room(roomid, streamer_name)

    def set_room(self, roomid: int, streamer_name: Optional[str] = None) -> None:
        self.extra = {'room': roomid, 'room_label': format_room(roomid, streamer_name)}

    def process(self, msg, kwargs):
        kwargs.setdefault('extra', {}).update(self.extra)
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_size_mb: int = 10,
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the ``live_recorder`` logger.

    Args:
        level: Logging level name.
        log_file: Rotating log file path; console only if None.
        max_size_mb: Size at which the log file rotates.
        backup_count: Rotated files to keep.

    Returns:
        The configured root application logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter(use_color=sys.stdout.isatty()))
    console_handler.addFilter(RoomLabelFilter())
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
        file_handler.addFilter(RoomLabelFilter())
        logger.addHandler(file_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Application logger, or its ``name`` child."""
    if name:
        return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
    return logging.getLogger(ROOT_LOGGER_NAME)


def get_room_logger(roomid: int, streamer_name: Optional[str] = None) -> RoomLoggerAdapter:
    """Logger adapter tagging messages with one live room."""
    return RoomLoggerAdapter(get_logger('room'), roomid, streamer_name)
