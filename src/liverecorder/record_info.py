"""
Output file naming for a recorded room.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Callable


def sanitize_name(name: str) -> str:
    """Strip characters that are not allowed in file names."""
    safe = re.sub(r'[<>:"/\\|?*\n\r\t]', '', name)
    return safe[:80].strip() or "unknown"


class RecordInfo:
    """
    Builds stream and clip file paths for one room.

    Files go to ``<output_dir>/<roomid>-<streamer>/`` and carry the current time
    so that every segment gets a unique name.
    """

    def __init__(
        self,
        output_dir: str,
        roomid: int,
        streamer_name: str,
        now: Callable[[], datetime] = datetime.now
    ):
        self.output_dir = Path(output_dir)
        self.roomid = roomid
        self.streamer_name = streamer_name
        self._now = now

    @property
    def room_dir(self) -> Path:
        return self.output_dir / f"{self.roomid}-{sanitize_name(self.streamer_name)}"

    def _file_path(self, kind: str) -> str:
        date_str = self._now().strftime('%Y%m%d-%H%M%S')
        return str(self.room_dir / f"{kind}-{self.roomid}-{date_str}.flv")

    def get_stream_file_path(self) -> str:
        return self._file_path("record")

    def get_clip_file_path(self) -> str:
        return self._file_path("clip")
