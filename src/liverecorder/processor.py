"""
Stream processor interface and the default pass-through implementation.

A processor receives the raw live stream bytes and turns them into files on
disk. The room controller only ever talks to it through StreamProcessor.
"""

from pathlib import Path
from typing import BinaryIO, Callable, Optional, Protocol

from .config import Feature
from .logger import get_logger


PathProvider = Callable[[], str]


class StreamProcessor(Protocol):
    """Sink for one acquisition attempt's byte stream."""

    def initialize(
        self,
        stream_path_fn: PathProvider,
        clip_path_fn: PathProvider,
        feature: Feature
    ) -> 'StreamProcessor':
        ...

    def set_clip_future_length(self, seconds: int) -> None:
        ...

    def set_clip_past_length(self, seconds: int) -> None:
        ...

    def add_bytes(self, chunk: bytes) -> None:
        ...

    def clip(self) -> None:
        ...

    def finalize_file(self) -> None:
        ...

    def dispose(self) -> None:
        ...


ProcessorFactory = Callable[[], StreamProcessor]


class FileDumpProcessor:
    """
    Writes the stream to disk exactly as received.

    No demuxing happens here, so clip requests cannot be honoured and are only
    logged. With Feature.CLIP_ONLY nothing is written at all.
    """

    def __init__(self):
        self._logger = get_logger('processor')
        self._stream_path_fn: Optional[PathProvider] = None
        self._feature = Feature.BOTH
        self._file: Optional[BinaryIO] = None
        self.path: Optional[Path] = None
        self.bytes_written = 0
        self.clip_future_length = 0
        self.clip_past_length = 0

    def initialize(
        self,
        stream_path_fn: PathProvider,
        clip_path_fn: PathProvider,
        feature: Feature
    ) -> 'FileDumpProcessor':
        self._stream_path_fn = stream_path_fn
        self._feature = feature
        return self

    def set_clip_future_length(self, seconds: int) -> None:
        self.clip_future_length = seconds

    def set_clip_past_length(self, seconds: int) -> None:
        self.clip_past_length = seconds

    def add_bytes(self, chunk: bytes) -> None:
        if not self._feature.records:
            return
        if self._file is None:
            self._open()
        self._file.write(chunk)
        self.bytes_written += len(chunk)

    def _open(self) -> None:
        if self._stream_path_fn is None:
            raise RuntimeError("Processor used before initialize()")
        self.path = Path(self._stream_path_fn())
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, 'wb')
        self._logger.info(f"Writing stream to {self.path}")

    def clip(self) -> None:
        self._logger.warning("Clipping is not supported by the raw file processor, request ignored")

    def finalize_file(self) -> None:
        if self._file is None:
            return
        self._file.flush()
        self._file.close()
        self._file = None
        self._logger.info(f"Saved: {self.path} ({self.bytes_written / 1024 / 1024:.1f} MB)")

    def dispose(self) -> None:
        # finalize_file is normally called first; close quietly if it was not
        if self._file is not None:
            self._file.close()
            self._file = None
        self._stream_path_fn = None
