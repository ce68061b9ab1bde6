"""
Resources held by one live stream download.
"""

import logging
from typing import Any, Callable, Optional, Union

from .processor import StreamProcessor
from .speed import SpeedSampler


class SessionResources:
    """
    Request, response, byte stream and processor of one acquisition attempt.

    ``release()`` tears everything down in a fixed order. Each step is
    best-effort: a failing step is logged and the remaining steps still run.
    Calling it again is a no-op.
    """

    def __init__(
        self,
        sampler: SpeedSampler,
        logger: Union[logging.Logger, logging.LoggerAdapter],
        on_released: Optional[Callable[[], None]] = None
    ):
        self.request: Any = None
        self.response: Any = None
        self.stream: Any = None
        self.processor: Optional[StreamProcessor] = None

        self._sampler = sampler
        self._logger = logger
        self._on_released = on_released
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Finalize and drop everything this attempt acquired."""
        if self._released:
            return
        self._released = True

        processor = self.processor
        if processor is not None:
            self._step("finalize processor", processor.finalize_file)
            self._step("dispose processor", processor.dispose)
        self.processor = None

        self.request = None

        # aiohttp's StreamReader has no close(); closing the response frees it
        close_stream = getattr(self.stream, 'close', None)
        if close_stream is not None:
            self._step("dispose stream", close_stream)
        self.stream = None

        if self.response is not None:
            self._step("dispose response", self.response.close)
        self.response = None

        self._sampler.reset()

        if self._on_released is not None:
            self._step("publish release", self._on_released)

    def _step(self, name: str, action: Callable[[], Any]) -> None:
        try:
            action()
        except Exception as e:
            self._logger.warning(f"Cleanup step '{name}' failed: {e}", exc_info=True)
