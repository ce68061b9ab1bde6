"""
Property change notification for objects watched by a UI or API layer.
"""

from typing import Any, Callable, List

from .logger import get_logger


PropertyChangedHandler = Callable[[str], None]


class Observable:
    """
    Mixin publishing property changes to subscribers.

    Subclasses store observable values as ``_<name>`` attributes and write them
    through ``_set_property`` so that handlers only hear about real changes.
    Handlers run synchronously in whatever context performed the write.
    """

    def __init__(self):
        self._property_handlers: List[PropertyChangedHandler] = []

    def subscribe(self, handler: PropertyChangedHandler) -> None:
        """Register a handler called with the name of each changed property."""
        if handler not in self._property_handlers:
            self._property_handlers.append(handler)

    def unsubscribe(self, handler: PropertyChangedHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        if handler in self._property_handlers:
            self._property_handlers.remove(handler)

    def _set_property(self, name: str, value: Any) -> bool:
        """Store ``value`` as ``_<name>``; notify and return True if it changed."""
        attr = f"_{name}"
        if getattr(self, attr, None) == value:
            return False
        setattr(self, attr, value)
        self._notify(name)
        return True

    def _notify(self, name: str) -> None:
        # Copy: handlers may unsubscribe themselves
        for handler in list(self._property_handlers):
            try:
                handler(name)
            except Exception as e:
                get_logger('observable').warning(
                    f"Property handler failed for '{name}': {e}", exc_info=True
                )
