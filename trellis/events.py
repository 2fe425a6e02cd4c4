"""Minimal synchronous event emitter."""

from typing import Any, Callable, Dict, List, Optional

Callback = Callable[..., None]


class Events:
    """Mixin providing named event subscriptions.

    Callbacks run synchronously, in subscription order, on the caller's
    stack. Exceptions raised by a callback propagate to whoever triggered
    the event.

    Example:
        record.on("change:name", lambda record, value, options: print(value))
        record.on("change", lambda record, options: print("changed"))
    """

    _events: Optional[Dict[str, List[Callback]]] = None

    def on(self, event: str, callback: Callback) -> None:
        """Subscribe callback to event."""
        if self._events is None:
            self._events = {}
        self._events.setdefault(event, []).append(callback)

    def off(self, event: Optional[str] = None, callback: Optional[Callback] = None) -> None:
        """Unsubscribe callbacks.

        Args:
            event: Event name; if None, all events
            callback: Callback to remove; if None, all callbacks of the event
        """
        if not self._events:
            return

        if event is None:
            self._events.clear()
            return

        if callback is None:
            self._events.pop(event, None)
            return

        callbacks = self._events.get(event)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def trigger(self, event: str, *args: Any) -> None:
        """Invoke every callback subscribed to event."""
        if not self._events:
            return

        # Copy so callbacks may unsubscribe while running
        for callback in list(self._events.get(event, ())):
            callback(*args)
