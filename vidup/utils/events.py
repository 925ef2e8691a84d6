from typing import Callable, Dict, List
import asyncio
import inspect
import logging
logger = logging.getLogger(__name__)


class EventEmitter:
    """Event emitter for upload state and progress notifications."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        listeners = self._listeners.setdefault(event_name, [])
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    async def emit(self, event_name: str, *args, **kwargs):
        """
        Call every listener of `event_name` in subscription order.

        Listeners may be plain functions or coroutine functions. A failing
        listener is logged and does not stop the others.
        """
        if not self._listeners.get(event_name):
            return

        async with self._lock:
            for callback in self._listeners[event_name][:]:  # listeners may unsubscribe while we iterate
                try:
                    result = callback(*args, **kwargs)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Error in event listener for {event_name}: {e}")
