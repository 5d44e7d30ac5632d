"""In-process event bus.

Carries notifications between the guardrail monitor and the layers around
it (session planning, dashboards). Handlers may be sync or async. A failing
handler is logged and never breaks the publisher.
"""

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

SESSION_COMPLETED = "SESSION_COMPLETED"
PAIN_REPORTED = "PAIN_REPORTED"
SESSION_PLANNED = "SESSION_PLANNED"
GUARDRAIL_APPLIED = "GUARDRAIL_APPLIED"
SESSION_REJECTED = "SESSION_REJECTED"

EventHandler = Callable[[dict[str, Any]], Awaitable[None] | None]


class EventBus:
    """Topic-based publish/subscribe."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: EventHandler) -> None:
        self._handlers[topic].append(handler)
        logger.bind(topic=topic, handler=getattr(handler, "__name__", repr(handler))).debug("Event handler subscribed")

    def unsubscribe(self, topic: str, handler: EventHandler) -> None:
        if handler in self._handlers.get(topic, []):
            self._handlers[topic].remove(handler)

    async def emit(self, topic: str, payload: dict[str, Any]) -> None:
        """Publish payload to every handler of topic, in subscription order."""
        for handler in list(self._handlers.get(topic, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.bind(topic=topic).exception("Event handler failed")
