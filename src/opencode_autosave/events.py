"""
Host session events and the bus that dispatches them.

The host emits tagged JSON events. :func:`parse_event` turns the four
session lifecycle events into typed objects and everything else into
``None``. The :class:`EventBus` then calls the handlers registered for the
event's type.

Example:
    from opencode_autosave.events import SESSION_IDLE, EventBus, parse_event

    async def on_idle(event):
        print("idle:", event.session_id)

    bus = EventBus()
    bus.on(SESSION_IDLE, on_idle)

    event = parse_event({"type": "session.idle", "properties": {"sessionID": "s1"}})
    await bus.emit(event.type, event)
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from opencode_autosave.logging import get_logger

logger = get_logger("events")


# ---------------------------------------------------------------------------
# Event types
# ---------------------------------------------------------------------------

SESSION_CREATED = "session.created"
SESSION_UPDATED = "session.updated"
SESSION_IDLE = "session.idle"
SESSION_DELETED = "session.deleted"


@dataclass
class SessionCreatedEvent:
    session_id: str
    parent_id: str | None = None
    title: str | None = None
    type: str = SESSION_CREATED


@dataclass
class SessionUpdatedEvent:
    session_id: str
    title: str | None = None
    type: str = SESSION_UPDATED


@dataclass
class SessionIdleEvent:
    session_id: str
    type: str = SESSION_IDLE


@dataclass
class SessionDeletedEvent:
    session_id: str
    type: str = SESSION_DELETED


SessionEvent = Union[
    SessionCreatedEvent,
    SessionUpdatedEvent,
    SessionIdleEvent,
    SessionDeletedEvent,
]


def _info(raw: dict[str, Any]) -> dict[str, Any]:
    props = raw.get("properties")
    if not isinstance(props, dict):
        return {}
    info = props.get("info")
    return info if isinstance(info, dict) else {}


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def parse_event(raw: Any) -> SessionEvent | None:
    """
    Parse a raw host event.

    Returns ``None`` for unknown event types and for session events that are
    missing their session id.
    """
    if not isinstance(raw, dict):
        return None

    event_type = raw.get("type")

    if event_type == SESSION_IDLE:
        props = raw.get("properties")
        session_id = _str_or_none(props.get("sessionID")) if isinstance(props, dict) else None
        return SessionIdleEvent(session_id=session_id) if session_id else None

    if event_type not in (SESSION_CREATED, SESSION_UPDATED, SESSION_DELETED):
        return None

    info = _info(raw)
    session_id = _str_or_none(info.get("id"))
    if session_id is None:
        return None

    if event_type == SESSION_CREATED:
        return SessionCreatedEvent(
            session_id=session_id,
            parent_id=_str_or_none(info.get("parentID")),
            title=_str_or_none(info.get("title")),
        )
    if event_type == SESSION_UPDATED:
        return SessionUpdatedEvent(session_id=session_id, title=_str_or_none(info.get("title")))
    return SessionDeletedEvent(session_id=session_id)


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------

# Handlers take the parsed event and may be sync or async.
EventHandler = Callable[[Any], Any]


@dataclass
class _Subscription:
    handler: EventHandler
    source: str = ""


class EventBus:
    """
    Routes parsed events to the handlers subscribed to their type.

    Handlers run one after another in subscription order, each awaited
    before the next starts. A handler that raises is logged and skipped;
    :meth:`emit` itself never raises.

    Usage:
        bus = EventBus()
        unsubscribe = bus.on(SESSION_IDLE, on_idle, source="autosave")
        await bus.emit(SESSION_IDLE, event)
        unsubscribe()
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[_Subscription]] = {}

    def on(self, event_type: str, handler: EventHandler, source: str = "") -> Callable[[], None]:
        """Subscribe *handler* to *event_type*. Returns an unsubscribe function."""
        subscription = _Subscription(handler=handler, source=source)
        self._subscriptions.setdefault(event_type, []).append(subscription)

        def unsubscribe() -> None:
            subscriptions = self._subscriptions.get(event_type, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)

        return unsubscribe

    def off_by_source(self, source: str) -> int:
        """Remove every handler subscribed under *source*. Returns the count removed."""
        removed = 0
        for event_type, subscriptions in self._subscriptions.items():
            kept = [s for s in subscriptions if s.source != source]
            removed += len(subscriptions) - len(kept)
            self._subscriptions[event_type] = kept
        return removed

    async def emit(self, event_type: str, event: Any = None) -> None:
        for subscription in list(self._subscriptions.get(event_type, [])):
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Handler for %s failed (source=%s)", event_type, subscription.source or "-"
                )

    @property
    def handler_count(self) -> int:
        return sum(len(s) for s in self._subscriptions.values())

    def has_handlers(self, event_type: str) -> bool:
        return bool(self._subscriptions.get(event_type))
