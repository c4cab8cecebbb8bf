"""Event hooks that drive session tracking and saving."""

from __future__ import annotations

from opencode_autosave.config import AutosaveConfig
from opencode_autosave.events import (
    SessionCreatedEvent,
    SessionDeletedEvent,
    SessionIdleEvent,
    SessionUpdatedEvent,
)
from opencode_autosave.logging import get_logger
from opencode_autosave.orchestrator import SaveOrchestrator
from opencode_autosave.registry import SessionRegistry
from opencode_autosave.scheduler import DebounceScheduler

logger = get_logger("hooks")

# Title given to child sessions created without one
DEFAULT_CHILD_TITLE = "Subagent"


class AutosaveHooks:
    """Handlers for the four session lifecycle events.

    Hooks:
        on_session_created: register the session (root or child).
        on_session_updated: take over a new title.
        on_session_idle: (re)arm the debounced flush.
        on_session_deleted: flush immediately, then forget the session.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        scheduler: DebounceScheduler,
        orchestrator: SaveOrchestrator,
        config: AutosaveConfig,
    ) -> None:
        self.registry = registry
        self.scheduler = scheduler
        self.orchestrator = orchestrator
        self.config = config

    def on_session_created(self, event: SessionCreatedEvent) -> None:
        if event.parent_id:
            title = event.title or DEFAULT_CHILD_TITLE
        else:
            title = event.title or ""
        self.registry.register(event.session_id, title, event.parent_id)
        logger.debug("Tracking session %s (parent=%s)", event.session_id, event.parent_id)

    def on_session_updated(self, event: SessionUpdatedEvent) -> None:
        if event.title:
            self.registry.update_title(event.session_id, event.title)

    def on_session_idle(self, event: SessionIdleEvent) -> None:
        session_id = event.session_id
        self.scheduler.on_idle(
            session_id,
            self.config.debounce_seconds,
            lambda: self.orchestrator.flush(session_id),
        )

    async def on_session_deleted(self, event: SessionDeletedEvent) -> None:
        session_id = event.session_id
        try:
            await self.scheduler.on_delete(
                session_id,
                lambda: self.orchestrator.flush(session_id),
            )
        finally:
            self.registry.remove(session_id)
            logger.debug("Stopped tracking session %s", session_id)
