"""
Plugin bootstrap: wire the registry, scheduler and save pipeline to the
host's event stream.

All state lives in one :class:`AutosaveContext` owned by the plugin instance;
there are no module-level singletons.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from opencode_autosave.client import MessageSource
from opencode_autosave.config import AutosaveConfig
from opencode_autosave.events import (
    SESSION_CREATED,
    SESSION_DELETED,
    SESSION_IDLE,
    SESSION_UPDATED,
    EventBus,
    parse_event,
)
from opencode_autosave.hooks import AutosaveHooks
from opencode_autosave.logging import get_logger
from opencode_autosave.orchestrator import SaveOrchestrator
from opencode_autosave.registry import SessionRegistry
from opencode_autosave.scheduler import DebounceScheduler
from opencode_autosave.storage import TranscriptStorage, ensure_directory

logger = get_logger("plugin")

HOOK_SOURCE = "autosave"


@dataclass
class AutosaveContext:
    """Process-wide state of one plugin instance."""

    directory: Path
    config: AutosaveConfig
    registry: SessionRegistry
    scheduler: DebounceScheduler
    storage: TranscriptStorage
    orchestrator: SaveOrchestrator
    hooks: AutosaveHooks


class AutosavePlugin:
    """
    Entry point for host events.

    :meth:`handle_event` never raises; a plugin without a context (failed
    bootstrap) accepts and ignores every event.
    """

    def __init__(self, bus: EventBus, context: AutosaveContext | None = None) -> None:
        self.bus = bus
        self.context = context

    @property
    def enabled(self) -> bool:
        return self.context is not None

    async def handle_event(self, raw: Any) -> None:
        try:
            event = parse_event(raw)
            if event is None:
                return
            await self.bus.emit(event.type, event)
        except Exception:
            logger.exception("Error handling event")

    async def drain(self) -> None:
        """Wait for flushes started by debounce timers that already fired."""
        if self.context is not None:
            await self.context.scheduler.drain()

    def close(self) -> None:
        """Cancel pending debounce timers. Unflushed idle sessions are dropped."""
        if self.context is not None:
            self.context.scheduler.cancel_all()
        self.bus.off_by_source(HOOK_SOURCE)


def setup_autosave(
    client: MessageSource,
    directory: str | Path,
    config: AutosaveConfig | None = None,
    bus: EventBus | None = None,
) -> AutosavePlugin:
    """Wire autosave into an event bus.

    1. Ensures the primary save root exists (failure is logged, not fatal).
    2. Resolves the secondary root; an unusable one is disabled.
    3. Builds the registry, scheduler, storage and orchestrator.
    4. Registers the four lifecycle hooks on the bus.

    Example::

        async with OpencodeClient("http://localhost:4096", directory=".") as client:
            plugin = setup_autosave(client, ".")
            async for event in client.events():
                await plugin.handle_event(event)
    """
    bus = bus or EventBus()
    try:
        config = config or AutosaveConfig()
        directory = Path(directory)

        primary_root = config.primary_root(directory)
        ensure_directory(primary_root)

        secondary_root = config.secondary_root(directory)
        if secondary_root is not None and not ensure_directory(secondary_root):
            logger.warning("Secondary save root %s unusable, mirroring disabled", secondary_root)
            secondary_root = None

        registry = SessionRegistry()
        scheduler = DebounceScheduler()
        storage = TranscriptStorage(primary_root, secondary_root)
        orchestrator = SaveOrchestrator(registry, client, storage, config)
        hooks = AutosaveHooks(registry, scheduler, orchestrator, config)

        bus.on(SESSION_CREATED, hooks.on_session_created, source=HOOK_SOURCE)
        bus.on(SESSION_UPDATED, hooks.on_session_updated, source=HOOK_SOURCE)
        bus.on(SESSION_IDLE, hooks.on_session_idle, source=HOOK_SOURCE)
        bus.on(SESSION_DELETED, hooks.on_session_deleted, source=HOOK_SOURCE)

        context = AutosaveContext(
            directory=directory,
            config=config,
            registry=registry,
            scheduler=scheduler,
            storage=storage,
            orchestrator=orchestrator,
            hooks=hooks,
        )
        logger.info(
            "Autosave enabled: primary=%s secondary=%s", primary_root, secondary_root or "-"
        )
        return AutosavePlugin(bus, context)
    except Exception:
        logger.exception("Autosave setup failed, events will be ignored")
        return AutosavePlugin(bus, None)
