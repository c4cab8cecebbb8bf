"""
OpenCode Autosave - save OpenCode conversations as markdown files.

Follows the host's session lifecycle events and writes each root session's
transcript (with its subagent sessions embedded) once the session goes idle
or is deleted.

Example:
    from opencode_autosave import OpencodeClient, setup_autosave

    async with OpencodeClient("http://localhost:4096", directory=".") as client:
        plugin = setup_autosave(client, ".")
        async for event in client.events():
            await plugin.handle_event(event)
"""

from opencode_autosave.client import HostError, MessageSource, OpencodeClient
from opencode_autosave.config import AutosaveConfig, load_config
from opencode_autosave.events import (
    SESSION_CREATED,
    SESSION_DELETED,
    SESSION_IDLE,
    SESSION_UPDATED,
    EventBus,
    SessionCreatedEvent,
    SessionDeletedEvent,
    SessionIdleEvent,
    SessionUpdatedEvent,
    parse_event,
)
from opencode_autosave.formatter import extract_topic, format_session
from opencode_autosave.hooks import AutosaveHooks
from opencode_autosave.images import ImageExtractor
from opencode_autosave.logging import get_logger, setup_logging
from opencode_autosave.models import (
    ChildSessionData,
    FilePart,
    MessageData,
    OtherPart,
    ReasoningPart,
    Session,
    TextPart,
    ToolPart,
    ToolState,
    convert_messages,
)
from opencode_autosave.orchestrator import SaveOrchestrator
from opencode_autosave.plugin import AutosaveContext, AutosavePlugin, setup_autosave
from opencode_autosave.registry import SessionRegistry
from opencode_autosave.scheduler import DebounceScheduler
from opencode_autosave.storage import TranscriptStorage, write_atomic

__version__ = "0.1.0"

__all__ = [
    # Plugin
    "AutosaveContext",
    "AutosaveHooks",
    "AutosavePlugin",
    "setup_autosave",
    # Core
    "DebounceScheduler",
    "ImageExtractor",
    "SaveOrchestrator",
    "SessionRegistry",
    "TranscriptStorage",
    "write_atomic",
    # Events
    "EventBus",
    "SESSION_CREATED",
    "SESSION_DELETED",
    "SESSION_IDLE",
    "SESSION_UPDATED",
    "SessionCreatedEvent",
    "SessionDeletedEvent",
    "SessionIdleEvent",
    "SessionUpdatedEvent",
    "parse_event",
    # Models
    "ChildSessionData",
    "FilePart",
    "MessageData",
    "OtherPart",
    "ReasoningPart",
    "Session",
    "TextPart",
    "ToolPart",
    "ToolState",
    "convert_messages",
    # Host
    "HostError",
    "MessageSource",
    "OpencodeClient",
    # Config / rendering
    "AutosaveConfig",
    "load_config",
    "extract_topic",
    "format_session",
    "get_logger",
    "setup_logging",
]
