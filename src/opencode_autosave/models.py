"""
Data models for tracked sessions and the messages rendered into transcripts.

Also converts raw message payloads returned by the host into these types.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Union

Role = Literal["user", "assistant"]


@dataclass
class Session:
    """A tracked conversational session."""

    id: str
    title: str = ""
    parent_id: str | None = None  # None for root sessions
    file_path: Path | None = None  # Assigned once, on first flush
    created_at: datetime = field(default_factory=datetime.now)
    child_session_ids: list[str] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


# ---------------------------------------------------------------------------
# Message parts
# ---------------------------------------------------------------------------


@dataclass
class TextPart:
    text: str = ""
    type: str = "text"


@dataclass
class ToolState:
    status: str = "unknown"
    input: dict[str, Any] | None = None
    output: str | None = None
    title: str | None = None
    error: str | None = None


@dataclass
class ToolPart:
    tool: str = "unknown"
    state: ToolState = field(default_factory=ToolState)
    type: str = "tool"


@dataclass
class FilePart:
    """A file attachment. ``local_path`` is set once an inline image is saved."""

    url: str = ""
    mime: str = "application/octet-stream"
    filename: str | None = None
    local_path: str | None = None  # Relative to the transcript file
    type: str = "file"


@dataclass
class ReasoningPart:
    text: str = ""
    type: str = "reasoning"


@dataclass
class OtherPart:
    """Part types that are not rendered in detail."""

    type: str = "unknown"


Part = Union[TextPart, ToolPart, FilePart, ReasoningPart, OtherPart]


@dataclass
class MessageData:
    """A message reduced to the fields the formatter needs."""

    id: str
    role: Role
    parts: list[Part] = field(default_factory=list)
    created_at: float = field(default_factory=lambda: time.time() * 1000)  # epoch ms


@dataclass
class ChildSessionData:
    """A child session's transcript, embedded into its root's document."""

    title: str
    created_at: datetime
    messages: list[MessageData] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Conversion from host payloads
# ---------------------------------------------------------------------------


def convert_part(raw: dict[str, Any]) -> Part:
    """Convert a raw part dict into a typed part."""
    part_type = raw.get("type") or "unknown"

    if part_type == "text":
        return TextPart(text=raw.get("text") or "")
    if part_type == "tool":
        state = raw.get("state") or {}
        return ToolPart(
            tool=raw.get("tool") or "unknown",
            state=ToolState(
                status=state.get("status") or "unknown",
                input=state.get("input"),
                output=state.get("output"),
                title=state.get("title"),
                error=state.get("error"),
            ),
        )
    if part_type == "file":
        return FilePart(
            url=raw.get("url") or "",
            mime=raw.get("mime") or "application/octet-stream",
            filename=raw.get("filename"),
        )
    if part_type == "reasoning":
        return ReasoningPart(text=raw.get("text") or "")
    return OtherPart(type=part_type)


def convert_message(raw: dict[str, Any]) -> MessageData | None:
    """
    Convert one raw message.

    Accepts both the ``{"info": {...}, "parts": [...]}`` shape returned by the
    host's message endpoint and a flat ``{"id", "role", "time", "parts"}``
    shape. Returns ``None`` for entries without an id.
    """
    info = raw.get("info") if isinstance(raw.get("info"), dict) else raw
    message_id = info.get("id")
    if not message_id:
        return None

    created = (info.get("time") or {}).get("created")
    parts = raw.get("parts") or info.get("parts") or []
    return MessageData(
        id=message_id,
        role="user" if info.get("role") == "user" else "assistant",
        parts=[convert_part(p) for p in parts if isinstance(p, dict)],
        created_at=created or time.time() * 1000,
    )


def convert_messages(raw_messages: list[dict[str, Any]] | None) -> list[MessageData]:
    """Convert a list of raw messages, skipping malformed entries."""
    messages: list[MessageData] = []
    for raw in raw_messages or []:
        if not isinstance(raw, dict):
            continue
        message = convert_message(raw)
        if message is not None:
            messages.append(message)
    return messages
