"""
Markdown rendering of session transcripts.

Rendering is a pure function of its inputs; images must already have been
extracted so file parts carry their ``local_path``.
"""

from __future__ import annotations

import json
import re
from datetime import datetime

from opencode_autosave.models import (
    ChildSessionData,
    FilePart,
    MessageData,
    Part,
    ReasoningPart,
    TextPart,
    ToolPart,
)
from opencode_autosave.naming import format_timestamp

_WHITESPACE = re.compile(r"\s+")

_ROLE_HEADINGS = {
    "user": "👤 User",
    "assistant": "🤖 Assistant",
}


def format_session(
    title: str,
    created_at: datetime,
    messages: list[MessageData],
    child_sessions: list[ChildSessionData],
) -> str:
    """Render a root session and its embedded child sessions."""
    lines = [
        f"# Session: {title}",
        "",
        f"**Created:** {format_timestamp(created_at)}",
        "",
        "---",
        "",
        "## Conversation",
        "",
    ]

    for message in messages:
        lines.append(format_message(message))
        lines.append("")

    if child_sessions:
        lines.extend(["---", "", "## Child Sessions", ""])
        for child in child_sessions:
            lines.append(format_child_session(child))
            lines.append("")

    return "\n".join(lines)


def _message_lines(message: MessageData, heading: str) -> list[str]:
    created = datetime.fromtimestamp(message.created_at / 1000)
    lines = [
        f"{heading} {_ROLE_HEADINGS.get(message.role, message.role)}",
        f"*{format_timestamp(created)}*",
        "",
    ]
    for part in message.parts:
        rendered = format_part(part)
        if rendered:
            lines.append(rendered)
            lines.append("")
    return lines


def format_message(message: MessageData) -> str:
    return "\n".join(_message_lines(message, "###")).strip()


def format_child_session(child: ChildSessionData) -> str:
    lines = [
        f"### 📦 Subagent: {child.title}",
        f"*Started: {format_timestamp(child.created_at)}*",
        "",
    ]
    for message in child.messages:
        lines.extend(_message_lines(message, "####"))
    return "\n".join(lines).strip()


def format_part(part: Part) -> str:
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, ToolPart):
        return format_tool_part(part)
    if isinstance(part, FilePart):
        return format_file_part(part)
    if isinstance(part, ReasoningPart):
        return format_reasoning_part(part)
    return f"*[{part.type} part]*"


def format_tool_part(part: ToolPart) -> str:
    state = part.state
    lines = [
        f"#### 🔧 Tool: {part.tool}",
        f"**Status:** {state.status}",
    ]

    if state.title:
        lines.append(f"**Title:** {state.title}")

    if state.input:
        lines.extend(
            [
                "",
                "**Input:**",
                "```json",
                json.dumps(state.input, indent=2, ensure_ascii=False, default=str),
                "```",
            ]
        )

    if state.output:
        lines.extend(["", "**Output:**", "```", state.output, "```"])

    if state.error:
        lines.extend(["", "**Error:**", "```", state.error, "```"])

    return "\n".join(lines)


def format_file_part(part: FilePart) -> str:
    filename = part.filename or "unnamed"

    if part.local_path and part.mime.startswith("image/"):
        return f"![{filename}]({part.local_path})"

    lines = [
        f"📁 **File:** {filename}",
        f"- MIME: {part.mime}",
    ]
    if not part.url.startswith("data:"):
        lines.append(f"- URL: {part.url}")
    return "\n".join(lines)


def format_reasoning_part(part: ReasoningPart) -> str:
    return "\n".join(
        [
            "💭 **Reasoning:**",
            "",
            "<details>",
            "<summary>Click to expand reasoning</summary>",
            "",
            part.text,
            "",
            "</details>",
        ]
    )


def extract_topic(message_text: str, max_length: int) -> str:
    """
    Derive a short topic from the first user message.

    Whitespace is collapsed. Long text is truncated at a word boundary when
    one exists past half of *max_length*.
    """
    cleaned = _WHITESPACE.sub(" ", message_text).strip()

    if len(cleaned) <= max_length:
        return cleaned or "untitled"

    truncated = cleaned[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.5:
        return truncated[:last_space]
    return truncated
