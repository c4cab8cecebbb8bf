"""Filename and timestamp helpers."""

from __future__ import annotations

import re
from datetime import datetime

_INVALID_FILENAME_CHARS = re.compile(r'[/\\:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")
_MULTIPLE_HYPHENS = re.compile(r"-+")

# Titles the host assigns before a real topic is known
PLACEHOLDER_TITLE_PREFIXES = ("New-session-", "New session")


def format_date_for_filename(date: datetime) -> str:
    """``20250131-14-05-09`` style stamp used as a filename prefix."""
    return date.strftime("%Y%m%d-%H-%M-%S")


def format_timestamp(date: datetime) -> str:
    """Human readable ``2025-01-31 14:05:09`` stamp used inside documents."""
    return date.strftime("%Y-%m-%d %H:%M:%S")


def sanitize_topic(topic: str, max_length: int) -> str:
    sanitized = _INVALID_FILENAME_CHARS.sub("-", topic)
    sanitized = _WHITESPACE.sub("-", sanitized)
    sanitized = _MULTIPLE_HYPHENS.sub("-", sanitized).strip("-")

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length].strip("-")

    return sanitized or "untitled"


def generate_filename(topic: str, created_at: datetime, max_length: int) -> str:
    return f"{format_date_for_filename(created_at)}-{sanitize_topic(topic, max_length)}.md"


def image_filename(
    title: str,
    created_at: datetime,
    index: int,
    image_format: str,
    max_length: int = 50,
) -> str:
    ext = "jpg" if image_format.lower() == "jpeg" else image_format.lower()
    return (
        f"{format_date_for_filename(created_at)}-"
        f"{sanitize_topic(title, max_length)}-{index}.{ext}"
    )


def is_placeholder_title(title: str | None) -> bool:
    return not title or title.startswith(PLACEHOLDER_TITLE_PREFIXES)
