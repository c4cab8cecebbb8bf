"""Shared pytest fixtures for opencode-autosave tests."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any

import pytest

from opencode_autosave.client import HostError
from opencode_autosave.config import AutosaveConfig
from opencode_autosave.registry import SessionRegistry
from opencode_autosave.storage import TranscriptStorage

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


def raw_message(
    message_id: str,
    role: str = "user",
    text: str | None = None,
    parts: list[dict[str, Any]] | None = None,
    created: int = 1_700_000_000_000,
) -> dict[str, Any]:
    """Build a message in the host's ``{info, parts}`` shape."""
    all_parts = list(parts or [])
    if text is not None:
        all_parts.insert(0, {"type": "text", "text": text})
    return {
        "info": {"id": message_id, "role": role, "time": {"created": created}},
        "parts": all_parts,
    }


def image_part(url: str = PNG_DATA_URL, mime: str = "image/png", filename: str = "shot.png") -> dict[str, Any]:
    return {"type": "file", "url": url, "mime": mime, "filename": filename}


class FakeSource:
    """In-memory message source with call tracking and failure injection."""

    def __init__(self) -> None:
        self.messages_by_session: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[str] = []
        self.failing: set[str] = set()

    def set(self, session_id: str, *messages: dict[str, Any]) -> None:
        self.messages_by_session[session_id] = list(messages)

    async def messages(self, session_id: str) -> list[dict[str, Any]]:
        self.calls.append(session_id)
        if session_id in self.failing:
            raise HostError(f"cannot fetch {session_id}")
        return list(self.messages_by_session.get(session_id, []))


@pytest.fixture(autouse=True)
def _reset_package_logging():
    """Drop handlers installed by setup_logging so they never outlive a test."""
    yield
    package = logging.getLogger("opencode_autosave")
    for handler in package.handlers:
        handler.close()
    package.handlers.clear()
    package.setLevel(logging.NOTSET)


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def config() -> AutosaveConfig:
    """Config with a short debounce window for timer tests."""
    return AutosaveConfig(debounce_ms=50)


@pytest.fixture
def primary_root(tmp_path: Path) -> Path:
    root = tmp_path / "project" / "conversations"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def storage(primary_root: Path) -> TranscriptStorage:
    return TranscriptStorage(primary_root)


@pytest.fixture
def dual_storage(primary_root: Path, tmp_path: Path) -> TranscriptStorage:
    return TranscriptStorage(primary_root, tmp_path / "global" / "project")
