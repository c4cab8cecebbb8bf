"""Tests for the save pipeline."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from conftest import PNG_BYTES, FakeSource, image_part, raw_message
from opencode_autosave.config import AutosaveConfig
from opencode_autosave.orchestrator import SaveOrchestrator
from opencode_autosave.registry import SessionRegistry
from opencode_autosave.storage import TranscriptStorage

CREATED = datetime(2025, 1, 31, 14, 5, 9)


@pytest.fixture
def orchestrator(registry: SessionRegistry, source: FakeSource, storage: TranscriptStorage, config: AutosaveConfig):
    return SaveOrchestrator(registry, source, storage, config)


def _register(registry: SessionRegistry, session_id: str, title: str = "", parent_id: str | None = None):
    session = registry.register(session_id, title, parent_id)
    session.created_at = CREATED
    return session


def _markdown_files(root: Path) -> list[str]:
    return sorted(p.name for p in root.glob("*.md"))


class TestFlush:
    @pytest.mark.asyncio
    async def test_writes_root_document(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "Parser work")
        source.set("a", raw_message("m1", "user", text="hello"), raw_message("m2", "assistant", text="hi"))

        assert await orchestrator.flush("a") is True

        session = registry.get("a")
        assert session.file_path == primary_root / "20250131-14-05-09-Parser-work.md"
        doc = session.file_path.read_text(encoding="utf-8")
        assert doc.startswith("# Session: Parser work")
        assert "hello" in doc and "hi" in doc

    @pytest.mark.asyncio
    async def test_untracked_session(self, orchestrator, source) -> None:
        assert await orchestrator.flush("ghost") is False
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_no_messages_writes_nothing(self, orchestrator, registry, primary_root) -> None:
        _register(registry, "a", "Empty")
        assert await orchestrator.flush("a") is False
        assert registry.get("a").file_path is None
        assert _markdown_files(primary_root) == []

    @pytest.mark.asyncio
    async def test_host_error_is_contained(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "T")
        source.failing.add("a")
        assert await orchestrator.flush("a") is False
        assert _markdown_files(primary_root) == []

    @pytest.mark.asyncio
    async def test_reflush_is_identical_and_reuses_path(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "Stable")
        source.set("a", raw_message("m1", text="same"))

        await orchestrator.flush("a")
        path = registry.get("a").file_path
        first = path.read_bytes()

        registry.update_title("a", "Renamed later")
        await orchestrator.flush("a")

        assert registry.get("a").file_path == path
        assert _markdown_files(primary_root) == [path.name]
        registry.update_title("a", "Stable")
        await orchestrator.flush("a")
        assert path.read_bytes() == first


class TestChildren:
    @pytest.mark.asyncio
    async def test_child_flush_writes_root(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "Root")
        _register(registry, "b", "Explore", parent_id="a")
        source.set("a", raw_message("m1", text="root question"))
        source.set("b", raw_message("c1", "assistant", text="child answer"))

        assert await orchestrator.flush("b") is True

        assert registry.get("b").file_path is None
        assert _markdown_files(primary_root) == ["20250131-14-05-09-Root.md"]
        doc = registry.get("a").file_path.read_text(encoding="utf-8")
        assert "### 📦 Subagent: Explore" in doc
        assert "child answer" in doc

    @pytest.mark.asyncio
    async def test_grandchildren_are_embedded(self, orchestrator, registry, source) -> None:
        _register(registry, "a", "Root")
        _register(registry, "b", "Child", parent_id="a")
        _register(registry, "c", "Grandchild", parent_id="b")
        source.set("a", raw_message("m1", text="q"))
        source.set("c", raw_message("g1", "assistant", text="deep"))

        await orchestrator.flush("c")

        doc = registry.get("a").file_path.read_text(encoding="utf-8")
        assert doc.index("Subagent: Child") < doc.index("Subagent: Grandchild")
        assert "deep" in doc

    @pytest.mark.asyncio
    async def test_orphan_child_is_skipped(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "b", "Orphan", parent_id="missing")
        source.set("b", raw_message("c1", text="x"))
        assert await orchestrator.flush("b") is False
        assert _markdown_files(primary_root) == []

    @pytest.mark.asyncio
    async def test_failing_child_fetch_abandons_flush(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "Root")
        _register(registry, "b", parent_id="a")
        source.set("a", raw_message("m1", text="q"))
        source.failing.add("b")
        assert await orchestrator.flush("a") is False
        assert _markdown_files(primary_root) == []


class TestTitle:
    @pytest.mark.asyncio
    async def test_placeholder_title_replaced_by_topic(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "New session - 2025-01-31T14:05:09.000Z")
        source.set(
            "a",
            raw_message("m0", "assistant", text="ignored"),
            raw_message("m1", "user", text="How do I   rotate logs?"),
        )

        await orchestrator.flush("a")

        assert registry.get("a").title == "How do I rotate logs?"
        assert _markdown_files(primary_root) == ["20250131-14-05-09-How-do-I-rotate-logs.md"]

    @pytest.mark.asyncio
    async def test_real_title_kept(self, orchestrator, registry, source) -> None:
        _register(registry, "a", "Chosen")
        source.set("a", raw_message("m1", text="something else"))
        await orchestrator.flush("a")
        assert registry.get("a").title == "Chosen"

    @pytest.mark.asyncio
    async def test_no_user_text(self, orchestrator, registry, source) -> None:
        _register(registry, "a", "")
        source.set("a", raw_message("m1", "assistant", text="only me"))
        assert await orchestrator.flush("a") is True
        assert registry.get("a").file_path.name == "20250131-14-05-09-untitled.md"


class TestImagesAndMirror:
    @pytest.mark.asyncio
    async def test_images_extracted_before_render(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "Pics")
        _register(registry, "b", "Sub", parent_id="a")
        source.set("a", raw_message("m1", parts=[image_part()]))
        source.set("b", raw_message("c1", "assistant", parts=[image_part(filename="child.png")]))

        await orchestrator.flush("a")

        doc = registry.get("a").file_path.read_text(encoding="utf-8")
        assert "base64" not in doc
        assert "![shot.png](images/20250131-14-05-09-Pics-0.png)" in doc
        assert "![child.png](images/20250131-14-05-09-Pics-1.png)" in doc
        assert (primary_root / "images" / "20250131-14-05-09-Pics-1.png").read_bytes() == PNG_BYTES

    @pytest.mark.asyncio
    async def test_reflush_does_not_duplicate_images(self, orchestrator, registry, source, primary_root) -> None:
        _register(registry, "a", "Pics")
        source.set("a", raw_message("m1", parts=[image_part()]))

        await orchestrator.flush("a")
        await orchestrator.flush("a")

        assert sorted(p.name for p in (primary_root / "images").iterdir()) == ["20250131-14-05-09-Pics-0.png"]

    @pytest.mark.asyncio
    async def test_dual_write(self, registry, source, dual_storage, config) -> None:
        orchestrator = SaveOrchestrator(registry, source, dual_storage, config)
        _register(registry, "a", "Mirror")
        source.set("a", raw_message("m1", parts=[image_part()], text="q"))

        await orchestrator.flush("a")

        primary = registry.get("a").file_path
        mirror = dual_storage.secondary_root / primary.name
        assert mirror.read_bytes() == primary.read_bytes()
        assert (dual_storage.secondary_root / "images" / "20250131-14-05-09-Mirror-0.png").exists()

    @pytest.mark.asyncio
    async def test_secondary_failure_keeps_primary(self, registry, source, primary_root, tmp_path, config) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        orchestrator = SaveOrchestrator(registry, source, TranscriptStorage(primary_root, blocker / "m"), config)
        _register(registry, "a", "T")
        source.set("a", raw_message("m1", text="q"))

        assert await orchestrator.flush("a") is True
        assert registry.get("a").file_path.exists()
        assert not (blocker / "m").exists()

    @pytest.mark.asyncio
    async def test_unencodable_text_still_saved_to_both_roots(self, registry, source, dual_storage, config) -> None:
        orchestrator = SaveOrchestrator(registry, source, dual_storage, config)
        _register(registry, "a", "T")
        source.set("a", raw_message("m1", text="x \ud83d"))

        assert await orchestrator.flush("a") is True

        primary = registry.get("a").file_path
        assert "x ?" in primary.read_text(encoding="utf-8")
        assert (dual_storage.secondary_root / primary.name).read_bytes() == primary.read_bytes()
        assert [p.name for p in primary.parent.iterdir() if p.name.endswith(".tmp")] == []
