"""
Save orchestration: turn a session id into a written transcript.

A flush always writes a root session. Flushing a child resolves to its root,
whose document embeds every descendant's messages. Flushes are idempotent:
running one again with the same (or newer) messages overwrites the same
file, which is what makes overlapping idle/delete flushes safe without
locking.
"""

from __future__ import annotations

import asyncio

from opencode_autosave.client import MessageSource
from opencode_autosave.config import AutosaveConfig
from opencode_autosave.formatter import extract_topic, format_session
from opencode_autosave.images import ImageExtractor
from opencode_autosave.logging import get_logger
from opencode_autosave.models import (
    ChildSessionData,
    MessageData,
    Session,
    TextPart,
    convert_messages,
)
from opencode_autosave.naming import generate_filename, is_placeholder_title
from opencode_autosave.registry import SessionRegistry
from opencode_autosave.storage import TranscriptStorage

logger = get_logger("orchestrator")


class SaveOrchestrator:
    """Fetches, renders and writes root-session transcripts."""

    def __init__(
        self,
        registry: SessionRegistry,
        source: MessageSource,
        storage: TranscriptStorage,
        config: AutosaveConfig | None = None,
    ) -> None:
        self.registry = registry
        self.source = source
        self.storage = storage
        self.config = config or AutosaveConfig()
        self.images = ImageExtractor(storage, title_length=self.config.image_title_length)

    async def flush(self, session_id: str) -> bool:
        """
        Save the transcript that contains *session_id*.

        Returns ``True`` when the primary document was written. Never raises:
        errors are logged and the flush is abandoned until the next trigger.
        """
        try:
            return await self._flush(session_id)
        except Exception:
            logger.exception("Error saving session %s", session_id)
            return False

    async def _flush(self, session_id: str) -> bool:
        session = self.registry.get(session_id)
        if session is None:
            logger.debug("Flush skipped, session %s is not tracked", session_id)
            return False

        if not session.is_root:
            root = self.registry.root_of(session_id, self.config.max_parent_depth)
            if root is None:
                logger.debug("Flush skipped, no root for child session %s", session_id)
                return False
            session = root

        messages = convert_messages(await self.source.messages(session.id))
        if not messages:
            logger.debug("Flush skipped, session %s has no messages", session.id)
            return False

        title = self._resolve_title(session, messages)

        if session.file_path is None:
            filename = generate_filename(
                title or "untitled", session.created_at, self.config.max_topic_length
            )
            session.file_path = self.storage.primary_root / filename
        document_path = session.file_path

        children = await asyncio.gather(
            *(self._load_child(child) for child in self.registry.descendants_of(session.id))
        )

        await self.images.extract(
            [messages, *(child.messages for child in children)],
            document_path,
            title,
            session.created_at,
        )

        content = format_session(title, session.created_at, messages, list(children))

        ok = await asyncio.to_thread(self.storage.write_primary, document_path, content)
        if ok:
            logger.info("Saved session %s to %s", session.id, document_path)

        if self.storage.has_secondary:
            await asyncio.to_thread(self.storage.write_secondary, document_path, content)

        return ok

    def _resolve_title(self, session: Session, messages: list[MessageData]) -> str:
        """Replace an empty or placeholder title with a topic from the first user message."""
        if not is_placeholder_title(session.title):
            return session.title

        first_user = next((m for m in messages if m.role == "user"), None)
        if first_user is None:
            return session.title
        first_text = next((p for p in first_user.parts if isinstance(p, TextPart)), None)
        if first_text is None:
            return session.title

        topic = extract_topic(first_text.text, self.config.max_topic_length)
        self.registry.update_title(session.id, topic)
        return topic

    async def _load_child(self, child: Session) -> ChildSessionData:
        messages = convert_messages(await self.source.messages(child.id))
        return ChildSessionData(
            title=child.title,
            created_at=child.created_at,
            messages=messages,
        )
