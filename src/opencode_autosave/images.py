"""
Extraction of inline base64 images from file parts.

Every ``file`` part whose MIME type is ``image/*`` and whose URL is a
``data:image/<fmt>;base64,<payload>`` URL is decoded and saved into an
``images/`` directory next to the transcript. The part is then rewritten to
reference the saved file by relative path, so the formatter renders a normal
markdown image link. Extraction must finish before the transcript is
rendered.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from opencode_autosave.config import IMAGES_DIRNAME
from opencode_autosave.logging import get_logger
from opencode_autosave.models import FilePart, MessageData, Part
from opencode_autosave.naming import image_filename
from opencode_autosave.storage import TranscriptStorage

logger = get_logger("images")

_BASE64_DATA_URL = re.compile(r"^data:image/([a-zA-Z]+);base64,(.+)$", re.DOTALL)


def parse_data_url(url: str) -> tuple[str, str] | None:
    """Return ``(format, base64 payload)`` for an inline image URL."""
    match = _BASE64_DATA_URL.match(url or "")
    if match is None:
        return None
    return match.group(1), match.group(2)


def is_inline_image(part: Part) -> bool:
    return (
        isinstance(part, FilePart)
        and part.mime.startswith("image/")
        and parse_data_url(part.url) is not None
    )


def decode_payload(payload: str) -> bytes:
    """Decode a base64 payload. Raises ``binascii.Error`` on bad input."""
    data = base64.b64decode(payload)
    if not data:
        raise ValueError("empty image payload")
    return data


class ImageExtractor:
    """Saves inline images for one render pass of a root session."""

    def __init__(self, storage: TranscriptStorage, title_length: int = 50) -> None:
        self.storage = storage
        self.title_length = title_length

    async def extract(
        self,
        message_groups: Iterable[list[MessageData]],
        document_path: Path,
        title: str,
        created_at: datetime,
    ) -> int:
        """
        Extract images from every message in *message_groups*, in order.

        One index sequence covers all groups (root messages first, then each
        child's), so image names never collide within a document.

        Returns the number of images saved.
        """
        index = 0
        for messages in message_groups:
            for message in messages:
                for part in message.parts:
                    if not is_inline_image(part):
                        continue
                    assert isinstance(part, FilePart)
                    saved = await self._save(part, document_path, title, created_at, index)
                    if saved:
                        index += 1
        return index

    async def _save(
        self,
        part: FilePart,
        document_path: Path,
        title: str,
        created_at: datetime,
        index: int,
    ) -> bool:
        parsed = parse_data_url(part.url)
        if parsed is None:
            return False
        image_format, payload = parsed

        name = image_filename(title, created_at, index, image_format, self.title_length)
        image_path = Path(document_path).parent / IMAGES_DIRNAME / name
        relative = f"{IMAGES_DIRNAME}/{name}"

        try:
            data = decode_payload(payload)
        except (binascii.Error, ValueError) as e:
            logger.warning("Could not decode inline image %s: %s", part.filename or name, e)
            return False

        ok = await asyncio.to_thread(self.storage.write_primary, image_path, data)
        if not ok:
            logger.warning("Could not save image %s, leaving it inline", image_path)
            return False

        part.local_path = relative
        part.url = relative

        if self.storage.has_secondary:
            # Decoded again from the source payload, not copied from the
            # primary file.
            try:
                mirrored = decode_payload(payload)
            except (binascii.Error, ValueError) as e:
                logger.warning("Could not decode image for secondary copy: %s", e)
            else:
                await asyncio.to_thread(self.storage.write_secondary, image_path, mirrored)

        return True
