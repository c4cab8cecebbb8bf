"""
Crash-safe file writes to the primary save root and its optional mirror.

Content is written to a temporary sibling file and renamed over the target,
so the target path only ever holds a complete document. Failures are
reported as ``False``; nothing here raises.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from opencode_autosave.logging import get_logger

logger = get_logger("storage")


def ensure_directory(directory: Path) -> bool:
    """Create *directory* (and parents). Existing directories are fine."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        logger.error("Failed to create directory %s: %s", directory, e)
        return False


def write_atomic(path: Path, data: str | bytes) -> bool:
    """
    Write *data* to *path* via temp file + rename.

    Text is encoded as UTF-8 before anything touches the disk; characters
    that cannot be encoded (lone surrogates from truncated emoji) become
    ``?``. Repeated calls for the same path overwrite it. On failure the
    temporary file is removed and ``False`` is returned.
    """
    if isinstance(data, str):
        data = data.encode("utf-8", errors="replace")

    temp_path: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=path.parent,
        )
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(temp_path, path)
        return True
    except (OSError, ValueError) as e:
        logger.error("Failed to write file %s: %s", path, e)
        if temp_path is not None:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
        return False


class TranscriptStorage:
    """
    Writes transcripts (and extracted images) under a primary root and,
    when configured, mirrors them under a secondary root.

    A mirrored path keeps the file's position relative to the primary root:
    ``<primary>/images/a.png`` is mirrored to ``<secondary>/images/a.png``.
    """

    def __init__(self, primary_root: Path, secondary_root: Path | None = None) -> None:
        self.primary_root = Path(primary_root)
        self.secondary_root = Path(secondary_root) if secondary_root else None

    @property
    def has_secondary(self) -> bool:
        return self.secondary_root is not None

    def mirror_path(self, primary_path: Path) -> Path | None:
        """Secondary location for *primary_path*, or ``None`` when disabled."""
        if self.secondary_root is None:
            return None
        try:
            relative = Path(primary_path).relative_to(self.primary_root)
        except ValueError:
            relative = Path(Path(primary_path).name)
        return self.secondary_root / relative

    def write_primary(self, path: Path, content: str | bytes) -> bool:
        ok = write_atomic(Path(path), content)
        if ok:
            logger.debug("Wrote %s", path)
        return ok

    def write_secondary(self, primary_path: Path, content: str | bytes) -> bool:
        """
        Mirror *content* for *primary_path*. Independent of the primary write;
        a failure here never touches the primary file.
        """
        target = self.mirror_path(primary_path)
        if target is None:
            return False
        ok = write_atomic(target, content)
        if not ok:
            logger.warning("Secondary write failed for %s", target)
        return ok
