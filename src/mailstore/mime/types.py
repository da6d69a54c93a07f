"""Content-type detection for files attached to messages."""

from __future__ import annotations

from typing import Protocol

import structlog

logger = structlog.get_logger()

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class TypeDetector(Protocol):
    def detect(self, path: str) -> str:
        """Return the ``type/subtype`` of the file at ``path``."""
        ...


class MagicTypeDetector:
    """Detect content types with libmagic."""

    def detect(self, path: str) -> str:
        # Imported lazily: libmagic is only needed when attaching files.
        import magic

        try:
            content_type = magic.from_file(path, mime=True)
        except (OSError, magic.MagicException) as exc:
            logger.warning("content_type_detection_failed", path=path, error=str(exc))
            return DEFAULT_CONTENT_TYPE

        if not content_type or "/" not in content_type:
            return DEFAULT_CONTENT_TYPE
        return content_type
