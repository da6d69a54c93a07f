"""Capabilities injected into the message core by its host application.

The host (a UI or scripting layer) owns these objects. The core only calls
out to them: it reports errors to an ``ErrorSink``, optionally lets a
``PathRewriter`` substitute the file it is about to parse, and asks the
``MessageIndex`` to refresh after a deletion. A missing path rewriter is a
valid configuration and is represented by ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import structlog

from mailstore.config import Settings, get_settings
from mailstore.mime.types import MagicTypeDetector, TypeDetector
from mailstore.proxy.channel import ProxyChannel

logger = structlog.get_logger()


class ErrorSink(Protocol):
    def on_error(self, message: str) -> None: ...


class PathRewriter(Protocol):
    def rewrite(self, path: str) -> str | None:
        """Return a replacement file to read instead of ``path``, or None.

        A returned file is owned by the caller and deleted after use.
        """
        ...


class MessageIndex(Protocol):
    def update_messages(self, deleted: bool = False) -> None: ...


class LoggingErrorSink:
    """Error sink that forwards every report to the structured log."""

    def on_error(self, message: str) -> None:
        logger.error("message_error", error=message)


class NullMessageIndex:
    """Message index that ignores refresh requests."""

    def update_messages(self, deleted: bool = False) -> None:
        logger.debug("message_index_refresh_ignored", deleted=deleted)


@dataclass
class MessageContext:
    """Process-scoped collaborators shared by all records of an application.

    Attributes:
        settings: Application settings.
        proxy: Channel to the remote-mail helper; only needed for remote records.
        error_sink: Receives human-readable error reports.
        path_rewriter: Optional hook consulted before a message file is parsed.
        index: Global message index refreshed after deletions.
        type_detector: Determines the content type of attachment files.
    """

    settings: Settings = field(default_factory=get_settings)
    proxy: ProxyChannel | None = None
    error_sink: ErrorSink = field(default_factory=LoggingErrorSink)
    path_rewriter: PathRewriter | None = None
    index: MessageIndex = field(default_factory=NullMessageIndex)
    type_detector: TypeDetector = field(default_factory=MagicTypeDetector)
