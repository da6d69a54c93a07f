"""Message file parsing with recovery for stray leading lines.

Messages occasionally arrive with junk prepended to otherwise valid headers,
such as a foreign envelope separator. When the MIME parser cannot find any
header in a file we rewind, discard a small number of leading lines and try
exactly once more. The scan is capped so that a file without newlines can
not make us read it to the end.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import EmailMessage
from email.parser import BytesParser
from email.policy import default
from typing import BinaryIO

import structlog

from mailstore.config import Settings
from mailstore.exceptions import OpenFailure, ParseFailure

logger = structlog.get_logger()


@dataclass
class ParsedMessage:
    """Result of parsing a message file.

    ``message`` is the parser's object graph. It is meant to be consumed
    straight away (see ``mailstore.mime.builder``) and not kept around.
    """

    headers: dict[str, str]
    message: EmailMessage
    recovered: bool = False


def unfold(value: str) -> str:
    """Join the continuation lines of a folded header value."""
    return "".join(value.splitlines())


def decode_header_value(raw: str) -> str:
    """Decode RFC 2047 encoded words, keeping ``raw`` if they are malformed."""
    value = unfold(raw)
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeError, ValueError):
        # Undeclared 8-bit bytes arrive as surrogate escapes.
        return value.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def header_map(message: EmailMessage) -> dict[str, str]:
    """Map lower-cased header names to decoded values; later headers win.

    Values are taken from the raw header lines, so a header the structured
    parser would choke on (e.g. ``Message-ID: <``) still comes through.
    """
    result: dict[str, str] = {}
    for name, raw in message.raw_items():
        result[name.lower()] = decode_header_value(raw)
    return result


class RecoveringParser:
    """Parse message files into headers and a MIME object graph."""

    def __init__(self, settings: Settings | None = None, path_rewriter=None) -> None:
        """Initialize the parser.

        Args:
            settings: Application settings. If None, uses default settings.
            path_rewriter: Optional hook that may substitute the file to parse.
        """
        from mailstore.config import get_settings

        self.settings = settings or get_settings()
        self.path_rewriter = path_rewriter

    def parse_file(self, path: str) -> ParsedMessage:
        """Parse the message stored at ``path``.

        Raises:
            OpenFailure: If the file cannot be opened.
            ParseFailure: If no message can be constructed, even after recovery.
        """
        source = self._rewritten(path)
        try:
            try:
                stream = open(source, "rb")
            except OSError as exc:
                raise OpenFailure(path, exc.strerror or str(exc), missing=not os.path.exists(path)) from exc

            with stream:
                message, recovered = self.parse_stream(stream)
        finally:
            if source != path:
                self._discard(source)

        if message is None:
            logger.warning("message_parse_failed", path=path)
            raise ParseFailure(f"Failed to populate message: {path}")

        return ParsedMessage(headers=header_map(message), message=message, recovered=recovered)

    def parse_stream(self, stream: BinaryIO) -> tuple[EmailMessage | None, bool]:
        """Parse a seekable binary stream, recovering at most once.

        Returns:
            The constructed message (or None) and whether recovery was used.
        """
        message = self._construct(stream)
        if message is not None:
            return message, False

        stream.seek(0)
        skipped = self._skip_leading_lines(stream)
        logger.info("message_parse_recovery", skipped_bytes=skipped)
        return self._construct(stream), True

    def _construct(self, stream: BinaryIO) -> EmailMessage | None:
        message = BytesParser(policy=default).parse(stream)
        if len(message) == 0:
            # Not a single header could be read.
            return None
        return message

    def _skip_leading_lines(self, stream: BinaryIO) -> int:
        newlines = self.settings.recovery_skip_lines
        budget = self.settings.recovery_scan_limit
        consumed = 0

        while newlines > 0 and consumed < budget:
            byte = stream.read(1)
            if not byte:
                break
            consumed += 1
            if byte == b"\n":
                newlines -= 1

        return consumed

    def _rewritten(self, path: str) -> str:
        if self.path_rewriter is None:
            return path

        updated = self.path_rewriter.rewrite(path)
        if updated and updated != path:
            logger.debug("message_path_rewritten", path=path, rewritten=updated)
            return updated
        return path

    def _discard(self, path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("rewritten_message_cleanup_failed", path=path, error=str(exc))
