"""Turn a parsed ``email`` object graph into a tree of ``Part`` nodes."""

from __future__ import annotations

from email.message import Message

import structlog

from mailstore.config import Settings
from mailstore.models import Part

logger = structlog.get_logger()


def _content_type(node: Message) -> str:
    ctype = node.get_content_type()
    charset = node.get_param("charset")
    if isinstance(charset, str) and charset:
        return f"{ctype}; charset={charset}"
    return ctype


def _is_container(node: Message) -> bool:
    return node.get_content_maintype() == "multipart"


def _raw_content(node: Message) -> bytes:
    if node.get_content_type() == "message/partial":
        return b""

    payload = node.get_payload()
    if isinstance(payload, list):
        if _is_container(node):
            return b""
        # message/rfc822 holds the embedded message, message/delivery-status
        # a list of header blocks.
        return b"".join(sub.as_bytes() for sub in payload)

    decoded = node.get_payload(decode=True)
    return decoded if isinstance(decoded, bytes) else b""


class MimeTreeBuilder:
    """Recursively convert parser output into owned ``Part`` trees.

    Text parts can optionally be normalized to UTF-8; see
    ``Settings.charset_conversion``.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        from mailstore.config import get_settings

        self.settings = settings or get_settings()

    def build(self, node: Message) -> Part:
        """Build the ``Part`` for ``node`` and, for multiparts, its children.

        Args:
            node: A message or MIME part from the ``email`` package.

        Returns:
            The root of the newly built tree.
        """
        content = _raw_content(node)
        if self.settings.charset_conversion:
            content = self._convert_charset(node, content)

        part = Part(
            content_type=_content_type(node),
            content=content,
            attachment_name=node.get_filename(),
        )

        if _is_container(node) and node.is_multipart():
            for child in node.get_payload():
                part.add_child(self.build(child))

        return part

    def _convert_charset(self, node: Message, content: bytes) -> bytes:
        if node.get_content_type() != "text/plain":
            return content

        charset = node.get_param("charset")
        if not isinstance(charset, str) or not charset or charset.lower() == "utf-8":
            return content

        try:
            return content.decode(charset).encode("utf-8")
        except (LookupError, UnicodeError) as exc:
            logger.warning("charset_conversion_failed", charset=charset, error=str(exc))
            return content
