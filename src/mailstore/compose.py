"""Rebuild a stored message to carry additional attachments.

The existing body becomes the first part of a new ``multipart/mixed``
container and every file is appended as a base64 encoded attachment. The
result is written to a temporary file first and only then copied over the
original, so a failure part-way leaves the original untouched.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Sequence
from email.errors import HeaderParseError
from email.generator import BytesGenerator
from email.message import EmailMessage, MIMEPart
from email.parser import BytesParser
from email.policy import default

import structlog

from mailstore.config import Settings
from mailstore.exceptions import AttachmentError
from mailstore.mime.parser import unfold
from mailstore.mime.types import DEFAULT_CONTENT_TYPE, MagicTypeDetector, TypeDetector

logger = structlog.get_logger()

BODY_CONTENT_TYPE = 'text/plain; charset="UTF-8"'
TEMP_PREFIX = "mailstore"

# Raised by the structured header parser on malformed values.
HEADER_ERRORS = (HeaderParseError, IndexError, ValueError)


def _split_type(content_type: str) -> tuple[str, str]:
    maintype, _, subtype = content_type.partition(";")[0].strip().lower().partition("/")
    if not maintype or not subtype or maintype == "multipart":
        maintype, subtype = DEFAULT_CONTENT_TYPE.split("/")
    return maintype, subtype


def wrap_body(message: EmailMessage) -> MIMEPart:
    """Move the body of ``message`` into the first part of a multipart/mixed.

    The content headers travel with the body. A single-part body is
    relabelled as UTF-8 plain text.

    Returns:
        The new first part.
    """
    body = MIMEPart(policy=message.policy)
    moved: list[str] = []
    for name, raw in message.raw_items():
        key = name.lower()
        if key.startswith("content-") and key not in moved:
            body[name] = unfold(raw)
            moved.append(key)
    for key in moved:
        del message[key]

    body.set_payload(message.get_payload())
    if not body.is_multipart():
        del body["Content-Type"]
        body["Content-Type"] = BODY_CONTENT_TYPE

    message.set_payload([body])
    message["Content-Type"] = "multipart/mixed"
    if "MIME-Version" not in message:
        message["MIME-Version"] = "1.0"
    return body


class AttachmentComposer:
    """Append files as attachments to a message stored on disk."""

    def __init__(
        self,
        settings: Settings | None = None,
        type_detector: TypeDetector | None = None,
    ) -> None:
        """Initialize the composer.

        Args:
            settings: Application settings. If None, uses default settings.
            type_detector: Content-type detection for attachment files.
                If None, libmagic is used.
        """
        from mailstore.config import get_settings

        self.settings = settings or get_settings()
        self.type_detector = type_detector or MagicTypeDetector()

    def add_attachments(self, message_path: str, attachments: Sequence[str]) -> bool:
        """Rebuild ``message_path`` with ``attachments`` appended.

        Args:
            message_path: The message file to rewrite in place.
            attachments: Files to attach, in order.

        Returns:
            True if the message was rewritten, False if there was nothing to do.

        Raises:
            AttachmentError: If the message, an attachment or the temporary
                file cannot be used. The original is left untouched.
        """
        if not attachments:
            return False

        try:
            with open(message_path, "rb") as fh:
                message = BytesParser(policy=default).parse(fh)
        except OSError as exc:
            raise AttachmentError(f"Failed to open the message: {message_path}") from exc

        try:
            wrap_body(message)
        except HEADER_ERRORS as exc:
            raise AttachmentError(f"Failed to restructure the message: {message_path}: {exc}") from exc

        for path in attachments:
            message.attach(self._attachment_part(path))

        self._replace(message_path, message)
        logger.info("attachments_added", path=message_path, count=len(attachments))
        return True

    def _attachment_part(self, path: str) -> MIMEPart:
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            raise AttachmentError(f"Failed to open the attachment: {path}") from exc

        maintype, subtype = _split_type(self.type_detector.detect(path))
        part = MIMEPart(policy=default)
        part.set_content(
            data,
            maintype=maintype,
            subtype=subtype,
            cte="base64",
            disposition="attachment",
            filename=os.path.basename(path),
        )
        return part

    def _replace(self, message_path: str, message: EmailMessage) -> None:
        # The rebuilt message must never be written straight over the file
        # it was read from.
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=self.settings.tmp_dir)
        except OSError as exc:
            raise AttachmentError(f"Failed to create a temporary file in {self.settings.tmp_dir}") from exc

        try:
            with os.fdopen(fd, "wb") as out:
                BytesGenerator(out, policy=message.policy).flatten(message)
            shutil.copyfile(tmp_path, message_path)
        except OSError as exc:
            raise AttachmentError(f"Failed to write the rebuilt message: {message_path}") from exc
        except HEADER_ERRORS as exc:
            raise AttachmentError(f"Failed to serialize the rebuilt message: {message_path}: {exc}") from exc
        finally:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
