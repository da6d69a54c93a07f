"""Unit tests for attachment injection."""

from __future__ import annotations

from email import message_from_bytes
from email.policy import default
from pathlib import Path

import pytest

from mailstore.compose import AttachmentComposer, wrap_body
from mailstore.config import Settings
from mailstore.exceptions import AttachmentError
from mailstore.folder import Folder
from mailstore.message import MessageRecord


def _read(path: str):
    return message_from_bytes(Path(path).read_bytes(), policy=default)


@pytest.fixture
def notes(tmp_path) -> str:
    path = tmp_path / "notes.txt"
    path.write_bytes(b"hello notes\n")
    return str(path)


@pytest.fixture
def invoice(tmp_path) -> str:
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4 fake\n")
    return str(path)


@pytest.fixture
def composer(mock_settings, type_detector) -> AttachmentComposer:
    return AttachmentComposer(mock_settings, type_detector)


class TestAttachmentComposer:
    """Test suite for AttachmentComposer."""

    def test_no_attachments_leaves_file_unchanged(self, composer, write_message, simple_message) -> None:
        """Test that an empty attachment list does not touch the file."""
        path = write_message("cur/1:2,S")

        assert composer.add_attachments(path, []) is False

        assert Path(path).read_bytes() == simple_message

    def test_single_attachment(self, composer, write_message, notes, type_detector) -> None:
        """Test that one attachment produces a two-part multipart/mixed message."""
        path = write_message("cur/1:2,S")

        assert composer.add_attachments(path, [notes]) is True

        rebuilt = _read(path)
        children = list(rebuilt.iter_parts())
        assert rebuilt.get_content_type() == "multipart/mixed"
        assert rebuilt["subject"] == "Hello"
        assert rebuilt["mime-version"] == "1.0"
        assert len(children) == 2
        assert children[0].get_content_type() == "text/plain"
        assert children[0].get_content_charset() == "utf-8"
        assert children[0].get_content().strip() == "Hi Bob."
        assert children[1].get_filename() == "notes.txt"
        assert children[1]["content-transfer-encoding"] == "base64"
        assert children[1].get_payload(decode=True) == b"hello notes\n"
        assert type_detector.calls == [notes]

    def test_attachments_keep_input_order(self, composer, write_message, notes, invoice) -> None:
        """Test that attachments are appended in the order given."""
        path = write_message("cur/1:2,S")

        composer.add_attachments(path, [invoice, notes])

        children = list(_read(path).iter_parts())
        assert [c.get_filename() for c in children[1:]] == ["invoice.pdf", "notes.txt"]
        assert children[1].get_content_type() == "application/pdf"

    def test_multipart_original_is_nested(self, composer, write_message, multipart_message, notes) -> None:
        """Test that a multipart body is nested unchanged as the first part."""
        path = write_message("cur/2", multipart_message)

        composer.add_attachments(path, [notes])

        children = list(_read(path).iter_parts())
        assert len(children) == 2
        assert children[0].get_content_type() == "multipart/mixed"
        assert [p.get_filename() for p in children[0].iter_parts()] == [None, "report.csv", "logo.png"]
        assert children[1].get_filename() == "notes.txt"

    def test_temporary_file_is_removed(self, composer, write_message, notes, mock_settings) -> None:
        """Test that the temporary rebuild file is cleaned up."""
        path = write_message("cur/1:2,S")

        composer.add_attachments(path, [notes])

        assert list(mock_settings.tmp_dir.iterdir()) == []

    def test_missing_attachment_aborts(self, composer, write_message, simple_message, tmp_path) -> None:
        """Test that an unreadable attachment leaves the message untouched."""
        path = write_message("cur/1:2,S")

        with pytest.raises(AttachmentError):
            composer.add_attachments(path, [str(tmp_path / "missing.bin")])

        assert Path(path).read_bytes() == simple_message

    def test_missing_message_aborts(self, composer, maildir, notes) -> None:
        """Test that a missing message file aborts the rebuild."""
        with pytest.raises(AttachmentError):
            composer.add_attachments(str(maildir / "cur" / "gone"), [notes])

    def test_unusable_temp_dir_aborts(self, write_message, notes, simple_message, tmp_path, type_detector) -> None:
        """Test that a missing temp directory aborts before overwriting."""
        settings = Settings(tmp_dir=tmp_path / "no-such-dir")
        path = write_message("cur/1:2,S")

        with pytest.raises(AttachmentError):
            AttachmentComposer(settings, type_detector).add_attachments(path, [notes])

        assert Path(path).read_bytes() == simple_message

    def test_malformed_header_survives_rebuild(self, composer, write_message, malformed_header_message, notes) -> None:
        """Test that a header the structured parser rejects is written back verbatim."""
        path = write_message("cur/5", malformed_header_message)

        assert composer.add_attachments(path, [notes]) is True

        rebuilt = Path(path).read_bytes()
        assert b"Message-ID: <\n" in rebuilt
        assert [p.get_filename() for p in _read(path).iter_parts()] == [None, "notes.txt"]

    def test_serializer_failure_aborts(
        self, composer, write_message, notes, simple_message, mock_settings, monkeypatch
    ) -> None:
        """Test that a serialization error becomes an AttachmentError and leaves the original intact."""
        class FailingGenerator:
            def __init__(self, *args, **kwargs) -> None:
                pass

            def flatten(self, message) -> None:
                raise IndexError("list index out of range")

        monkeypatch.setattr("mailstore.compose.BytesGenerator", FailingGenerator)
        path = write_message("cur/1:2,S")

        with pytest.raises(AttachmentError):
            composer.add_attachments(path, [notes])

        assert Path(path).read_bytes() == simple_message
        assert list(mock_settings.tmp_dir.iterdir()) == []


def test_wrap_body_moves_content_headers() -> None:
    """Test that content headers move to the body part and the container becomes multipart."""
    message = message_from_bytes(
        b"Subject: hi\n"
        b"Content-Type: text/plain; charset=iso-8859-1\n"
        b"Content-Transfer-Encoding: quoted-printable\n"
        b"\n"
        b"caf=E9\n",
        policy=default,
    )

    body = wrap_body(message)

    assert message.get_content_type() == "multipart/mixed"
    assert message["subject"] == "hi"
    assert message["content-transfer-encoding"] is None
    assert body["content-transfer-encoding"] == "quoted-printable"
    assert body.get_content_type() == "text/plain"
    assert body.get_content_charset() == "utf-8"
    assert list(message.iter_parts()) == [body]


class TestRecordAttachments:
    """Test suite for attachment injection through a message record."""

    def test_parts_are_invalidated(self, maildir, write_message, context, notes) -> None:
        """Test that cached parts are rebuilt after attaching."""
        record = MessageRecord.local(write_message("cur/1:2,S"), Folder(str(maildir)), context)
        assert record.parts()[0].children == []

        assert record.add_attachments([notes]) is True

        root = record.parts()[0]
        assert root.mime_type == "multipart/mixed"
        assert len(root.children) == 1 + 1
        assert root.children[1].filename == "notes.txt"
        assert root.children[1].content == b"hello notes\n"

    def test_empty_list_is_a_no_op(self, maildir, write_message, context, simple_message) -> None:
        """Test that attaching nothing reports no change."""
        path = write_message("cur/1:2,S")
        record = MessageRecord.local(path, Folder(str(maildir)), context)

        assert record.add_attachments([]) is False
        assert Path(path).read_bytes() == simple_message

    def test_failure_is_reported(self, maildir, write_message, context, error_sink, tmp_path) -> None:
        """Test that a failed rebuild is reported to the error sink."""
        record = MessageRecord.local(write_message("cur/1:2,S"), Folder(str(maildir)), context)

        assert record.add_attachments([str(tmp_path / "missing.bin")]) is False
        assert len(error_sink.errors) == 1
        assert "missing.bin" in error_sink.errors[0]

    def test_malformed_header_is_not_fatal(
        self, maildir, write_message, context, error_sink, malformed_header_message, notes
    ) -> None:
        """Test that a malformed header neither blocks attaching nor hides headers."""
        record = MessageRecord.local(write_message("cur/5", malformed_header_message), Folder(str(maildir)), context)

        assert record.add_attachments([notes]) is True

        assert record.header("message-id") == "<"
        assert record.parts()[0].children[1].filename == "notes.txt"
        assert error_sink.errors == []
