"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

SIMPLE_MESSAGE = (
    b"From: Alice <alice@example.com>\n"
    b"To: bob@example.com\n"
    b"Subject: Hello\n"
    b"Message-ID: <1@example.com>\n"
    b"\n"
    b"Hi Bob.\n"
)

MULTIPART_MESSAGE = (
    b"From: Alice <alice@example.com>\n"
    b"To: bob@example.com\n"
    b"Subject: Quarterly report\n"
    b"MIME-Version: 1.0\n"
    b'Content-Type: multipart/mixed; boundary="XYZ"\n'
    b"\n"
    b"--XYZ\n"
    b"Content-Type: text/plain; charset=us-ascii\n"
    b"\n"
    b"See attached.\n"
    b"--XYZ\n"
    b"Content-Type: text/csv\n"
    b'Content-Disposition: attachment; filename="report.csv"\n'
    b"Content-Transfer-Encoding: base64\n"
    b"\n"
    b"YSxiLGMKMSwyLDMK\n"
    b"--XYZ\n"
    b'Content-Type: image/png; name="logo.png"\n'
    b"Content-Transfer-Encoding: base64\n"
    b"\n"
    b"iVBORw0KGgo=\n"
    b"--XYZ--\n"
)

MALFORMED_HEADER_MESSAGE = (
    b"From: a@b\n"
    b"Subject: hi\n"
    b"Message-ID: <\n"
    b"\n"
    b"body\n"
)


class RecordingErrorSink:
    """Error sink that remembers every report."""

    def __init__(self) -> None:
        self.errors: list[str] = []

    def on_error(self, message: str) -> None:
        self.errors.append(message)


class RecordingIndex:
    """Message index that remembers refresh requests."""

    def __init__(self) -> None:
        self.updates: list[bool] = []

    def update_messages(self, deleted: bool = False) -> None:
        self.updates.append(deleted)


class FakeProxy:
    """Proxy channel returning canned responses and recording commands."""

    def __init__(self, responses: dict[str, bytes] | None = None) -> None:
        self.responses = responses or {}
        self.commands: list[str] = []

    def request(self, command: str) -> bytes | None:
        self.commands.append(command)
        verb = command.split(" ", 1)[0]
        return self.responses.get(verb, b"")


class FakeTypeDetector:
    """Type detector keyed on file extension."""

    types = {".txt": "text/plain", ".pdf": "application/pdf", ".png": "image/png"}

    def __init__(self) -> None:
        self.calls: list[str] = []

    def detect(self, path: str) -> str:
        self.calls.append(path)
        return self.types.get(Path(path).suffix, "application/octet-stream")


@pytest.fixture
def mock_settings(tmp_path):
    """Provide settings for testing with a private temp directory."""
    from mailstore.config import Settings

    tmp_dir = tmp_path / "tmp-rebuild"
    tmp_dir.mkdir()
    return Settings(tmp_dir=tmp_dir, log_level="DEBUG", debug=True)


@pytest.fixture
def maildir(tmp_path) -> Path:
    """Provide an empty maildir with cur/, new/ and tmp/."""
    root = tmp_path / "Maildir"
    for sub in ("cur", "new", "tmp"):
        (root / sub).mkdir(parents=True)
    return root


@pytest.fixture
def error_sink() -> RecordingErrorSink:
    return RecordingErrorSink()


@pytest.fixture
def message_index() -> RecordingIndex:
    return RecordingIndex()


@pytest.fixture
def fake_proxy() -> FakeProxy:
    return FakeProxy({"get_message": SIMPLE_MESSAGE})


@pytest.fixture
def type_detector() -> FakeTypeDetector:
    return FakeTypeDetector()


@pytest.fixture
def context(mock_settings, error_sink, message_index, fake_proxy, type_detector):
    """Provide a message context wired to the recording fakes."""
    from mailstore.hooks import MessageContext

    return MessageContext(
        settings=mock_settings,
        proxy=fake_proxy,
        error_sink=error_sink,
        index=message_index,
        type_detector=type_detector,
    )


@pytest.fixture
def write_message(maildir):
    """Write raw message bytes below the maildir and return the path."""

    def _write(name: str, data: bytes = SIMPLE_MESSAGE) -> str:
        path = maildir / name
        path.write_bytes(data)
        return str(path)

    return _write


@pytest.fixture
def simple_message() -> bytes:
    return SIMPLE_MESSAGE


@pytest.fixture
def multipart_message() -> bytes:
    return MULTIPART_MESSAGE


@pytest.fixture
def malformed_header_message() -> bytes:
    return MALFORMED_HEADER_MESSAGE
