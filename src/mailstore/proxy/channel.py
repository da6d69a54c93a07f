"""Channel to the remote-mail helper process.

The helper speaks the remote protocol on our behalf. We send it one text
command per request, terminated by a newline, and block until the complete
response has arrived. Only one request is ever outstanding.

Commands:
    mark_read <id> <folder>
    mark_unread <id> <folder>
    delete_message <id> <folder>
    get_message <id> <folder>   (response is the raw message)
"""

from __future__ import annotations

import socket
import threading
from enum import Enum
from typing import Protocol

import structlog

from mailstore.config import Settings
from mailstore.exceptions import ConfigurationError, ProxyFailure
from mailstore.utils import retry_on_failure

logger = structlog.get_logger()

_READ_CHUNK = 65536


class ProxyCommand(str, Enum):
    """Commands understood by the remote-mail helper."""

    MARK_READ = "mark_read"
    MARK_UNREAD = "mark_unread"
    DELETE_MESSAGE = "delete_message"
    GET_MESSAGE = "get_message"


def build_command(command: ProxyCommand, message_id: int, folder: str) -> str:
    """Format a single request line."""
    return f"{command.value} {message_id} {folder}\n"


class ProxyChannel(Protocol):
    def request(self, command: str) -> bytes | None:
        """Send ``command`` and return the full response, or None on failure."""
        ...


class UnixSocketProxyChannel:
    """Proxy channel over a Unix domain socket.

    Each request opens a fresh connection, writes the command line, closes
    the write side and reads until the helper closes the connection.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the channel.

        Args:
            settings: Application settings. If None, uses default settings.

        Raises:
            ConfigurationError: If no proxy socket path is configured.
        """
        from mailstore.config import get_settings

        self.settings = settings or get_settings()
        if self.settings.proxy_socket_path is None:
            raise ConfigurationError(
                "No proxy socket configured. Set MAILSTORE_PROXY_SOCKET_PATH."
            )
        self._socket_path = str(self.settings.proxy_socket_path)
        self._lock = threading.Lock()
        logger.info("proxy_channel_initialized", socket_path=self._socket_path)

    def request(self, command: str) -> bytes | None:
        """Send a command and return the response.

        Failures are logged and reported as None; callers treat that as a
        no-op.
        """
        verb = command.split(" ", 1)[0]
        with self._lock:
            try:
                response = self._round_trip(command)
            except ProxyFailure as exc:
                logger.warning("proxy_request_failed", command=verb, error=str(exc))
                return None

        logger.debug("proxy_request_completed", command=verb, response_bytes=len(response))
        return response

    def _round_trip(self, command: str) -> bytes:
        try:
            sock = retry_on_failure(
                max_retries=self.settings.proxy_connect_retries,
                delay=0.1,
                exceptions=(OSError,),
            )(self._connect)()
        except OSError as exc:
            raise ProxyFailure(f"cannot connect to {self._socket_path}: {exc}") from exc

        chunks: list[bytes] = []
        try:
            with sock:
                sock.sendall(command.encode("utf-8"))
                sock.shutdown(socket.SHUT_WR)
                while True:
                    chunk = sock.recv(_READ_CHUNK)
                    if not chunk:
                        break
                    chunks.append(chunk)
        except OSError as exc:
            raise ProxyFailure(str(exc)) from exc

        return b"".join(chunks)

    def _connect(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.settings.proxy_timeout)
        try:
            sock.connect(self._socket_path)
        except OSError:
            sock.close()
            raise
        return sock
