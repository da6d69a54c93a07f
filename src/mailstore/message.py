"""A single message, stored locally in a maildir or remotely on a server.

``MessageRecord`` gives both kinds of message the same interface: header and
MIME-part access (parsed lazily and cached), flag handling, read/unread
transitions, deletion and attachment injection.

Local messages keep their flags in the maildir filename, so flag changes
rename the file. Remote messages keep an in-memory mirror of their flags and
forward state changes to the remote-mail helper; their body is fetched into a
local cache file the first time it is needed.
"""

from __future__ import annotations

import os
from collections.abc import Sequence

import structlog

from mailstore import flags as flagcodec
from mailstore.compose import AttachmentComposer
from mailstore.exceptions import AttachmentError, OpenFailure, ParseFailure, RenameFailure
from mailstore.flags import NEW, SEEN, RemoteFlags
from mailstore.folder import ParentFolder
from mailstore.hooks import MessageContext
from mailstore.mime.builder import MimeTreeBuilder
from mailstore.mime.parser import RecoveringParser
from mailstore.models import LocalLocation, Location, Part, RemoteLocation
from mailstore.proxy.channel import ProxyCommand, build_command

logger = structlog.get_logger()


def _flag_char(flag: str) -> str:
    if len(flag) != 1:
        raise ValueError(f"a flag is a single character, got {flag!r}")
    return flag.upper()


class MessageRecord:
    """A message together with its lazily loaded headers and MIME parts.

    Attributes:
        parent: The folder holding this message. Not owned by the record.
        context: Shared collaborators (settings, proxy, error sink, ...).
    """

    def __init__(
        self,
        location: Location,
        parent: ParentFolder,
        context: MessageContext | None = None,
    ) -> None:
        self._location = location
        self.parent = parent
        self.context = context or MessageContext()

        self._headers: dict[str, str] = {}
        self._parts: list[Part] = []
        self._remote_flags = RemoteFlags() if isinstance(location, RemoteLocation) else None

    @classmethod
    def local(
        cls,
        path: str,
        parent: ParentFolder,
        context: MessageContext | None = None,
    ) -> MessageRecord:
        """Create a record for a maildir file."""
        return cls(LocalLocation(path=path), parent, context)

    @classmethod
    def remote(
        cls,
        server_id: int,
        cache_path: str,
        parent: ParentFolder,
        flags: str = "",
        context: MessageContext | None = None,
    ) -> MessageRecord:
        """Create a record for a message listed by a remote folder.

        Args:
            server_id: The message id on the server.
            cache_path: Where the body is cached once fetched.
            parent: The remote folder holding the message.
            flags: Flags reported by the server at listing time.
            context: Shared collaborators.
        """
        record = cls(RemoteLocation(server_id=server_id, cache_path=cache_path), parent, context)
        if flags:
            record.set_remote_flags(flags)
        return record

    @property
    def is_local(self) -> bool:
        return isinstance(self._location, LocalLocation)

    @property
    def is_remote(self) -> bool:
        return isinstance(self._location, RemoteLocation)

    @property
    def location(self) -> Location:
        return self._location

    @property
    def path(self) -> str:
        """Path of the message file; remote bodies are fetched on first use."""
        if isinstance(self._location, RemoteLocation):
            self.lazy_load()
            return self._location.cache_path
        return self._location.path

    @property
    def logical_time(self) -> int:
        """Revision counter of the remote flag mirror (0 for local messages)."""
        if self._remote_flags is None:
            return 0
        return self._remote_flags.logical_time

    # Headers and parts

    def header(self, name: str) -> str:
        """Return the decoded value of header ``name``, or "" if absent."""
        return self.headers().get(name.lower(), "")

    def headers(self) -> dict[str, str]:
        """Return all headers, keyed by lower-cased name."""
        # An empty cache always means "not loaded yet".
        if not self._headers:
            self._populate()
        return dict(self._headers)

    def parts(self) -> list[Part]:
        """Return the root MIME part(s) of the message."""
        if not self._parts:
            self._populate()
        return list(self._parts)

    def _populate(self) -> None:
        parser = RecoveringParser(self.context.settings, self.context.path_rewriter)
        try:
            parsed = parser.parse_file(self.path)
        except (OpenFailure, ParseFailure) as exc:
            self.context.error_sink.on_error(str(exc))
            return

        root = MimeTreeBuilder(self.context.settings).build(parsed.message)
        self._headers = parsed.headers
        self._parts = [root]

    # Flags

    def get_flags(self) -> str:
        """Return the sorted, de-duplicated flags of the message."""
        if self._remote_flags is not None:
            return self._remote_flags.flags
        return flagcodec.flags_from_path(self.path)

    def set_flags(self, flags: str) -> bool:
        """Replace the flags of the message.

        Local messages are renamed to carry the new flags. If the rename
        fails the error is reported and nothing changes.

        Returns:
            True if the flags are now ``flags``, False on failure.
        """
        if self._remote_flags is not None:
            self.set_remote_flags(flags)
            return True

        try:
            self._rename(flagcodec.path_with_flags(self.path, flags))
        except RenameFailure as exc:
            self.context.error_sink.on_error(str(exc))
            return False
        return True

    def set_remote_flags(self, flags: str) -> None:
        """Install the flag mirror of a remote message."""
        if self._remote_flags is None:
            raise TypeError("only remote messages have a flag mirror")
        self._remote_flags.replace(flags)
        self.parent.bump_mtime()

    def has_flag(self, flag: str) -> bool:
        flag = _flag_char(flag)
        if self._remote_flags is not None:
            return flag in self._remote_flags
        return flag in self.get_flags()

    def add_flag(self, flag: str) -> bool:
        """Add ``flag``; return True if it was not present before."""
        flag = _flag_char(flag)
        if self._remote_flags is not None:
            return self._touch_parent(self._remote_flags.add(flag))

        current = self.get_flags()
        if flag in current:
            return False
        return self.set_flags(current + flag)

    def remove_flag(self, flag: str) -> bool:
        """Remove ``flag``; return True if it was present and removed."""
        flag = _flag_char(flag)
        if self._remote_flags is not None:
            return self._touch_parent(self._remote_flags.remove(flag))

        current = self.get_flags()
        if flag not in current:
            return False
        return self.set_flags(flagcodec.without_flag(current, flag))

    def _touch_parent(self, changed: bool) -> bool:
        if changed:
            self.parent.bump_mtime()
        return changed

    def is_new(self) -> bool:
        return flagcodec.is_unread(self.get_flags())

    def _rename(self, destination: str) -> None:
        if not isinstance(self._location, LocalLocation):
            raise TypeError("only local messages can be renamed")
        source = self._location.path
        if source == destination:
            return

        try:
            os.rename(source, destination)
        except OSError as exc:
            raise RenameFailure(f"Failed to rename {source} to {destination}: {exc.strerror or exc}") from exc

        self._location.path = destination
        logger.debug("message_renamed", source=source, destination=destination)

    # Read state

    def mark_read(self) -> None:
        """Mark the message as read (seen)."""
        if self._remote_flags is not None:
            self._send(ProxyCommand.MARK_READ)
            self._remote_flags.replace(
                flagcodec.with_flag(flagcodec.without_flag(self._remote_flags.flags, NEW), SEEN)
            )
            self.parent.bump_mtime()
            self.parent.set_unread(max(self.parent.unread_messages() - 1, 0))
            return

        current = self.path
        moved = flagcodec.new_to_cur(current)
        if moved is not None:
            try:
                self._rename(moved)
            except RenameFailure as exc:
                self.context.error_sink.on_error(str(exc))
                return
            self.add_flag(SEEN)
            return

        self.remove_flag(NEW)
        self.add_flag(SEEN)

    def mark_unread(self) -> None:
        """Mark the message as unread.

        A local message stays in its directory; only the ``S`` flag goes.
        """
        if self._remote_flags is not None:
            self._send(ProxyCommand.MARK_UNREAD)
            self._remote_flags.replace(
                flagcodec.with_flag(flagcodec.without_flag(self._remote_flags.flags, SEEN), NEW)
            )
            self.parent.bump_mtime()
            self.parent.set_unread(self.parent.unread_messages() + 1)
            return

        if self.has_flag(SEEN):
            self.remove_flag(SEEN)

    # Storage

    def unlink(self) -> bool:
        """Delete the message.

        Returns:
            Whether the deletion succeeded.
        """
        if isinstance(self._location, RemoteLocation):
            self._send(ProxyCommand.DELETE_MESSAGE)
            self.parent.bump_mtime()
            self.context.index.update_messages()
            return True

        path = self._location.path
        try:
            os.unlink(path)
            deleted = True
        except OSError as exc:
            self.context.error_sink.on_error(f"Failed to delete the message file: {path} {exc.strerror or exc}")
            deleted = False

        logger.info("message_deleted", path=path, success=deleted)
        self.context.index.update_messages(deleted=True)
        return deleted

    def lazy_load(self) -> None:
        """Fetch the body of a remote message into its cache file, once."""
        if not isinstance(self._location, RemoteLocation):
            return

        cache_path = self._location.cache_path
        if os.path.exists(cache_path):
            return

        body = self._send(ProxyCommand.GET_MESSAGE)
        if body is None:
            return

        try:
            with open(cache_path, "ab") as fh:
                fh.write(body)
        except OSError as exc:
            self.context.error_sink.on_error(f"Failed to cache the message: {cache_path} {exc.strerror or exc}")
            return

        logger.debug("remote_message_cached", message_id=self._location.server_id, path=cache_path, size=len(body))

    def get_mtime(self) -> int:
        """Modification time: the file's mtime, or the logical time if remote."""
        if self._remote_flags is not None:
            return self._remote_flags.logical_time

        try:
            return int(os.stat(self.path).st_mtime)
        except OSError:
            return 1

    def add_attachments(self, attachments: Sequence[str]) -> bool:
        """Rewrite the message file with ``attachments`` appended.

        Returns:
            True if the message was rebuilt.
        """
        if not attachments:
            return False

        composer = AttachmentComposer(self.context.settings, self.context.type_detector)
        try:
            changed = composer.add_attachments(self.path, attachments)
        except AttachmentError as exc:
            self.context.error_sink.on_error(str(exc))
            return False

        self._parts = []
        return changed

    def _send(self, command: ProxyCommand) -> bytes | None:
        if not isinstance(self._location, RemoteLocation):
            raise TypeError("only remote messages talk to the proxy")
        proxy = self.context.proxy
        if proxy is None:
            logger.warning("proxy_unavailable", command=command.value, message_id=self._location.server_id)
            return None

        line = build_command(command, self._location.server_id, self.parent.path)
        return proxy.request(line)

    def __repr__(self) -> str:
        if isinstance(self._location, RemoteLocation):
            return f"MessageRecord(remote={self._location.server_id}, folder={self.parent.path!r})"
        return f"MessageRecord(path={self._location.path!r})"
