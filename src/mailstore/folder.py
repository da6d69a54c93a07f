"""Parent folders of messages.

A record never owns its folder. It reads the folder's path and pushes
unread-count and modification changes up to it. Folders are expected to be
used from a single application thread, so no locking is done here.
"""

from __future__ import annotations

from typing import Protocol

import structlog

logger = structlog.get_logger()


class ParentFolder(Protocol):
    """What a message needs from the folder that holds it."""

    @property
    def path(self) -> str: ...

    def unread_messages(self) -> int: ...

    def set_unread(self, count: int) -> None: ...

    def bump_mtime(self) -> None: ...


class Folder:
    """A maildir or remote mailbox as seen by its messages.

    ``mtime`` is a logical modification marker, bumped whenever a message
    below the folder changes in a way that invalidates cached listings.
    """

    def __init__(self, path: str, unread: int = 0) -> None:
        self._path = path
        self._unread = max(unread, 0)
        self.mtime = 0

    @property
    def path(self) -> str:
        return self._path

    def unread_messages(self) -> int:
        return self._unread

    def set_unread(self, count: int) -> None:
        self._unread = max(count, 0)

    def bump_mtime(self) -> None:
        self.mtime += 1
        logger.debug("folder_mtime_bumped", folder=self._path, mtime=self.mtime)

    def __repr__(self) -> str:
        return f"Folder({self._path!r}, unread={self._unread}, mtime={self.mtime})"
