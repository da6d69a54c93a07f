"""Maildir flag encoding.

Flags of a local message are encoded in its filename: an optional ``:2,``
marker followed by a run of single-character flags, e.g.
``Maildir/cur/1700000000.1234.host:2,RS``. A message sitting below a ``/new/``
directory additionally carries an implicit ``N`` flag.

The functions here are pure: they map paths to flag strings and back and
never touch the filesystem. Remote messages keep their flags in a
``RemoteFlags`` mirror instead, since there is no file to rename.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger()

INFO_MARKER = ":2,"
NEW_SEGMENT = "/new/"
CUR_SEGMENT = "/cur/"

NEW = "N"
SEEN = "S"


def normalize_flags(flags: str) -> str:
    """Sort ``flags`` and drop duplicate characters."""
    return "".join(sorted(set(flags)))


def flags_from_path(path: str) -> str:
    """Decode the flag set of a maildir path.

    Args:
        path: Path of the message file.

    Returns:
        The sorted, de-duplicated flags. ``N`` is included when the path
        contains a ``/new/`` segment.
    """
    if not path:
        return ""

    flags = ""
    offset = path.find(INFO_MARKER)
    if offset != -1:
        flags = path[offset + len(INFO_MARKER) :]

    if NEW_SEGMENT in path:
        flags += NEW

    return normalize_flags(flags)


def path_with_flags(path: str, flags: str) -> str:
    """Return ``path`` rewritten to carry exactly ``flags``.

    Everything from the ``:2,`` marker onwards is replaced; a path without a
    marker gets one appended.
    """
    offset = path.find(INFO_MARKER)
    base = path[:offset] if offset != -1 else path
    return base + INFO_MARKER + normalize_flags(flags)


def new_to_cur(path: str) -> str | None:
    """Return the sibling ``/cur/`` path of a message under ``/new/``.

    Returns:
        The rewritten path, or None if the path has no ``/new/`` segment.
    """
    offset = path.find(NEW_SEGMENT)
    if offset == -1:
        return None
    return path[:offset] + CUR_SEGMENT + path[offset + len(NEW_SEGMENT) :]


def is_unread(flags: str) -> bool:
    """A message is unread if flagged ``N`` or not flagged ``S``."""
    return NEW in flags or SEEN not in flags


def with_flag(flags: str, flag: str) -> str:
    return normalize_flags(flags + flag)


def without_flag(flags: str, flag: str) -> str:
    return normalize_flags(flags.replace(flag, ""))


class RemoteFlags:
    """In-memory flag mirror for a message held on a remote server.

    Every mutation keeps the flags sorted and unique and bumps
    ``logical_time``, which stands in for a modification time.
    """

    def __init__(self, flags: str = "") -> None:
        self._flags = normalize_flags(flags)
        self.logical_time = 0

    @property
    def flags(self) -> str:
        return self._flags

    def replace(self, flags: str) -> None:
        self._flags = normalize_flags(flags)
        self.logical_time += 1
        logger.debug("remote_flags_updated", flags=self._flags, logical_time=self.logical_time)

    def add(self, flag: str) -> bool:
        if flag in self._flags:
            return False
        self.replace(self._flags + flag)
        return True

    def remove(self, flag: str) -> bool:
        if flag not in self._flags:
            return False
        self.replace(without_flag(self._flags, flag))
        return True

    def __contains__(self, flag: str) -> bool:
        return flag in self._flags

    def __repr__(self) -> str:
        return f"RemoteFlags({self._flags!r}, logical_time={self.logical_time})"
