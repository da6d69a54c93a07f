"""Where a message physically lives.

A record is backed either by a file in a maildir (``LocalLocation``) or by a
message on a remote server, cached on demand at ``cache_path``
(``RemoteLocation``). Exactly one of the two is used for a record's lifetime.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class LocalLocation:
    """A maildir file. The path changes when flags or directories change."""

    path: str


@dataclass(frozen=True)
class RemoteLocation:
    """A message identified by its server-side id within its parent folder."""

    server_id: int
    cache_path: str


Location = LocalLocation | RemoteLocation
