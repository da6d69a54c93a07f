"""mailstore - a uniform message core over maildir files and remote mailboxes.

This package provides the message entity, its MIME decoding pipeline, maildir
flag handling and attachment injection, for use by mail user interfaces.
"""

__version__ = "0.1.0"

from mailstore.config import Settings, get_settings
from mailstore.folder import Folder
from mailstore.hooks import MessageContext
from mailstore.message import MessageRecord
from mailstore.models import Part

__all__ = [
    "Folder",
    "MessageContext",
    "MessageRecord",
    "Part",
    "Settings",
    "get_settings",
    "__version__",
]
