"""Data models for mailstore.

This module contains the message location variant and the MIME part tree node.
"""

from mailstore.models.location import LocalLocation, Location, RemoteLocation
from mailstore.models.part import Part

__all__ = ["LocalLocation", "Location", "Part", "RemoteLocation"]
