"""MIME decoding: recovering parser, part-tree builder and type detection."""

from .builder import MimeTreeBuilder
from .parser import ParsedMessage, RecoveringParser, header_map
from .types import DEFAULT_CONTENT_TYPE, MagicTypeDetector, TypeDetector

__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "MagicTypeDetector",
    "MimeTreeBuilder",
    "ParsedMessage",
    "RecoveringParser",
    "TypeDetector",
    "header_map",
]
