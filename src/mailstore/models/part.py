"""MIME part tree node.

A ``Part`` owns its decoded bytes and its children. The ``parent_part``
back-reference is non-owning and only used for read-side structural queries.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass(eq=False)
class Part:
    """A single node of a message's MIME tree."""

    content_type: str
    content: bytes = b""
    attachment_name: str | None = None
    children: list[Part] = field(default_factory=list)
    parent_part: Part | None = field(default=None, repr=False)

    @property
    def is_attachment(self) -> bool:
        """Whether the part carries a filename."""
        return self.attachment_name is not None

    @property
    def filename(self) -> str:
        return self.attachment_name or ""

    @property
    def mime_type(self) -> str:
        """The bare ``type/subtype`` without parameters, lower-cased."""
        return self.content_type.split(";", 1)[0].strip().lower()

    def add_child(self, child: Part) -> None:
        """Attach ``child`` as the last child of this part.

        Raises:
            ValueError: If ``child`` already belongs to another part, or if
                attaching it would create a cycle.
        """
        if child.parent_part is not None:
            raise ValueError("part already has a parent")

        node: Part | None = self
        while node is not None:
            if node is child:
                raise ValueError("attaching part would create a cycle")
            node = node.parent_part

        child.parent_part = self
        self.children.append(child)

    def walk(self) -> Iterator[Part]:
        """Yield this part and all descendants, depth-first and pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def content_text(self, encoding: str = "utf-8") -> str:
        """Decode the content bytes, replacing undecodable sequences."""
        return self.content.decode(encoding, errors="replace")
