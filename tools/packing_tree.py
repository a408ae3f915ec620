"""Binary space-partition tree used by the rectangle packer.

An occupied leaf holds one frame at its top-left corner. Splitting it
creates up to two children covering the rest of its bounds:

    +-------+-----------+
    | frame |           |
    +-------+  second   |
    | first |  (right)  |
    | (down)|           |
    +-------+-----------+

The right strip spans the full leaf height, so the corner opposite the
frame belongs to it alone. Internal nodes created by growing the atlas are
also marked occupied; their children partition their bounds exactly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from atlas_geometry import Rect


@dataclass(eq=False)
class Node:
    bounds: Rect
    occupied: bool = False
    first: Node | None = None
    second: Node | None = None

    @property
    def is_leaf(self) -> bool:
        return self.first is None and self.second is None

    def find(self, width: int, height: int) -> Node | None:
        """Return the first free leaf at least ``width`` x ``height``, or None.

        Occupied nodes are searched right (``second``) before down (``first``).
        """
        # Explicit stack: trees for large frame sets outgrow the recursion limit.
        stack = [self]
        while stack:
            node = stack.pop()
            if node.occupied:
                for child in (node.first, node.second):
                    if child is not None:
                        stack.append(child)
            elif width <= node.bounds.width and height <= node.bounds.height:
                return node
        return None

    def split(self, width: int, height: int) -> Node:
        """Claim the top-left ``width`` x ``height`` of this leaf.

        Returns self so callers can read the placement from ``bounds``.
        """
        if self.occupied or not self.is_leaf:
            raise ValueError(f"Cannot split a node that is already in use: {self.bounds}")
        b = self.bounds
        self.occupied = True
        if b.height > height:
            self.first = Node(Rect(b.x, b.y + height, width, b.height - height))
        if b.width > width:
            self.second = Node(Rect(b.x + width, b.y, b.width - width, b.height))
        return self

    def leaves(self) -> Iterator[Node]:
        stack = [self]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                yield node
                continue
            for child in (node.second, node.first):
                if child is not None:
                    stack.append(child)


def grow_right(root: Node, width: int) -> Node:
    """Return a new root extending ``root`` by a ``width``-wide strip on the right."""
    b = root.bounds
    strip = Node(Rect(b.right, 0, width, b.height))
    return Node(Rect(0, 0, b.width + width, b.height), occupied=True, first=root, second=strip)


def grow_down(root: Node, height: int) -> Node:
    """Return a new root extending ``root`` by a ``height``-tall strip below."""
    b = root.bounds
    strip = Node(Rect(0, b.bottom, b.width, height))
    return Node(Rect(0, 0, b.width, b.height + height), occupied=True, first=strip, second=root)
