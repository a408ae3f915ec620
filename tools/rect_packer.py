"""Greedy growing bin packer for atlas frames.

Frames are sorted largest first, the first one seeds the tree, and every
later frame either drops into a free leaf or grows the atlas right or down
to make room. Growth prefers whichever direction keeps the atlas closer to
square. The result is a heuristic, not an optimal packing.

Typical usage:
    frames = [Frame("a", 10, 10), Frame("b", 20, 5)]
    bounds = RectanglePacker().pack(frames)
    # frames now carry x/y; bounds is the atlas Rect
"""
from __future__ import annotations

import enum
import logging
from typing import Iterable

from atlas_geometry import Frame, Rect
from packing_tree import Node, grow_down, grow_right
from texture_errors import InvalidParameterError, PackingError

logger = logging.getLogger(__name__)


class SortMethod(enum.Enum):
    """How frames are ordered before packing. All orders are largest first."""

    MAX_SIDE = "max-side"  # max(w, h), then min(w, h)
    HEIGHT = "height"      # h, then w
    WIDTH = "width"        # w, then h


_SORT_KEYS = {
    SortMethod.MAX_SIDE: lambda f: (max(f.w, f.h), min(f.w, f.h)),
    SortMethod.HEIGHT: lambda f: (f.h, f.w),
    SortMethod.WIDTH: lambda f: (f.w, f.h),
}


def sort_frames(frames: Iterable[Frame], method: SortMethod = SortMethod.MAX_SIDE) -> list[Frame]:
    """Return frames sorted descending by ``method``; ties keep input order."""
    return sorted(frames, key=_SORT_KEYS[method], reverse=True)


class RectanglePacker:
    """Packs frames into the smallest atlas the growth heuristic finds.

    Attributes:
        sort_method: Pre-sort order for frames.
        padding: Extra pixels added to each frame's footprint on the right
            and bottom. Frame sizes themselves are never changed.
        root: Root of the packing tree after the last ``pack`` call, or None.
    """

    def __init__(self, sort_method: SortMethod = SortMethod.MAX_SIDE, padding: int = 0):
        if padding < 0:
            raise InvalidParameterError(f"Padding must be non-negative, got {padding}")
        self.sort_method = sort_method
        self.padding = padding
        self.root: Node | None = None

    def pack(self, frames: Iterable[Frame]) -> Rect | None:
        """Assign x/y to every frame and return the atlas bounds.

        Returns None (and places nothing) when ``frames`` is empty.

        Raises:
            InvalidParameterError: If any frame has a non-positive size.
            PackingError: If a frame cannot be placed after growing.
        """
        frames = list(frames)
        for frame in frames:
            frame.validate()
        self.root = None
        if not frames:
            return None

        ordered = sort_frames(frames, self.sort_method)
        seed = ordered[0]
        seed_w, seed_h = self._footprint(seed)
        self.root = Node(Rect(0, 0, seed_w, seed_h), occupied=True)
        seed.x, seed.y = 0, 0
        logger.debug("Seeded atlas with '%s' (%dx%d)", seed.name, seed_w, seed_h)

        for frame in ordered[1:]:
            width, height = self._footprint(frame)
            node = self.root.find(width, height)
            if node is None:
                node = self._grow(frame, width, height)
            node.split(width, height)
            frame.x, frame.y = node.bounds.x, node.bounds.y

        bounds = self.root.bounds
        logger.debug("Packed %d frame(s) into %dx%d", len(frames), bounds.width, bounds.height)
        return bounds

    def _footprint(self, frame: Frame) -> tuple[int, int]:
        return frame.w + self.padding, frame.h + self.padding

    def _grow(self, frame: Frame, width: int, height: int) -> Node:
        """Extend the atlas so a free leaf fits ``width`` x ``height``."""
        atlas = self.root.bounds
        can_grow_down = width <= atlas.width
        can_grow_right = height <= atlas.height
        should_grow_right = can_grow_right and atlas.height >= atlas.width + width
        should_grow_down = can_grow_down and atlas.width >= atlas.height + height

        if should_grow_right or (can_grow_right and not should_grow_down):
            self.root = grow_right(self.root, width)
            direction = "right"
        elif can_grow_down:
            self.root = grow_down(self.root, height)
            direction = "down"
        else:
            raise PackingError(
                f"Cannot grow {atlas.width}x{atlas.height} atlas to fit frame "
                f"'{frame.name}' ({frame.w}x{frame.h})"
            )

        logger.debug(
            "Grew atlas %s to %dx%d for '%s'",
            direction, self.root.bounds.width, self.root.bounds.height, frame.name,
        )
        node = self.root.find(width, height)
        if node is None:
            raise PackingError(
                f"Grown atlas has no free space for frame '{frame.name}' ({frame.w}x{frame.h})"
            )
        return node
