"""Rectangles and frames used by the atlas packer and the splitters."""
from __future__ import annotations

from dataclasses import dataclass

from texture_errors import InvalidParameterError


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle. ``right`` and ``bottom`` are exclusive."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def intersects(self, other: Rect) -> bool:
        """True if the two rectangles share at least one pixel."""
        if self.area == 0 or other.area == 0:
            return False
        return not (
            self.right <= other.x
            or other.right <= self.x
            or self.bottom <= other.y
            or other.bottom <= self.y
        )

    def contains(self, other: Rect) -> bool:
        return (
            self.x <= other.x
            and self.y <= other.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )


@dataclass
class Frame:
    """One source image to be placed in an atlas.

    The packer only ever writes ``x`` and ``y``.
    """

    name: str
    w: int
    h: int
    x: int = 0
    y: int = 0
    path: str = ""

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.w, self.h)

    def validate(self) -> None:
        """Raise InvalidParameterError unless both sides are positive integers."""
        for side, value in (("width", self.w), ("height", self.h)):
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidParameterError(
                    f"Frame '{self.name}' has invalid {side} {value!r}; "
                    "dimensions must be positive integers"
                )
