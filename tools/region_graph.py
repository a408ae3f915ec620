"""Find disjoint non-background islands in an RGBA image.

A single raster pass labels every foreground pixel with a Region, merging
regions whenever a pixel touches more than one of them. Merged regions are
not rewritten; the absorbed one simply points at its superset. After the
scan each region is resolved to its canonical (non-superseded) region once,
and that lookup classifies every pixel.

Bounding boxes of different islands may overlap, so tiles are extracted
pixel by pixel: only pixels owned by the island are copied, everything
else in its box is left transparent.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from PIL import Image

from texture_errors import InvalidParameterError

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r"[0-9a-fA-F]{6}|[0-9a-fA-F]{8}")

# Islands whose bounding box covers this many pixels or fewer are noise.
DEFAULT_NOISE_AREA = 4

TRANSPARENT = (0, 0, 0, 0)

RGBA = tuple[int, int, int, int]


def parse_background(spec: str | None) -> RGBA | None:
    """Parse an ``RRGGBB`` or ``RRGGBBAA`` hex color.

    None or "" means "no color": background is any pixel with zero alpha.
    Six-digit colors are fully opaque.
    """
    if not spec:
        return None
    if not HEX_COLOR_RE.fullmatch(spec):
        raise InvalidParameterError(
            f"Background color '{spec}' must be empty or a 6 or 8 digit hex string"
        )
    r, g, b = (int(spec[i:i + 2], 16) for i in (0, 2, 4))
    a = int(spec[6:8], 16) if len(spec) == 8 else 255
    return (r, g, b, a)


@dataclass
class Region:
    """Inclusive bounding box of a group of pixels."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int
    superset_of: int | None = None  # index of the region this one merged into

    @property
    def box(self) -> tuple[int, int, int, int]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def area(self) -> int:
        return self.width * self.height

    def expand(self, x: int, y: int) -> None:
        self.min_x = min(self.min_x, x)
        self.min_y = min(self.min_y, y)
        self.max_x = max(self.max_x, x)
        self.max_y = max(self.max_y, y)

    def absorb(self, other: Region) -> None:
        self.min_x = min(self.min_x, other.min_x)
        self.min_y = min(self.min_y, other.min_y)
        self.max_x = max(self.max_x, other.max_x)
        self.max_y = max(self.max_y, other.max_y)


class RegionGraph:
    """Connected-component labelling over a flat RGBA pixel sequence.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        pixels: Row-major RGBA tuples, ``width * height`` of them.
        background: Exact RGBA color treated as background, or None to
            treat zero-alpha pixels as background.
        diagonals: Connect pixels that only touch at a corner (8-connectivity).
    """

    def __init__(
        self,
        width: int,
        height: int,
        pixels: Sequence[RGBA],
        background: RGBA | None = None,
        diagonals: bool = True,
    ):
        if width <= 0 or height <= 0:
            raise InvalidParameterError(f"Image dimensions must be positive, got {width}x{height}")
        if len(pixels) != width * height:
            raise InvalidParameterError(
                f"Expected {width * height} pixels for {width}x{height}, got {len(pixels)}"
            )
        self.width = width
        self.height = height
        self.pixels = pixels
        self.background = background
        self.diagonals = diagonals
        self.regions: list[Region] = []
        # Region index each pixel was labelled with during the scan (may be superseded).
        self.labels: list[int | None] = [None] * (width * height)
        self._owners: list[int | None] | None = None
        self._scanned = False

    @classmethod
    def from_image(cls, img: Image.Image, background: RGBA | None = None, diagonals: bool = True) -> RegionGraph:
        img = img.convert("RGBA")
        return cls(img.width, img.height, list(img.getdata()), background, diagonals)

    def is_foreground(self, pixel: RGBA) -> bool:
        if self.background is None:
            return pixel[3] != 0
        return tuple(pixel) != self.background

    def canonical(self, index: int) -> int:
        """Follow superset links to the surviving region, compressing the path."""
        regions = self.regions
        root = index
        while regions[root].superset_of is not None:
            root = regions[root].superset_of
        while regions[index].superset_of is not None and regions[index].superset_of != root:
            regions[index].superset_of, index = root, regions[index].superset_of
        return root

    def scan(self) -> RegionGraph:
        """Label every foreground pixel. Runs once; later calls are no-ops."""
        if self._scanned:
            return self
        width, height = self.width, self.height
        labels = self.labels
        regions = self.regions
        pixels = self.pixels

        for y in range(height):
            row = y * width
            for x in range(width):
                if not self.is_foreground(pixels[row + x]):
                    continue

                # Preference order decides which region survives a merge.
                neighbours = []
                if y > 0:
                    above = row - width
                    if self.diagonals and x > 0:
                        neighbours.append(labels[above + x - 1])
                    neighbours.append(labels[above + x])
                    if self.diagonals and x < width - 1:
                        neighbours.append(labels[above + x + 1])
                if x > 0:
                    neighbours.append(labels[row + x - 1])

                touched = []
                for label in neighbours:
                    if label is None:
                        continue
                    root = self.canonical(label)
                    if root not in touched:
                        touched.append(root)

                if not touched:
                    regions.append(Region(x, y, x, y))
                    labels[row + x] = len(regions) - 1
                    continue

                survivor = touched[0]
                target = regions[survivor]
                for other in touched[1:]:
                    regions[other].superset_of = survivor
                    target.absorb(regions[other])
                target.expand(x, y)
                labels[row + x] = survivor

        self._scanned = True
        logger.debug(
            "Scanned %dx%d image: %d region(s), %d island(s)",
            width, height, len(regions), len(self.roots()),
        )
        return self

    def roots(self) -> list[int]:
        return [i for i, region in enumerate(self.regions) if region.superset_of is None]

    def canonical_table(self) -> list[int]:
        """Canonical region index for every region index ever created."""
        self.scan()
        return [self.canonical(i) for i in range(len(self.regions))]

    def owners(self) -> list[int | None]:
        """Canonical owning region for each pixel, None for background."""
        if self._owners is None:
            table = self.canonical_table()
            self._owners = [None if label is None else table[label] for label in self.labels]
        return self._owners

    def owner_at(self, x: int, y: int) -> int | None:
        return self.owners()[y * self.width + x]

    def islands(self, skip_small: bool = True, noise_area: int = DEFAULT_NOISE_AREA) -> list[int]:
        """Canonical region indices in creation order, optionally minus noise."""
        self.scan()
        roots = self.roots()
        if skip_small:
            roots = [i for i in roots if self.regions[i].area > noise_area]
        return roots

    def box(self, index: int) -> tuple[int, int, int, int]:
        """Inclusive ``(x, y, x2, y2)`` box of a canonical region."""
        return self.regions[self.canonical(index)].box

    def extract(self, index: int) -> Image.Image:
        """Copy one island into a new image the size of its bounding box.

        Pixels inside the box that belong to another island, or to no
        island, stay transparent.
        """
        owners = self.owners()
        index = self.canonical(index)
        region = self.regions[index]
        data = []
        for y in range(region.min_y, region.max_y + 1):
            row = y * self.width
            for x in range(region.min_x, region.max_x + 1):
                if owners[row + x] == index:
                    data.append(tuple(self.pixels[row + x]))
                else:
                    data.append(TRANSPARENT)
        tile = Image.new("RGBA", (region.width, region.height), TRANSPARENT)
        tile.putdata(data)
        return tile


def find_islands(
    img: Image.Image,
    background: str | None = None,
    diagonals: bool = True,
    skip_small: bool = True,
    noise_area: int = DEFAULT_NOISE_AREA,
) -> tuple[RegionGraph, list[int]]:
    """Scan ``img`` and return the graph with its surviving island indices.

    ``background`` is a hex color string as accepted by parse_background.
    """
    color = parse_background(background)
    graph = RegionGraph.from_image(img, background=color, diagonals=diagonals).scan()
    return graph, graph.islands(skip_small=skip_small, noise_area=noise_area)
