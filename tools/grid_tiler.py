"""Cut an image into a fixed grid of tiles.

Cells are walked row-major from the start offset, stepping by tile size
plus the gap between tiles, and numbered from 1 in that order. Numbers are
assigned before any cell is dropped, so a tile's number always reflects its
grid position.

Checking a tile for full transparency is split into chunks that are
scanned on a thread pool; the first chunk to find a visible pixel tells
the others to stop.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator

from PIL import Image

from atlas_geometry import Rect
from texture_errors import InvalidParameterError

logger = logging.getLogger(__name__)

# Tiles smaller than this on either side are scanned in one piece.
MIN_CHUNKED_SIDE = 48


@dataclass
class GridSpec:
    tile_width: int
    tile_height: int
    offset_x: int = 0
    offset_y: int = 0
    start_x: int = 0
    start_y: int = 0
    whole_tiles_only: bool = True
    skip_empty_tiles: bool = True

    def validate(self) -> None:
        if self.tile_width <= 0 or self.tile_height <= 0:
            raise InvalidParameterError(
                f"Tile size must be positive, got {self.tile_width}x{self.tile_height}"
            )
        for name in ("offset_x", "offset_y", "start_x", "start_y"):
            if getattr(self, name) < 0:
                raise InvalidParameterError(f"{name} must be non-negative, got {getattr(self, name)}")


@dataclass(frozen=True)
class Tile:
    number: int
    rect: Rect
    whole: bool


def grid_cells(width: int, height: int, spec: GridSpec) -> Iterator[Tile]:
    """Yield every grid cell clipped to the image, partial ones included."""
    step_x = spec.tile_width + spec.offset_x
    step_y = spec.tile_height + spec.offset_y
    number = 0
    for y in range(spec.start_y, height, step_y):
        for x in range(spec.start_x, width, step_x):
            number += 1
            w = min(spec.tile_width, width - x)
            h = min(spec.tile_height, height - y)
            whole = w == spec.tile_width and h == spec.tile_height
            yield Tile(number, Rect(x, y, w, h), whole)


def chunk_rects(width: int, height: int) -> list[Rect]:
    """Partition a ``width`` x ``height`` area into square chunks plus remainders.

    Rects are relative to the area's origin and never overlap.
    """
    if width >= 384 and height >= 384:
        size = 128
    elif width >= 128 and height >= 128:
        size = 64
    elif width >= MIN_CHUNKED_SIDE and height >= MIN_CHUNKED_SIDE:
        size = 32
    else:
        return [Rect(0, 0, width, height)]

    cols, rem_x = divmod(width, size)
    rows, rem_y = divmod(height, size)
    chunks = [Rect(c * size, r * size, size, size) for r in range(rows) for c in range(cols)]
    if rem_y:
        chunks.append(Rect(0, rows * size, width, rem_y))
    if rem_x:
        chunks.append(Rect(cols * size, 0, rem_x, height - rem_y))
    return chunks


def _chunk_has_pixels(alpha: bytes, stride: int, chunk: Rect, found: threading.Event) -> bool:
    for y in range(chunk.y, chunk.bottom):
        if found.is_set():
            return False
        start = y * stride + chunk.x
        if any(alpha[start:start + chunk.width]):
            found.set()
            return True
    return False


def is_fully_transparent(
    alpha: bytes,
    image_width: int,
    rect: Rect,
    pool: Executor | None = None,
) -> bool:
    """True if every alpha value inside ``rect`` is zero.

    Args:
        alpha: The image's alpha plane, one byte per pixel, row-major.
        image_width: Row stride of ``alpha``.
        rect: Area to check, in image coordinates.
        pool: Executor for the chunk scans. Without one, chunks are
            scanned on the calling thread.
    """
    if rect.area <= 0:
        return True
    chunks = [
        Rect(rect.x + c.x, rect.y + c.y, c.width, c.height)
        for c in chunk_rects(rect.width, rect.height)
    ]
    found = threading.Event()
    if pool is None or len(chunks) == 1:
        for chunk in chunks:
            if _chunk_has_pixels(alpha, image_width, chunk, found):
                return False
        return True

    futures = [pool.submit(_chunk_has_pixels, alpha, image_width, chunk, found) for chunk in chunks]
    for future in futures:
        future.result()
    return not found.is_set()


def grid_tiles(img: Image.Image, spec: GridSpec, max_workers: int | None = None) -> list[Tile]:
    """Return the grid tiles of ``img`` that pass the filters set in ``spec``."""
    spec.validate()
    width, height = img.size
    cells = [
        tile for tile in grid_cells(width, height, spec)
        if tile.whole or not spec.whole_tiles_only
    ]
    if not spec.skip_empty_tiles:
        return cells

    alpha = img.convert("RGBA").getchannel("A").tobytes()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        tiles = [
            tile for tile in cells
            if not is_fully_transparent(alpha, width, tile.rect, pool)
        ]
    logger.debug(
        "Grid %dx%d over %dx%d: %d cell(s), %d non-empty",
        spec.tile_width, spec.tile_height, width, height, len(cells), len(tiles),
    )
    return tiles
