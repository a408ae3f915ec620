#!/usr/bin/env python3
"""Split a spritesheet into individual tiles.

Supports two modes:
1. region: Finds disjoint islands of non-background pixels. Background is
   fully transparent pixels, or an exact --background color. Each island is
   saved at its bounding-box size with pixels from neighbouring islands
   masked out.
2. grid: Cuts the image into a uniform grid of --tile-size cells, with an
   optional gap between cells and a leading margin.

Tiles are written to --output-dir as 1.png, 2.png, ... (or PREFIX_01.png
with --prefix). Each input argument may hold several paths separated by
';' (escape a literal ';' or '\\' with a backslash).

Usage:
    python3 tools/split_spritesheet.py region <input.png> [options]
    python3 tools/split_spritesheet.py grid <input.png> --tile-size WxH [options]

Examples:
    # Islands on a transparent background
    python3 tools/split_spritesheet.py region assets/raw/items.png --output-dir out/items

    # Islands on a solid magenta background, 4-connected only
    python3 tools/split_spritesheet.py region sheet.png --background ff00ff --no-diagonals

    # 32x32 tiles with a 1px gap, starting 2px in
    python3 tools/split_spritesheet.py grid tiles.png --tile-size 32x32 --offset 1x1 --start 2x2
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from PIL import Image

from grid_tiler import GridSpec, grid_tiles
from region_graph import DEFAULT_NOISE_AREA, find_islands, parse_background
from texture_errors import ResourceError, TexturePackError

SCRIPT_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG = SCRIPT_DIR / "asset_config.json"


def load_asset_config(config_path=DEFAULT_CONFIG):
    """Load asset_config.json for tool defaults."""
    config_path = Path(config_path)
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def split_escaped(text: str, delimiters: str = ";") -> list[str]:
    """Split on delimiters, honouring backslash escapes.

    ``\\;`` is a literal ';' and ``\\\\`` a literal backslash. A trailing
    empty segment is dropped.
    """
    segments: list[str] = []
    current = ""
    escaped = False
    for ch in text:
        if ch == "\\" and not escaped:
            escaped = True
        elif ch in delimiters and not escaped:
            segments.append(current)
            current = ""
        else:
            current += ch
            escaped = False
    if current:
        segments.append(current)
    return segments


def tile_filename(number: int, prefix: str | None = None) -> str:
    if prefix:
        return f"{prefix}_{number:02d}.png"
    return f"{number}.png"


def _open_image(input_path: Path) -> Image.Image:
    """Decode input_path to RGBA, raising ResourceError if that fails."""
    if not input_path.is_file():
        raise ResourceError(f"Input file not found: {input_path}")
    try:
        with Image.open(input_path) as raw:
            img = raw.convert("RGBA")
    except (OSError, ValueError) as exc:
        raise ResourceError(f"Can't decode {input_path}: {exc}") from exc
    if img.width == 0 or img.height == 0:
        raise ResourceError(f"Image has zero width or height: {input_path}")
    return img


def _save_tile(tile: Image.Image, output_dir: Path, number: int, prefix: str | None, written: int) -> Path:
    out_path = output_dir / tile_filename(number, prefix)
    try:
        tile.save(out_path, "PNG")
    except (OSError, ValueError) as exc:
        raise ResourceError(
            f"Tile #{number} can't be saved at {out_path}: {exc}",
            unit=number, completed=written,
        ) from exc
    return out_path


def _make_output_dir(output_dir: Path) -> None:
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ResourceError(f"Can't create output directory {output_dir}: {exc}") from exc


def split_by_region(
    input_path: Path,
    output_dir: Path,
    background: str | None = None,
    diagonals: bool = True,
    skip_small: bool = True,
    noise_area: int = DEFAULT_NOISE_AREA,
    prefix: str | None = None,
) -> int:
    """Save every island of input_path as its own tile. Returns tiles written."""
    parse_background(background)  # reject bad colors before touching files
    img = _open_image(input_path)
    graph, islands = find_islands(
        img, background=background, diagonals=diagonals,
        skip_small=skip_small, noise_area=noise_area,
    )
    print(f"Input: {input_path} ({img.width}x{img.height}): {len(islands)} island(s)")

    _make_output_dir(output_dir)
    written = 0
    for number, index in enumerate(islands, start=1):
        out_path = _save_tile(graph.extract(index), output_dir, number, prefix, written)
        written += 1
        print(f"  [{number}] {out_path.name}  bbox={graph.box(index)}")
    return written


def split_by_grid(
    input_path: Path,
    output_dir: Path,
    spec: GridSpec,
    prefix: str | None = None,
) -> int:
    """Save each surviving grid cell of input_path. Returns tiles written."""
    spec.validate()
    img = _open_image(input_path)
    tiles = grid_tiles(img, spec)
    print(f"Input: {input_path} ({img.width}x{img.height}): {len(tiles)} tile(s)")

    _make_output_dir(output_dir)
    written = 0
    for tile in tiles:
        r = tile.rect
        crop = img.crop((r.x, r.y, r.right, r.bottom))
        out_path = _save_tile(crop, output_dir, tile.number, prefix, written)
        written += 1
        print(f"  [{tile.number}] {out_path.name}  ({r.width}x{r.height}) at ({r.x}, {r.y})")
    return written


def _parse_pair(s: str, what: str, minimum: int) -> tuple[int, int]:
    parts = s.lower().split("x")
    if len(parts) != 2:
        raise argparse.ArgumentTypeError(f"Invalid {what} '{s}', expected AxB (e.g. 32x32)")
    try:
        a, b = int(parts[0]), int(parts[1])
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid {what} '{s}', expected AxB with integers")
    if a < minimum or b < minimum:
        raise argparse.ArgumentTypeError(f"{what.capitalize()} values must be >= {minimum}, got {a}x{b}")
    return a, b


def parse_tile_size(s: str) -> tuple[int, int]:
    """Parse 'WxH' string into (width, height) tuple."""
    return _parse_pair(s, "tile size", 1)


def parse_offset(s: str) -> tuple[int, int]:
    """Parse 'XxY' string into a non-negative (x, y) tuple."""
    return _parse_pair(s, "offset", 0)


def _collect_inputs(values: list[str]) -> list[Path]:
    paths = []
    for value in values:
        paths.extend(Path(p) for p in split_escaped(value) if p)
    return paths


def build_parser(defaults: dict) -> argparse.ArgumentParser:
    tile_size = defaults.get("tile_size", [32, 32])

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("inputs", nargs="+", help="Input image(s); ';' separates several in one argument")
    common.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory (default: same directory as each input)",
    )
    common.add_argument("--prefix", default=None, help="Output filename prefix (default: bare tile numbers)")
    common.add_argument(
        "--keep-going",
        action="store_true",
        help="Continue with the next input after a failure instead of stopping",
    )
    common.add_argument("--config", type=Path, default=DEFAULT_CONFIG, help="Tool defaults JSON file")
    common.add_argument("--verbose", action="store_true", help="Show debug logging")

    parser = argparse.ArgumentParser(description="Split a spritesheet into individual tiles.")
    sub = parser.add_subparsers(dest="mode", required=True)

    region = sub.add_parser("region", parents=[common], help="Split by islands of non-background pixels")
    region.add_argument(
        "--background",
        default="",
        metavar="HEX",
        help="Background color as RRGGBB or RRGGBBAA (default: fully transparent pixels)",
    )
    region.add_argument(
        "--diagonals",
        action=argparse.BooleanOptionalAction,
        default=defaults.get("connect_diagonals", True),
        help="Connect pixels that only touch at a corner (default: %(default)s)",
    )
    region.add_argument(
        "--skip-small",
        action=argparse.BooleanOptionalAction,
        default=defaults.get("skip_small_regions", True),
        help="Discard tiny islands as noise (default: %(default)s)",
    )
    region.add_argument(
        "--noise-area",
        type=int,
        default=defaults.get("noise_area", DEFAULT_NOISE_AREA),
        metavar="PX",
        help="Islands whose bounding box has this many pixels or fewer are noise (default: %(default)s)",
    )

    grid = sub.add_parser("grid", parents=[common], help="Split by a fixed grid")
    grid.add_argument(
        "--tile-size",
        type=parse_tile_size,
        default=(tile_size[0], tile_size[1]),
        metavar="WxH",
        help="Tile size (default: %dx%d)" % (tile_size[0], tile_size[1]),
    )
    grid.add_argument("--offset", type=parse_offset, default=(0, 0), metavar="DXxDY", help="Gap between tiles")
    grid.add_argument("--start", type=parse_offset, default=(0, 0), metavar="XxY", help="Margin before the grid")
    grid.add_argument(
        "--whole-tiles-only",
        action=argparse.BooleanOptionalAction,
        default=defaults.get("whole_tiles_only", True),
        help="Drop clipped tiles at the right and bottom edges (default: %(default)s)",
    )
    grid.add_argument(
        "--skip-empty",
        dest="skip_empty_tiles",
        action=argparse.BooleanOptionalAction,
        default=defaults.get("skip_empty_tiles", True),
        help="Drop fully transparent tiles (default: %(default)s)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    known, _ = pre.parse_known_args(argv)
    defaults = load_asset_config(known.config).get("texture_splitting", {})

    args = build_parser(defaults).parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(name)s: %(message)s")

    inputs = _collect_inputs(args.inputs)
    if not inputs:
        print("Error: no input files given", file=sys.stderr)
        return 1

    failures = 0
    total = 0
    for input_path in inputs:
        output_dir = args.output_dir or input_path.parent
        try:
            if args.mode == "region":
                total += split_by_region(
                    input_path, output_dir,
                    background=args.background,
                    diagonals=args.diagonals,
                    skip_small=args.skip_small,
                    noise_area=args.noise_area,
                    prefix=args.prefix,
                )
            else:
                spec = GridSpec(
                    tile_width=args.tile_size[0],
                    tile_height=args.tile_size[1],
                    offset_x=args.offset[0],
                    offset_y=args.offset[1],
                    start_x=args.start[0],
                    start_y=args.start[1],
                    whole_tiles_only=args.whole_tiles_only,
                    skip_empty_tiles=args.skip_empty_tiles,
                )
                total += split_by_grid(input_path, output_dir, spec, prefix=args.prefix)
        except (TexturePackError, OSError) as exc:
            failures += 1
            if isinstance(exc, ResourceError):
                total += exc.completed
            print(f"Error: {input_path}: {exc}", file=sys.stderr)
            if not args.keep_going:
                return 1

    print(f"Saved {total} tile(s) from {len(inputs) - failures}/{len(inputs)} image(s)")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
