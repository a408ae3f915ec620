#!/usr/bin/env python3
"""Pack individual frame PNGs into a single atlas spritesheet.

Measures every frame, packs them with the growing rectangle packer, draws
them into one PNG and writes an atlas.json-style file with the frame rects.
Relative frame paths resolve against --root (default: current directory).

Usage:
    python3 tools/spritesheet_packer.py out/units idle_01.png idle_02.png
    python3 tools/spritesheet_packer.py out/units frames/*.png --option black-borders
    python3 tools/spritesheet_packer.py out/units frames/*.png --sort height --dry-run
"""
from __future__ import annotations

import argparse
import enum
import json
import logging
import os
import sys
from pathlib import Path

from atlas_geometry import Frame
from rect_packer import RectanglePacker, SortMethod
from texture_errors import ResourceError, TexturePackError

Image = None  # lazy import; Pillow not available in all CI environments
ImageDraw = None


def _require_pil():
    """Import PIL lazily so the module can be imported without Pillow."""
    global Image, ImageDraw
    if Image is not None:
        return
    try:
        from PIL import Image as _Image
        from PIL import ImageDraw as _ImageDraw

        Image = _Image
        ImageDraw = _ImageDraw
    except ImportError:
        print("Error: Pillow is required. Install with: pip install Pillow",
              file=sys.stderr)
        sys.exit(1)


SCRIPT_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG = SCRIPT_DIR / "asset_config.json"

BORDER_COLOR = (0, 0, 0, 255)


class ExportOption(enum.Enum):
    """Border treatment applied when drawing the atlas."""

    NONE = "none"
    # 1px black outline around every frame.
    BLACK_BORDERS = "black-borders"
    # 1px transparent gap around every frame.
    TRANSPARENT_BORDERS = "transparent-borders"

    @property
    def border(self) -> int:
        return 0 if self is ExportOption.NONE else 1


def load_asset_config(config_path=DEFAULT_CONFIG):
    """Load asset_config.json for tool defaults."""
    config_path = Path(config_path)
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def resolve_frame_path(root, path):
    """Resolve a frame path saved relative to the project root."""
    path = Path(path)
    return path if path.is_absolute() else Path(root) / path


def relative_frame_path(path, root):
    """Path to store in atlas metadata: relative to root when possible."""
    try:
        return Path(os.path.relpath(path, root)).as_posix()
    except ValueError:
        # Different drive on Windows.
        return Path(path).as_posix()


def load_frames(paths, root):
    """Measure each frame image and return Frames in input order.

    Raises ResourceError naming the first frame that can't be read.
    """
    _require_pil()
    frames = []
    for path in paths:
        full_path = resolve_frame_path(root, path)
        try:
            with Image.open(full_path) as img:
                w, h = img.size
        except (OSError, ValueError) as exc:
            raise ResourceError(
                f"Can't read frame image {full_path}: {exc}",
                unit=str(path), completed=len(frames),
            ) from exc
        frames.append(Frame(name=Path(path).stem, w=w, h=h, path=str(path)))
    return frames


def pack_spritesheet(frames, root, output_path, option=ExportOption.NONE,
                     sort_method=SortMethod.MAX_SIDE, dry_run=False):
    """Pack frames and draw them into a PNG at output_path.

    Returns the atlas metadata dict, or None if there are no frames.
    """
    if not frames:
        print("Error: no frames to pack", file=sys.stderr)
        return None

    output_path = Path(output_path)
    border = option.border
    packer = RectanglePacker(sort_method=sort_method, padding=border)
    bounds = packer.pack(frames)
    sheet_w = bounds.width + border
    sheet_h = bounds.height + border

    print(f"  Frames:      {len(frames)}")
    print(f"  Sort:        {sort_method.value}")
    print(f"  Option:      {option.value}")
    print(f"  Atlas size:  {sheet_w}x{sheet_h}")

    atlas = {
        "filename": output_path.name,
        "width": sheet_w,
        "height": sheet_h,
        "frames": [],
    }
    for frame in frames:
        atlas["frames"].append({
            "name": frame.name,
            "path": relative_frame_path(resolve_frame_path(root, frame.path), root),
            "x": frame.x + border,
            "y": frame.y + border,
            "w": frame.w,
            "h": frame.h,
        })

    if dry_run:
        print(f"  [DRY RUN] Would write: {output_path}")
        return atlas

    _require_pil()
    sheet_img = Image.new("RGBA", (sheet_w, sheet_h), (0, 0, 0, 0))
    for done, frame in enumerate(frames):
        frame_path = resolve_frame_path(root, frame.path)
        try:
            with Image.open(frame_path) as src:
                frame_img = src.convert("RGBA")
        except (OSError, ValueError) as exc:
            raise ResourceError(
                f"Drawing the sprite sheet '{output_path.name}' failed: {exc}",
                unit=frame.name, completed=done,
            ) from exc
        sheet_img.paste(frame_img, (frame.x + border, frame.y + border))

    if option is ExportOption.BLACK_BORDERS:
        draw = ImageDraw.Draw(sheet_img)
        for frame in frames:
            draw.rectangle(
                [frame.x, frame.y, frame.x + frame.w + 1, frame.y + frame.h + 1],
                outline=BORDER_COLOR,
            )

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        sheet_img.save(output_path, "PNG")
    except (OSError, ValueError) as exc:
        raise ResourceError(
            f"The sprite sheet can't be saved at {output_path}: {exc}",
            unit=output_path.name, completed=len(frames),
        ) from exc
    print(f"  Wrote: {output_path} ({sheet_w}x{sheet_h})")
    return atlas


def write_atlas_json(json_path, atlas, dry_run=False):
    """Write the atlas metadata with frame-to-rect mappings."""
    json_path = Path(json_path)
    if dry_run:
        print(f"  [DRY RUN] Would write: {json_path}")
        return json_path

    try:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        with open(json_path, "w") as f:
            json.dump(atlas, f, indent=2)
            f.write("\n")
    except OSError as exc:
        raise ResourceError(
            f"The atlas metadata can't be saved at {json_path}: {exc}",
            unit=json_path.name, completed=1,
        ) from exc
    print(f"  Wrote: {json_path}")
    return json_path


def main(argv=None):
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    known, _ = pre.parse_known_args(argv)
    defaults = load_asset_config(known.config).get("texture_packing", {})

    parser = argparse.ArgumentParser(
        description="Pack frame PNGs into one atlas spritesheet.",
        parents=[pre],
    )
    parser.add_argument(
        "output",
        help="Output path without extension; writes <output>.png and <output>.json"
    )
    parser.add_argument("frames", nargs="+", help="Frame image paths")
    parser.add_argument(
        "--root", type=Path, default=Path.cwd(),
        help="Directory relative frame paths resolve against (default: cwd)"
    )
    parser.add_argument(
        "--option", choices=[o.value for o in ExportOption],
        default=defaults.get("export_option", ExportOption.NONE.value),
        help="Border treatment (default: %(default)s)"
    )
    parser.add_argument(
        "--sort", choices=[m.value for m in SortMethod],
        default=defaults.get("sort", SortMethod.MAX_SIDE.value),
        help="Frame pre-sort order (default: %(default)s)"
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Print what would be done without writing files"
    )
    parser.add_argument("--verbose", action="store_true", help="Show debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(levelname)s: %(name)s: %(message)s")

    output = Path(args.output)
    png_path = output.with_name(output.name + ".png")
    json_path = output.with_name(output.name + ".json")

    prefix = "[DRY RUN] " if args.dry_run else ""
    print(f"=== {prefix}Spritesheet Packer: {output.name} ===")

    try:
        frames = load_frames(args.frames, args.root)
        atlas = pack_spritesheet(
            frames, args.root, png_path,
            option=ExportOption(args.option),
            sort_method=SortMethod(args.sort),
            dry_run=args.dry_run,
        )
        if atlas is None:
            return 1
        write_atlas_json(json_path, atlas, dry_run=args.dry_run)
    except (TexturePackError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"=== {prefix}Done: {len(atlas['frames'])} frames in {png_path.name} ===")
    return 0


if __name__ == "__main__":
    sys.exit(main())
