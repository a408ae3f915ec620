"""Tests for tools/spritesheet_packer.py — atlas spritesheet generation."""
from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

# Ensure tools/ is importable
TOOLS_DIR = Path(__file__).resolve().parent.parent.parent / "tools"
sys.path.insert(0, str(TOOLS_DIR))

import spritesheet_packer as sp
from atlas_geometry import Frame
from rect_packer import SortMethod
from texture_errors import ResourceError

try:
    from PIL import Image as _PIL_Image
    HAS_PIL = True
except ImportError:
    HAS_PIL = False

requires_pil = pytest.mark.skipif(not HAS_PIL, reason="Pillow not installed")

FILL = (100, 50, 50, 255)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_frame_png(path, width=16, height=16, color=FILL):
    """Create a minimal PNG frame."""
    from PIL import Image
    img = Image.new("RGBA", (width, height), color)
    path.parent.mkdir(parents=True, exist_ok=True)
    img.save(path, "PNG")


def make_frames(root, sizes):
    """Create one PNG per (width, height) under root/frames, return relative paths."""
    paths = []
    for i, (w, h) in enumerate(sizes):
        rel = Path("frames") / f"frame_{i:02d}.png"
        make_frame_png(root / rel, w, h)
        paths.append(str(rel))
    return paths


# ---------------------------------------------------------------------------
# Unit tests — paths and options
# ---------------------------------------------------------------------------

class TestPaths:
    def test_relative_path_resolves_against_root(self, tmp_path):
        assert sp.resolve_frame_path(tmp_path, "a/b.png") == tmp_path / "a" / "b.png"

    def test_absolute_path_is_kept(self, tmp_path):
        absolute = tmp_path / "x.png"
        assert sp.resolve_frame_path("/elsewhere", absolute) == absolute

    def test_stored_path_is_relative_posix(self, tmp_path):
        assert sp.relative_frame_path(tmp_path / "a" / "b.png", tmp_path) == "a/b.png"


class TestExportOption:
    def test_border_widths(self):
        assert sp.ExportOption.NONE.border == 0
        assert sp.ExportOption.BLACK_BORDERS.border == 1
        assert sp.ExportOption.TRANSPARENT_BORDERS.border == 1


class TestLoadAssetConfig:
    def test_missing_file_gives_empty_config(self, tmp_path):
        assert sp.load_asset_config(tmp_path / "nope.json") == {}

    def test_shipped_config_has_packing_defaults(self):
        config = sp.load_asset_config()
        assert config["texture_packing"]["sort"] in [m.value for m in SortMethod]


# ---------------------------------------------------------------------------
# Integration tests — load_frames / pack_spritesheet
# ---------------------------------------------------------------------------

@requires_pil
class TestLoadFrames:
    def test_measures_frames_in_order(self, tmp_path):
        paths = make_frames(tmp_path, [(4, 6), (10, 2)])
        frames = sp.load_frames(paths, tmp_path)
        assert [(f.name, f.w, f.h) for f in frames] == [("frame_00", 4, 6), ("frame_01", 10, 2)]
        assert frames[0].path == paths[0]

    def test_missing_frame_names_path(self, tmp_path):
        paths = make_frames(tmp_path, [(4, 4)]) + ["frames/missing.png"]
        with pytest.raises(ResourceError) as excinfo:
            sp.load_frames(paths, tmp_path)
        assert excinfo.value.unit == "frames/missing.png"
        assert excinfo.value.completed == 1


@requires_pil
class TestPackSpritesheet:
    def test_empty_frames_returns_none(self, tmp_path):
        assert sp.pack_spritesheet([], tmp_path, tmp_path / "out.png") is None

    def test_dry_run_produces_no_files(self, tmp_path):
        frames = sp.load_frames(make_frames(tmp_path, [(8, 8), (4, 4)]), tmp_path)
        atlas = sp.pack_spritesheet(frames, tmp_path, tmp_path / "out.png", dry_run=True)
        assert atlas is not None
        assert len(atlas["frames"]) == 2
        assert not (tmp_path / "out.png").exists()

    def test_packs_frames_into_atlas(self, tmp_path):
        paths = make_frames(tmp_path, [(10, 10), (20, 5), (5, 20)])
        frames = sp.load_frames(paths, tmp_path)
        out = tmp_path / "out" / "sheet.png"

        atlas = sp.pack_spritesheet(frames, tmp_path, out)

        assert out.exists()
        assert (atlas["width"], atlas["height"]) == (20, 25)
        assert atlas["filename"] == "sheet.png"
        rects = {f["name"]: (f["x"], f["y"], f["w"], f["h"]) for f in atlas["frames"]}
        assert rects == {
            "frame_00": (5, 5, 10, 10),
            "frame_01": (0, 0, 20, 5),
            "frame_02": (0, 5, 5, 20),
        }
        assert {f["path"] for f in atlas["frames"]} == set(paths)

    def test_sheet_pixels_match_frames(self, tmp_path):
        frames = sp.load_frames(make_frames(tmp_path, [(10, 10), (20, 5)]), tmp_path)
        out = tmp_path / "sheet.png"
        atlas = sp.pack_spritesheet(frames, tmp_path, out)

        from PIL import Image
        with Image.open(out) as img:
            assert img.size == (atlas["width"], atlas["height"])
            for entry in atlas["frames"]:
                assert img.getpixel((entry["x"], entry["y"])) == FILL
                assert img.getpixel((entry["x"] + entry["w"] - 1, entry["y"] + entry["h"] - 1)) == FILL

    def test_black_borders(self, tmp_path):
        frames = sp.load_frames(make_frames(tmp_path, [(8, 8)]), tmp_path)
        out = tmp_path / "sheet.png"
        atlas = sp.pack_spritesheet(frames, tmp_path, out, option=sp.ExportOption.BLACK_BORDERS)

        assert (atlas["width"], atlas["height"]) == (10, 10)
        assert (atlas["frames"][0]["x"], atlas["frames"][0]["y"]) == (1, 1)
        from PIL import Image
        with Image.open(out) as img:
            img = img.convert("RGBA")
            assert img.getpixel((0, 0)) == sp.BORDER_COLOR
            assert img.getpixel((9, 9)) == sp.BORDER_COLOR
            assert img.getpixel((5, 0)) == sp.BORDER_COLOR
            assert img.getpixel((1, 1)) == FILL
            assert img.getpixel((8, 8)) == FILL

    def test_transparent_borders(self, tmp_path):
        frames = sp.load_frames(make_frames(tmp_path, [(8, 8), (8, 8)]), tmp_path)
        out = tmp_path / "sheet.png"
        atlas = sp.pack_spritesheet(frames, tmp_path, out, option=sp.ExportOption.TRANSPARENT_BORDERS)

        assert (atlas["width"], atlas["height"]) == (19, 10)
        from PIL import Image
        with Image.open(out) as img:
            img = img.convert("RGBA")
            assert img.getpixel((0, 0))[3] == 0
            assert img.getpixel((9, 5))[3] == 0
            assert img.getpixel((1, 1)) == FILL
            assert img.getpixel((10, 1)) == FILL

    def test_sort_method_is_used(self, tmp_path):
        frames = sp.load_frames(make_frames(tmp_path, [(2, 9), (9, 2)]), tmp_path)
        atlas = sp.pack_spritesheet(
            frames, tmp_path, tmp_path / "s.png", sort_method=SortMethod.WIDTH, dry_run=True
        )
        first = next(f for f in atlas["frames"] if f["name"] == "frame_01")
        assert (first["x"], first["y"]) == (0, 0)

    def test_frame_removed_before_drawing(self, tmp_path):
        paths = make_frames(tmp_path, [(4, 4)])
        frames = sp.load_frames(paths, tmp_path)
        (tmp_path / paths[0]).unlink()
        with pytest.raises(ResourceError) as excinfo:
            sp.pack_spritesheet(frames, tmp_path, tmp_path / "s.png")
        assert excinfo.value.unit == "frame_00"
        assert excinfo.value.completed == 0


# ---------------------------------------------------------------------------
# Integration tests — write_atlas_json
# ---------------------------------------------------------------------------

class TestWriteAtlasJson:
    def test_writes_valid_json(self, tmp_path):
        atlas = {
            "filename": "test.png",
            "width": 4,
            "height": 4,
            "frames": [{"name": "a", "path": "a.png", "x": 0, "y": 0, "w": 4, "h": 4}],
        }
        path = sp.write_atlas_json(tmp_path / "nested" / "atlas.json", atlas)
        assert path.exists()
        with open(path) as f:
            loaded = json.load(f)
        assert loaded == atlas

    def test_dry_run_writes_nothing(self, tmp_path):
        atlas = {"filename": "test.png", "width": 0, "height": 0, "frames": []}
        path = sp.write_atlas_json(tmp_path / "atlas.json", atlas, dry_run=True)
        assert not path.exists()

    def test_unwritable_path_raises_resource_error(self, tmp_path):
        (tmp_path / "atlas.json").mkdir()
        atlas = {"filename": "test.png", "width": 0, "height": 0, "frames": []}
        with pytest.raises(ResourceError) as excinfo:
            sp.write_atlas_json(tmp_path / "atlas.json", atlas)
        assert excinfo.value.unit == "atlas.json"
        assert excinfo.value.completed == 1


# ---------------------------------------------------------------------------
# CLI test — main()
# ---------------------------------------------------------------------------

@requires_pil
class TestMain:
    def test_missing_frame_returns_error(self, tmp_path):
        result = sp.main([str(tmp_path / "atlas"), "nope.png", "--root", str(tmp_path)])
        assert result == 1
        assert not (tmp_path / "atlas.png").exists()

    def test_unwritable_metadata_returns_error(self, tmp_path, capsys):
        paths = make_frames(tmp_path, [(8, 8)])
        (tmp_path / "units.json").mkdir()

        result = sp.main([str(tmp_path / "units"), *paths, "--root", str(tmp_path)])

        assert result == 1
        assert "Error:" in capsys.readouterr().err

    def test_full_pipeline(self, tmp_path):
        paths = make_frames(tmp_path, [(16, 16), (8, 24), (12, 4)])
        out = tmp_path / "build" / "units"

        result = sp.main([str(out), *paths, "--root", str(tmp_path)])

        assert result == 0
        png = tmp_path / "build" / "units.png"
        meta = tmp_path / "build" / "units.json"
        assert png.exists()
        with open(meta) as f:
            atlas = json.load(f)
        assert atlas["filename"] == "units.png"
        assert len(atlas["frames"]) == 3

    def test_dry_run_writes_nothing(self, tmp_path):
        paths = make_frames(tmp_path, [(16, 16)])
        out = tmp_path / "units"
        result = sp.main([str(out), *paths, "--root", str(tmp_path), "--dry-run"])
        assert result == 0
        assert not (tmp_path / "units.png").exists()
        assert not (tmp_path / "units.json").exists()

    def test_config_supplies_default_option(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"texture_packing": {"export_option": "black-borders"}}))
        paths = make_frames(tmp_path, [(8, 8)])
        out = tmp_path / "units"

        result = sp.main([str(out), *paths, "--root", str(tmp_path), "--config", str(config)])

        assert result == 0
        with open(tmp_path / "units.json") as f:
            atlas = json.load(f)
        assert (atlas["width"], atlas["height"]) == (10, 10)

    def test_rejects_unknown_option(self, tmp_path):
        with pytest.raises(SystemExit):
            sp.main([str(tmp_path / "units"), "a.png", "--option", "glow"])
