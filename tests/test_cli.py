from pathlib import Path

import pytest
from PIL import Image

import collage
from collage_geometry import PageSize, Photo
from collage_layouts import generate_layouts

RED = (255, 0, 0)
BLUE = (0, 0, 255)


def test_parse_canvas():
    assert collage.parse_canvas(None, "1200x800") == PageSize(1200, 800)
    assert collage.parse_canvas("9:16", None) == PageSize(1080, 1920)
    assert collage.parse_canvas("A4", None) == PageSize(2480, 3508)
    assert collage.parse_canvas("4:5", None) == PageSize(1080, 1350)
    with pytest.raises(ValueError):
        collage.parse_canvas(None, "1200")
    with pytest.raises(ValueError):
        collage.parse_canvas(None, "0x100")
    with pytest.raises(ValueError):
        collage.parse_canvas("poster", None)


def test_parse_photo_sizes():
    assert collage.parse_photo_sizes("1000x800, 600x900") == [Photo(1000, 800), Photo(600, 900)]
    with pytest.raises(ValueError):
        collage.parse_photo_sizes("1000x800,abc")
    with pytest.raises(ValueError):
        collage.parse_photo_sizes(" , ")


def test_parse_rgb():
    assert collage.parse_rgb("#FF8000") == (255, 128, 0)
    with pytest.raises(ValueError):
        collage.parse_rgb("red")


def test_missing_folder(tmp_path):
    with pytest.raises(FileNotFoundError):
        collage.iter_image_files(tmp_path / "nope", recursive=False)


def test_collect_photos_skips_unreadable(image_dir):
    folder = image_dir((("b.png", (60, 40), RED), ("a.jpg", (30, 90), BLUE)))
    (folder / "broken.png").write_bytes(b"not an image")
    (folder / "notes.txt").write_text("hello")

    files = collage.iter_image_files(folder, recursive=False)
    assert [p.name for p in files] == ["a.jpg", "b.png", "broken.png"]

    photos = collage.collect_photos(files, workers=1)
    assert [(p.width, p.height) for p in photos] == [(30, 90), (60, 40)]
    assert photos[0].handle == folder / "a.jpg"


def test_collect_photos_skips_oversized_images(image_dir, monkeypatch, caplog):
    folder = image_dir((("big.png", (100, 100), RED), ("small.png", (10, 10), BLUE)))
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    photos = collage.collect_photos(collage.iter_image_files(folder, False), workers=1)

    assert [(p.width, p.height) for p in photos] == [(10, 10)]
    assert "big.png" in caplog.text


def test_grouping_precision_flag():
    parser = collage.build_parser()
    assert collage.build_config(parser.parse_args(["--sizes", "10x10"])).grouping_precision == 2
    args = parser.parse_args(["--sizes", "10x10", "--precision", "4", "--grouping-precision", "1"])
    cfg = collage.build_config(args)
    assert (cfg.signature_precision, cfg.grouping_precision) == (4, 1)


def test_recursive_scan(image_dir):
    folder = image_dir((("top.png", (10, 10), RED),))
    sub = folder / "sub"
    sub.mkdir()
    Image.new("RGB", (10, 10), BLUE).save(sub / "inner.png")

    assert len(collage.iter_image_files(folder, recursive=False)) == 1
    assert len(collage.iter_image_files(folder, recursive=True)) == 2


def test_fit_photo_cover_and_contain():
    img = Image.new("RGB", (200, 100), RED)
    out, dx, dy, crop = collage.fit_photo(img, 100, 100, "cover")
    assert out.size == (100, 100) and (dx, dy) == (0, 0)
    assert crop == pytest.approx(0.5)

    out, dx, dy, crop = collage.fit_photo(img, 100, 100, "contain")
    assert out.size == (100, 50) and (dx, dy) == (0, 25)
    assert crop == 0.0


def test_render_layout_places_photos(image_dir):
    folder = image_dir((("a.png", (100, 100), RED), ("b.png", (100, 100), BLUE)))
    photos = collage.collect_photos(collage.iter_image_files(folder, False), workers=1)
    page = PageSize(200, 100)
    layouts = generate_layouts(photos, page)
    (side_by_side,) = [c for c in layouts if c.name == "grid-1x2"]

    stats = {}
    img = collage.render_layout(side_by_side, background=(0, 255, 0), stats=stats, workers=1)

    assert img.size == (200, 100)
    r, g, b = img.getpixel((50, 50))
    assert r > 200 and b < 50
    r, g, b = img.getpixel((150, 50))
    assert b > 200 and r < 50
    assert stats["cover_total"] == 2.0
    assert stats["cover_crop_area_avg"] == pytest.approx(0.0)


def test_render_needs_image_files():
    (cand,) = generate_layouts([Photo(10, 10)], PageSize(10, 10))
    with pytest.raises(ValueError):
        collage.render_layout(cand)


def test_main_ranks_sizes(capsys):
    assert collage.main(["--sizes", "400x300,400x300,400x300,400x300", "--size", "800x600", "--top", "3"]) == 0
    out = capsys.readouterr().out
    assert "photos=4" in out
    lines = [line for line in out.splitlines() if line.startswith("#")]
    assert len(lines) == 3
    assert "grid-2x2" in lines[0]


def test_main_variants_marks_duplicates(capsys):
    assert collage.main(["--sizes", "100x100,100x100", "--size", "100x100", "--variants", "--top", "0"]) == 0
    out = capsys.readouterr().out
    assert "duplicate of #" in out
    assert "structures:" in out


def test_main_rejects_output_without_files(tmp_path):
    with pytest.raises(SystemExit):
        collage.main(["--sizes", "10x10", "--output", str(tmp_path / "x.png")])


def test_main_renders_chosen_rank(image_dir, capsys):
    folder = image_dir((("a.png", (120, 80), RED), ("b.png", (80, 120), BLUE), ("c.png", (100, 100), RED)))
    out_path = Path(folder) / "out" / "page.png"

    code = collage.main(
        ["--input", str(folder), "--size", "300x200", "--output", str(out_path), "--rank", "2", "--workers", "1"]
    )

    assert code == 0
    with Image.open(out_path) as img:
        assert img.size == (300, 200)
    assert "saved #2" in capsys.readouterr().out


def test_main_empty_folder(tmp_path):
    with pytest.raises(SystemExit):
        collage.main(["--input", str(tmp_path)])
