from __future__ import annotations

import argparse
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
import math
import os
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from PIL import Image, ImageOps

from collage_config import LEGACY_WEIGHTS, EngineConfig, parse_families, parse_weights
from collage_dedupe import grouping_signature, variant_groups
from collage_geometry import Cell, LayoutCandidate, PageSize, Photo
from collage_layouts import generate_layout_variants, generate_layouts

logger = logging.getLogger(__name__)

SUPPORTED_EXTS = {".jpg", ".jpeg", ".png", ".webp", ".bmp", ".tif", ".tiff"}

# allow large images; keep a very high limit to avoid PIL warning spam
Image.MAX_IMAGE_PIXELS = max(int(getattr(Image, "MAX_IMAGE_PIXELS", 0) or 0), 250_000_000)


def setup_logging(log_level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )


def _effective_workers(workers: int) -> int:
    if workers <= 0:
        cpu = os.cpu_count() or 4
        return min(32, max(1, cpu * 2))
    return max(1, int(workers))


def _parse_wh(value: str, what: str) -> Tuple[int, int]:
    parts = value.strip().lower().replace("x", ":").split(":")
    if len(parts) != 2:
        raise ValueError(f"{what} must be like 1080x1920")
    w, h = int(parts[0]), int(parts[1])
    if w <= 0 or h <= 0:
        raise ValueError(f"{what} must be positive")
    return w, h


def parse_canvas(preset: str | None, size: str | None) -> PageSize:
    if size:
        return PageSize(*_parse_wh(size, "--size"))

    preset = (preset or "9:16").strip()

    presets: dict[str, PageSize] = {
        "9:16": PageSize(1080, 1920),
        "2:3": PageSize(1080, 1620),
        "3:2": PageSize(1620, 1080),
        "1:1": PageSize(1080, 1080),
        "a4": PageSize(2480, 3508),
    }
    if preset.lower() in presets:
        return presets[preset.lower()]

    if ":" in preset:
        a, b = preset.split(":", 1)
        ra, rb = float(a), float(b)
        if ra <= 0 or rb <= 0:
            raise ValueError("ratio must be positive")
        base_w = 1080
        return PageSize(base_w, int(round(base_w * (rb / ra))))

    raise ValueError("unknown preset; use 9:16 / 2:3 / 1:1 / a4 or --size")


def parse_photo_sizes(value: str) -> List[Photo]:
    """``"1000x800,600x900"`` -> photos without a file behind them."""
    items = [s for s in value.replace(";", ",").split(",") if s.strip()]
    if not items:
        raise ValueError("--sizes needs at least one WxH entry")
    return [Photo(*_parse_wh(s, "--sizes entry")) for s in items]


def parse_rgb(value: str) -> Tuple[int, int, int]:
    s = value.strip().lower()
    if s.startswith("#"):
        s = s[1:]
    if len(s) != 6 or any(c not in "0123456789abcdef" for c in s):
        raise ValueError("--background must be RRGGBB or #RRGGBB")
    return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))


def iter_image_files(folder: Path, recursive: bool) -> List[Path]:
    if not folder.exists() or not folder.is_dir():
        raise FileNotFoundError(f"input folder not found: {folder}")

    if recursive:
        walker: Iterable[Path] = folder.rglob("*")
    else:
        walker = folder.glob("*")

    # sorted so the photo order (and therefore the ranking) is reproducible
    return sorted(p for p in walker if p.is_file() and p.suffix.lower() in SUPPORTED_EXTS)


def open_image(path: Path) -> Image.Image:
    img = Image.open(path)
    img = ImageOps.exif_transpose(img)
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")
    return img


def collect_photos(paths: Sequence[Path], workers: int = 0) -> List[Photo]:
    """Probe pixel sizes; unreadable files are skipped. Output follows ``paths`` order."""

    def probe(p: Path) -> Photo | None:
        try:
            with Image.open(p) as img:
                img = ImageOps.exif_transpose(img)
                w, h = img.size
        except Exception as exc:
            logger.warning("skipping %s: %s", p, exc)
            return None
        if w <= 1 or h <= 1:
            return None
        return Photo(width=w, height=h, handle=p)

    n_workers = _effective_workers(workers)
    if n_workers <= 1 or len(paths) <= 8:
        photos = [probe(p) for p in paths]
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as ex:
            photos = list(ex.map(probe, paths))
    return [ph for ph in photos if ph is not None]


def cell_box(cell: Cell) -> Tuple[int, int, int, int]:
    # shared edges round to the same pixel, so neighbours never gap or overlap
    x0, y0 = int(round(cell.x)), int(round(cell.y))
    x1, y1 = int(round(cell.right)), int(round(cell.bottom))
    return x0, y0, max(1, x1 - x0), max(1, y1 - y0)


def fit_photo(img: Image.Image, w: int, h: int, fit: str) -> Tuple[Image.Image, int, int, float]:
    """Resize ``img`` for a ``w`` x ``h`` box.

    Returns the image, its paste offset inside the box and the fraction of the
    scaled photo that was cut away (always 0 for contain).
    """
    ow, oh = img.size
    if fit == "cover":
        scale = max(w / ow, h / oh)
        new_w = max(w, int(math.ceil(ow * scale)))
        new_h = max(h, int(math.ceil(oh * scale)))
        resized = img.resize((new_w, new_h), resample=Image.Resampling.LANCZOS)
        crop = (new_w * new_h - w * h) / float(new_w * new_h)
        left = (new_w - w) // 2
        top = (new_h - h) // 2
        return resized.crop((left, top, left + w, top + h)), 0, 0, crop

    scale = min(w / ow, h / oh)
    new_w = min(w, max(1, int(math.floor(ow * scale))))
    new_h = min(h, max(1, int(math.floor(oh * scale))))
    resized = img.resize((new_w, new_h), resample=Image.Resampling.LANCZOS)
    return resized, (w - new_w) // 2, (h - new_h) // 2, 0.0


def render_layout(
    candidate: LayoutCandidate,
    background: Tuple[int, int, int] = (0, 0, 0),
    fit: str = "cover",
    stats: dict[str, float] | None = None,
    workers: int = 0,
) -> Image.Image:
    """Paint ``candidate`` onto a page-sized RGB image.

    Every bound photo needs a file path as its handle.
    """
    page = candidate.page
    out = Image.new("RGB", (int(round(page.width)), int(round(page.height))), color=background)

    def prepare_one(cell: Cell):
        path = cell.photo.handle if cell.photo is not None else None
        if path is None:
            raise ValueError(f"{candidate.name}: cell at ({cell.x:.0f}, {cell.y:.0f}) has no image file")
        x, y, w, h = cell_box(cell)
        img, dx, dy, crop = fit_photo(open_image(Path(path)), w, h, fit)
        return img, x + dx, y + dy, crop

    cells = list(candidate.cells)
    crops: List[float] = []
    n_workers = _effective_workers(workers)
    if n_workers <= 1 or len(cells) <= 2:
        results = [prepare_one(c) for c in cells]
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as ex:
            futs = [ex.submit(prepare_one, c) for c in cells]
            results = [fut.result() for fut in as_completed(futs)]

    for img, x, y, crop in results:
        out.paste(img, (x, y))
        crops.append(crop)

    if stats is not None and fit == "cover":
        stats["cover_total"] = float(len(crops))
        stats["cover_cropped"] = float(sum(1 for c in crops if c > 0))
        stats["cover_crop_area_avg"] = (sum(crops) / len(crops)) if crops else 0.0

    return out


def save_image(img: Image.Image, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    ext = out_path.suffix.lower()
    if ext in {".jpg", ".jpeg"}:
        img.save(out_path, quality=92, subsampling=1, optimize=True)
    else:
        img.save(out_path)


def format_layout(rank: int, cand: LayoutCandidate) -> str:
    m = cand.metrics
    line = (
        f"#{rank:<3d} {cand.kind:<9s} {cand.name:<32s} cells={cand.count:<2d} "
        f"{'opt' if cand.optimized else 'seq'} score={cand.score:.4f}"
    )
    if m is not None:
        line += f" util={m.utilization:.3f} crop={m.cropping_rate:.3f} balance={m.size_balance:.3f}"
    if cand.duplicate_of is not None:
        line += f"  (duplicate of #{cand.duplicate_of + 1})"
    return line


def build_config(args: argparse.Namespace) -> EngineConfig:
    if args.legacy_weights:
        weights = LEGACY_WEIGHTS
    else:
        weights = parse_weights(args.weights)
    kwargs = {}
    if args.families:
        kwargs["families"] = parse_families(args.families)
    if args.split_ratio:
        kwargs["split_ratios"] = tuple(args.split_ratio)
    return EngineConfig(
        weights=weights,
        signature_precision=args.precision,
        grouping_precision=args.grouping_precision,
        prefer_optimized=args.prefer_optimized,
        **kwargs,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rank candidate page layouts for a set of photos. Optionally render one of them to an image."
    )

    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", type=str, help="Input folder containing photos.")
    src.add_argument(
        "--sizes",
        type=str,
        help="Photo sizes without files, like 1000x800,600x900. Ranking only.",
    )
    parser.add_argument("--recursive", action="store_true", help="Scan input folder recursively")

    parser.add_argument(
        "--preset",
        type=str,
        default="9:16",
        help="Page preset: 9:16 / 2:3 / 3:2 / 1:1 / a4 or any W:H ratio. Ignored if --size is provided.",
    )
    parser.add_argument("--size", type=str, default=None, help="Explicit page size like 1080x1920.")

    parser.add_argument("--top", type=int, default=10, help="How many ranked layouts to print. 0 prints all.")
    parser.add_argument(
        "--variants",
        action="store_true",
        help="List every candidate, marking near-identical ones instead of removing them.",
    )
    parser.add_argument(
        "--families",
        type=str,
        default=None,
        help="Comma separated layout families to try: grid,stacked,split,nested,composite.",
    )
    parser.add_argument(
        "--weights",
        type=str,
        default="0.4,0.4,0.2",
        help="Score weights for utilization, cropping and balance. Must sum to 1.",
    )
    parser.add_argument("--legacy-weights", action="store_true", help="Use the older 0.5,0.3,0.2 weighting.")
    parser.add_argument(
        "--precision",
        type=int,
        default=6,
        help="Decimals compared when removing structurally identical layouts.",
    )
    parser.add_argument(
        "--grouping-precision",
        type=int,
        default=2,
        help="Decimals compared when --variants marks near-identical layouts.",
    )
    parser.add_argument(
        "--split-ratio",
        type=float,
        action="append",
        default=None,
        help="Band ratio for split layouts, repeatable. Default 0.5.",
    )
    parser.add_argument(
        "--prefer-optimized",
        action="store_true",
        help="When a plain and an aspect-matched layout share a structure, keep the aspect-matched one.",
    )

    parser.add_argument("--output", type=str, default=None, help="Render a layout to this file (jpg or png).")
    parser.add_argument("--rank", type=int, default=1, help="Which ranked layout --output renders (1 = best).")
    parser.add_argument(
        "--fit",
        type=str,
        default="cover",
        choices=["cover", "contain"],
        help="cover: scale then center-crop to fill each cell. contain: no cropping, background shows around photos.",
    )
    parser.add_argument("--background", type=str, default="000000", help="Background color in RRGGBB or #RRGGBB")

    parser.add_argument("--workers", type=int, default=0, help="Thread workers for image IO/resize. 0 means auto.")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    page = parse_canvas(args.preset, args.size)
    config = build_config(args)
    background = parse_rgb(args.background)

    if args.sizes:
        if args.output:
            raise SystemExit("--output needs --input; --sizes carries no pixels")
        photos = parse_photo_sizes(args.sizes)
    else:
        folder = Path(args.input)
        files = iter_image_files(folder, recursive=args.recursive)
        if not files:
            raise SystemExit(f"No images found in: {folder}")
        photos = collect_photos(files, workers=args.workers)
        if not photos:
            raise SystemExit("No readable images")

    stats: dict[str, float] = {}
    if args.variants:
        ranked = generate_layout_variants(photos, page, config, stats=stats)
    else:
        ranked = generate_layouts(photos, page, config, stats=stats)
    if not ranked:
        raise SystemExit("No layouts for this input")

    print(f"page {page.width:g}x{page.height:g}; photos={len(photos)}; layouts={len(ranked)}")
    shown = ranked if args.top <= 0 else ranked[: args.top]
    for i, cand in enumerate(shown, start=1):
        print(format_layout(i, cand))

    if args.variants:
        groups = variant_groups(ranked, lambda c: grouping_signature(c, config.grouping_precision))
        multi = sum(1 for members in groups.values() if len(members) > 1)
        print(f"structures: {len(groups)} distinct; {multi} with more than one variant")

    if args.output:
        if not 1 <= args.rank <= len(ranked):
            raise SystemExit(f"--rank must be between 1 and {len(ranked)}")
        chosen = ranked[args.rank - 1]
        render_stats: dict[str, float] = {}
        img = render_layout(chosen, background=background, fit=args.fit, stats=render_stats, workers=args.workers)
        save_image(img, Path(args.output))
        if args.fit == "cover":
            total = int(render_stats.get("cover_total", 0.0))
            cropped = int(render_stats.get("cover_cropped", 0.0))
            pct = render_stats.get("cover_crop_area_avg", 0.0) * 100.0
            print(f"cover: cropped {cropped}/{total} images; avg cropped area {pct:.2f}%")
        print(f"saved #{args.rank} {chosen.name} -> {args.output}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
