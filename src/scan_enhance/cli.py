from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .artifacts import serialize_scan_result, write_scan_manifest_json
from .contracts import EnhancementSettings, ImageFormat, ScanConfig
from .module import run_scan_batch, run_scan_to_pdf

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pdf-scan",
        description="Enhance scanned page images and assemble them into a PDF.",
    )
    p.add_argument("image_relpaths", nargs="+", help="Image paths relative to --data-root, in page order.")
    p.add_argument("--data-root", required=True, type=Path, help="Root directory for input images.")
    p.add_argument("--out-root", required=True, type=Path, help="Explicit output root directory.")
    p.add_argument("--out-pdf", default="scan.pdf", help="PDF filename under --out-root (default: scan.pdf).")
    p.add_argument("--no-pdf", action="store_true", help="Only run the enhancement pipeline; write no PDF.")
    p.add_argument("--out-manifest", type=Path, default=None, help="Optional result manifest JSON file.")

    p.add_argument("--no-enhance", action="store_true", help="Disable tone remap and sharpen.")
    p.add_argument("--brightness", type=float, default=10.0, help="Brightness offset (default: 10).")
    p.add_argument("--contrast", type=float, default=1.3, help="Contrast multiplier, > 0 (default: 1.3).")
    p.add_argument("--no-sharpen", action="store_true", help="Skip the sharpen pass.")
    p.add_argument(
        "--max-width",
        type=int,
        default=2400,
        help="Downscale wider images to this width before enhancing; 0 disables (default: 2400).",
    )
    p.add_argument("--thumbnail-width", type=int, default=150)
    p.add_argument("--format", choices=[f.value for f in ImageFormat], default=ImageFormat.JPEG.value)
    p.add_argument("--quality", type=int, default=95, help="JPEG quality for page images (1..100).")
    p.add_argument("--workers", type=int, default=1, help="Images processed in parallel (default: 1).")
    p.add_argument("--write-page-images", action="store_true", help="Also write page images and thumbnails.")
    p.add_argument("--source-sha256", action="store_true", help="Record sha256 of each source image.")
    p.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    try:
        config = ScanConfig(
            data_root=args.data_root,
            out_root=args.out_root,
            auto_enhance=not args.no_enhance,
            settings=EnhancementSettings(
                brightness=args.brightness,
                contrast=args.contrast,
                sharpen=not args.no_sharpen,
            ),
            max_width=args.max_width or None,
            thumbnail_width=args.thumbnail_width,
            image_format=ImageFormat(args.format),
            image_quality=args.quality,
            max_workers=args.workers,
            write_page_images=args.write_page_images,
            compute_source_sha256=args.source_sha256,
        )
    except ValueError as e:
        print(f"pdf-scan: invalid parameters: {e}", file=sys.stderr)
        return 2

    if args.no_pdf:
        result = run_scan_batch(config=config, image_relpaths=args.image_relpaths)
    else:
        result = run_scan_to_pdf(config=config, image_relpaths=args.image_relpaths, out_pdf_name=args.out_pdf)

    if args.out_manifest is not None:
        write_scan_manifest_json(result=result, out_manifest=args.out_manifest)
    else:
        sys.stdout.write(serialize_scan_result(result))

    return 0 if result.ok else 2


if __name__ == "__main__":
    raise SystemExit(main())
