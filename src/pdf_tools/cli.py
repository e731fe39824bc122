from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path
from typing import Any

from .artifacts import serialize_tool_result, write_tool_manifest_json
from .contracts import (
    BatchParams,
    BlankPagesParams,
    CropParams,
    DuplicateParams,
    GrayscaleParams,
    HeaderFooterParams,
    PageNumberParams,
    PageNumberPosition,
    PageSelectionParams,
    PdfMetadata,
    PdfToolName,
    PdfToolsConfig,
    ReorderParams,
    RotateParams,
    WatermarkParams,
)
from .module import run_pdf_batch, run_pdf_tool_relpaths

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _add_watermark_args(p: argparse.ArgumentParser, *, required: bool) -> None:
    p.add_argument("--text", required=required, default=None, help="Watermark text.")
    p.add_argument("--opacity", type=float, default=30.0, help="Watermark opacity in percent (0..100).")


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pdf-tools",
        description="PDF page tools: read PDFs under --data-root, write results under --out-root.",
    )
    p.add_argument("--data-root", required=True, type=Path, help="Root directory for input PDFs.")
    p.add_argument("--out-root", required=True, type=Path, help="Explicit output root directory.")
    p.add_argument("--out-manifest", type=Path, default=None, help="Optional result manifest JSON file.")
    p.add_argument(
        "--strict-pages",
        action="store_true",
        help="Reject malformed or out-of-range page selections instead of ignoring them.",
    )
    p.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING).")

    sub = p.add_subparsers(dest="tool", required=True)

    def tool_parser(name: str, help_text: str, *, many: bool = False) -> argparse.ArgumentParser:
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("pdf_relpaths", nargs="+" if many else 1, help="PDF path(s) relative to --data-root.")
        return sp

    tool_parser(PdfToolName.MERGE.value, "Concatenate PDFs in the given order.", many=True)
    tool_parser(PdfToolName.SPLIT.value, "One PDF per page.")
    sp = tool_parser(PdfToolName.ROTATE.value, "Rotate every page.")
    sp.add_argument("--degrees", type=int, default=90, choices=[90, 180, 270])
    sp = tool_parser(PdfToolName.EXTRACT.value, "Keep only the selected pages.")
    sp.add_argument("--pages", required=True, help='Page selection like "1,3-5".')
    sp = tool_parser(PdfToolName.REORDER.value, "Rearrange pages.")
    sp.add_argument("--order", required=True, help='New order as 1-indexed page numbers, e.g. "3,1,2".')
    tool_parser(PdfToolName.COMPRESS.value, "Re-save with compressed content streams.")
    sp = tool_parser(PdfToolName.DELETE.value, "Remove the selected pages.")
    sp.add_argument("--pages", required=True, help='Page selection like "1,3-5".')
    sp = tool_parser(PdfToolName.DUPLICATE.value, "Repeat the selected pages.")
    sp.add_argument("--pages", required=True, help='Page selection like "1,3-5".')
    sp.add_argument("--times", type=int, default=1, help="Copies to add after each selected page.")
    sp = tool_parser(PdfToolName.WATERMARK.value, "Stamp diagonal text on every page.")
    _add_watermark_args(sp, required=True)
    tool_parser(PdfToolName.REMOVE_DUPLICATES.value, "Drop pages whose size was already seen.")
    tool_parser(PdfToolName.REVERSE.value, "Reverse the page order.")
    sp = tool_parser(PdfToolName.PAGE_NUMBERS.value, "Number every page.")
    sp.add_argument(
        "--position",
        choices=[pos.value for pos in PageNumberPosition],
        default=PageNumberPosition.BOTTOM_CENTER.value,
    )
    sp.add_argument("--start", type=int, default=1, help="Number printed on the first page.")
    sp = tool_parser(PdfToolName.GRAYSCALE.value, "Rasterize pages to grayscale.")
    sp.add_argument("--dpi", type=int, default=150)
    sp = tool_parser(PdfToolName.METADATA.value, "Show or edit document information.")
    sp.add_argument("--title", default=None)
    sp.add_argument("--author", default=None)
    sp.add_argument("--subject", default=None)
    sp.add_argument("--keywords", default=None, help="Comma-separated keywords.")
    sp = tool_parser(PdfToolName.BLANK_PAGES.value, "Insert blank pages.")
    sp.add_argument("--positions", required=True, help='Insertion indices, e.g. "0,2" (0 = before page 1).')
    sp.add_argument("--width", type=float, default=None, help="Page width in points (default: first page).")
    sp.add_argument("--height", type=float, default=None, help="Page height in points (default: first page).")
    sp = tool_parser(PdfToolName.CROP.value, "Trim a margin from every page.")
    sp.add_argument("--margin", type=float, default=20.0, help="Points removed from every side.")
    sp = tool_parser(PdfToolName.HEADER_FOOTER.value, "Add header and/or footer text.")
    sp.add_argument("--header", default=None)
    sp.add_argument("--footer", default=None)

    sp = tool_parser("batch", "Rotate and/or watermark many PDFs independently.", many=True)
    sp.add_argument("--rotation", type=int, default=0, choices=[0, 90, 180, 270])
    _add_watermark_args(sp, required=False)
    return p


def _params_from_args(tool: PdfToolName, args: argparse.Namespace) -> Any:
    if tool == PdfToolName.ROTATE:
        return RotateParams(degrees=args.degrees)
    if tool in (PdfToolName.EXTRACT, PdfToolName.DELETE):
        return PageSelectionParams(selection=args.pages)
    if tool == PdfToolName.REORDER:
        return ReorderParams(order=tuple(int(s) for s in args.order.split(",") if s.strip()))
    if tool == PdfToolName.DUPLICATE:
        return DuplicateParams(selection=args.pages, times=args.times)
    if tool == PdfToolName.WATERMARK:
        return WatermarkParams(text=args.text, opacity=args.opacity)
    if tool == PdfToolName.PAGE_NUMBERS:
        return PageNumberParams(position=PageNumberPosition(args.position), start_number=args.start)
    if tool == PdfToolName.GRAYSCALE:
        return GrayscaleParams(dpi=args.dpi)
    if tool == PdfToolName.METADATA:
        fields = (args.title, args.author, args.subject, args.keywords)
        if all(f is None for f in fields):
            return None
        keywords = None
        if args.keywords is not None:
            keywords = tuple(k.strip() for k in args.keywords.split(",") if k.strip())
        return PdfMetadata(
            title=args.title,
            author=args.author,
            subject=args.subject,
            keywords=keywords,
            modification_date=dt.datetime.now(dt.timezone.utc).replace(microsecond=0),
        )
    if tool == PdfToolName.BLANK_PAGES:
        return BlankPagesParams(positions=args.positions, width=args.width, height=args.height)
    if tool == PdfToolName.CROP:
        return CropParams(margin=args.margin)
    if tool == PdfToolName.HEADER_FOOTER:
        return HeaderFooterParams(header=args.header, footer=args.footer)
    return None


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    config = PdfToolsConfig(
        data_root=args.data_root,
        out_root=args.out_root,
        strict_page_selection=args.strict_pages,
    )

    try:
        if args.tool == "batch":
            watermark = None
            if args.text:
                watermark = WatermarkParams(text=args.text, opacity=args.opacity)
            result = run_pdf_batch(
                config=config,
                pdf_relpaths=args.pdf_relpaths,
                params=BatchParams(rotation=args.rotation, watermark=watermark),
            )
        else:
            tool = PdfToolName(args.tool)
            result = run_pdf_tool_relpaths(
                config=config,
                tool=tool,
                pdf_relpaths=args.pdf_relpaths,
                params=_params_from_args(tool, args),
            )
    except ValueError as e:
        print(f"pdf-tools: invalid parameters: {e}", file=sys.stderr)
        return 2

    if args.out_manifest is not None:
        write_tool_manifest_json(result=result, out_manifest=args.out_manifest)
    else:
        sys.stdout.write(serialize_tool_result(result))

    return 0 if result.ok else 2


if __name__ == "__main__":
    raise SystemExit(main())
