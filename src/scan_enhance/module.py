from __future__ import annotations

import hashlib
import json
import logging
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from pathlib import Path, PurePosixPath
from typing import Any, Sequence

from pdf_tools.contracts import PdfLibraryError
from pdf_tools.data_access import (
    DataAccessError,
    resolve_under_data_root,
    sha256_bytes,
    write_bytes_under_root,
)
from pdf_tools.engines import PdfDocumentEngine, PypdfEngine

from .codec import decode_image, encode_image, encode_raster, fit_to_width, make_thumbnail
from .contracts import (
    DecodeError,
    EncodeError,
    EnhancementSettings,
    RasterImage,
    ScanBatchResult,
    ScanConfig,
    ScanError,
    ScannedPage,
    ScanPageResult,
)
from .sharpen import apply_sharpen
from .tone import apply_tone_remap

log = logging.getLogger(__name__)


def _safe_stem(relpath: str) -> str:
    """
    Deterministic, filesystem-safe stem for readability.
    """
    s = PurePosixPath(relpath.replace("\\", "/")).stem
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", s)
    s = re.sub(r"_+", "_", s).strip("_")
    return s or "scan"


def _compute_batch_id(*, image_relpaths: Sequence[str], config: ScanConfig) -> str:
    """
    Deterministic batch id, stable for identical:
    (ordered source relpaths + enhancement settings + output encoding).
    """

    settings = config.effective_settings
    payload = {
        "image_relpaths": [p.replace("\\", "/") for p in image_relpaths],
        "settings": asdict(settings) if settings is not None else None,
        "max_width": config.max_width,
        "image_format": config.image_format.value,
        "image_quality": config.image_quality,
    }
    s = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(s.encode("utf-8")).hexdigest()
    first = image_relpaths[0] if image_relpaths else "scan"
    return f"{_safe_stem(first)}_{digest[:12]}"


def enhance_raster(image: RasterImage, settings: EnhancementSettings | None) -> RasterImage:
    """
    Tone remap, then (optionally) sharpen. `settings=None` means enhancement is
    disabled and an unchanged copy is returned.
    """

    if settings is None:
        return image.copy()
    out = apply_tone_remap(image, brightness=settings.brightness, contrast=settings.contrast)
    if settings.sharpen:
        out = apply_sharpen(out)
    return out


def process_image_bytes(
    data: bytes,
    *,
    config: ScanConfig,
    source_name: str,
    page_id: str | None = None,
) -> ScannedPage:
    """
    Full per-image pipeline: decode, orient, fit to `max_width`, enhance, encode.

    The thumbnail is made from the oriented source before enhancement.
    Raises DecodeError / EncodeError.
    """

    source = decode_image(data)
    if source.width == 0 or source.height == 0:
        raise DecodeError("decoded image has no pixels")

    raster = RasterImage.from_pil(fit_to_width(source, config.max_width))
    enhanced = enhance_raster(raster, config.effective_settings)
    image_bytes = encode_raster(enhanced, image_format=config.image_format, quality=config.image_quality)

    thumb = make_thumbnail(source, width=config.thumbnail_width)
    thumbnail_bytes = encode_image(thumb, image_format=config.image_format, quality=config.thumbnail_quality)

    return ScannedPage(
        page_id=page_id or uuid.uuid4().hex,
        source_name=source_name,
        image_format=config.image_format,
        image_bytes=image_bytes,
        width=enhanced.width,
        height=enhanced.height,
        thumbnail_bytes=thumbnail_bytes,
        thumbnail_width=thumb.width,
        thumbnail_height=thumb.height,
    )


def _process_one(config: ScanConfig, index: int, relpath: str) -> tuple[ScanPageResult, str | None]:
    def failed(error: ScanError) -> tuple[ScanPageResult, str | None]:
        log.warning("scan: %s failed: %s (%s)", relpath, error.code, error.message)
        return (
            ScanPageResult(index=index, source_image_relpath=relpath, ok=False, page=None, errors=[error]),
            None,
        )

    try:
        image_file = resolve_under_data_root(data_root=config.data_root, relpath=relpath)
    except DataAccessError as e:
        return failed(
            ScanError(
                code="SCAN_DATA_ACCESS_ERROR",
                message=str(e),
                detail={"data_root": str(config.data_root), "relpath": relpath},
            )
        )
    if not image_file.is_file():
        return failed(ScanError(code="SCAN_INPUT_NOT_FOUND", message="Input image not found", detail={"relpath": relpath}))

    try:
        data = image_file.read_bytes()
    except OSError as e:
        return failed(ScanError(code="SCAN_DATA_ACCESS_ERROR", message=str(e), detail={"relpath": relpath}))

    try:
        page = process_image_bytes(data, config=config, source_name=image_file.name)
    except DecodeError as e:
        return failed(ScanError(code="SCAN_DECODE_FAILED", message=str(e), detail={"relpath": relpath}))
    except EncodeError as e:
        return failed(ScanError(code="SCAN_ENCODE_FAILED", message=str(e), detail={"relpath": relpath}))

    log.debug("scan: %s -> %dx%d", relpath, page.width, page.height)
    digest = sha256_bytes(data) if config.compute_source_sha256 else None
    return ScanPageResult(index=index, source_image_relpath=relpath, ok=True, page=page, errors=[]), digest


def _batch_meta(config: ScanConfig) -> dict[str, Any]:
    settings = config.effective_settings
    return {
        "auto_enhance": config.auto_enhance,
        "settings": asdict(settings) if settings is not None else None,
        "max_width": config.max_width,
        "thumbnail_width": config.thumbnail_width,
        "image_format": config.image_format.value,
        "image_quality": config.image_quality,
        "thumbnail_quality": config.thumbnail_quality,
    }


def run_scan_batch(*, config: ScanConfig, image_relpaths: list[str]) -> ScanBatchResult:
    """
    Programmatic entrypoint: run the enhancement pipeline over each image.

    Each image is independent: a failure becomes a coded error on that entry
    and the rest are still processed. Result order is input order, also when
    `config.max_workers > 1`.
    """

    batch_id = _compute_batch_id(image_relpaths=image_relpaths, config=config)
    meta = _batch_meta(config)

    log.info("scan batch %s: %d image(s)", batch_id, len(image_relpaths))
    jobs = list(enumerate(image_relpaths))
    if config.max_workers > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            processed = list(pool.map(lambda job: _process_one(config, *job), jobs))
    else:
        processed = [_process_one(config, i, relpath) for i, relpath in jobs]

    pages = [r for r, _ in processed]
    if config.compute_source_sha256:
        # one entry per submitted image in input order, None where processing failed
        meta["source_sha256"] = [digest for _, digest in processed]

    ok = all(r.ok for r in pages)
    log.info("scan batch %s: %d/%d page(s) ok", batch_id, sum(r.ok for r in pages), len(pages))
    return ScanBatchResult(batch_id=batch_id, ok=ok, pages=pages, errors=[], meta=meta)


def assemble_pdf(pages: Sequence[ScannedPage], *, engine: PdfDocumentEngine | None = None) -> bytes:
    """
    One PDF page per scanned page, in order. Each page measures the image's
    pixel size in points and the image covers it fully.

    Raises ValueError for an empty page list and PdfLibraryError on backend
    failures.
    """

    if not pages:
        raise ValueError("cannot assemble a PDF from zero pages")
    engine = engine or PypdfEngine()
    doc = engine.create()
    for page in pages:
        engine.add_image_page(doc, page.image_bytes, (float(page.width), float(page.height)))
    return engine.save(doc)


def _write_page_images(
    *, config: ScanConfig, batch_id: str, pages: Sequence[ScannedPage], written: list[Path]
) -> list[str]:
    """Every file written is appended to `written` so the caller can roll back."""

    ext = config.image_format.extension
    relpaths: list[str] = []
    for n, page in enumerate(pages, start=1):
        for kind, data in (("pages", page.image_bytes), ("thumbnails", page.thumbnail_bytes)):
            relpath = f"{batch_id}/{kind}/page_{n:04d}.{ext}"
            written.append(write_bytes_under_root(out_root=config.out_root, relpath=relpath, data=data))
            relpaths.append(relpath)
    return relpaths


def run_scan_to_pdf(
    *,
    config: ScanConfig,
    image_relpaths: list[str],
    out_pdf_name: str = "scan.pdf",
) -> ScanBatchResult:
    """
    Batch-process the images and assemble every successful page into one PDF
    under `config.out_root`.

    Failed images are skipped (and reported); the PDF is still written from
    the remaining pages. If assembly or writing fails, no PDF is left behind.
    """

    result = run_scan_batch(config=config, image_relpaths=image_relpaths)
    meta = dict(result.meta)
    errors: list[ScanError] = list(result.errors)

    def finish() -> ScanBatchResult:
        ok = not errors and all(r.ok for r in result.pages)
        return ScanBatchResult(batch_id=result.batch_id, ok=ok, pages=result.pages, errors=errors, meta=meta)

    pages = result.scanned_pages
    if not pages:
        errors.append(ScanError(code="SCAN_NO_PAGES", message="No image could be processed; no PDF written"))
        log.warning("scan batch %s: no pages to assemble", result.batch_id)
        return finish()

    engine = PypdfEngine()
    meta["backend"] = engine.backend_id()
    meta["backend_version"] = engine.backend_version()
    try:
        pdf = assemble_pdf(pages, engine=engine)
    except PdfLibraryError as e:
        errors.append(ScanError(code="SCAN_PDF_ASSEMBLY_FAILED", message=str(e)))
        log.warning("scan batch %s: assembly failed: %s", result.batch_id, e)
        return finish()

    written: list[Path] = []
    try:
        written.append(write_bytes_under_root(out_root=config.out_root, relpath=out_pdf_name, data=pdf))
        if config.write_page_images:
            meta["page_image_relpaths"] = _write_page_images(
                config=config, batch_id=result.batch_id, pages=pages, written=written
            )
    except (OSError, DataAccessError) as e:
        for f in written:
            f.unlink(missing_ok=True)
        meta.pop("page_image_relpaths", None)
        log.warning("scan batch %s: write failed: %r", result.batch_id, e)
        errors.append(
            ScanError(
                code="SCAN_WRITE_FAILED",
                message="Failed to write scan output",
                detail={"out_root": str(config.out_root), "error": repr(e)},
            )
        )
        return finish()

    meta["out_pdf_relpath"] = out_pdf_name
    meta["pdf_page_count"] = len(pages)
    meta["pdf_sha256"] = sha256_bytes(pdf)
    log.info("scan batch %s: wrote %s (%d page(s))", result.batch_id, out_pdf_name, len(pages))
    return finish()
