from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from . import operations as ops
from .contracts import (
    BatchParams,
    BlankPagesParams,
    CropParams,
    DuplicateParams,
    GrayscaleParams,
    HeaderFooterParams,
    PageNumberParams,
    PageSelectionError,
    PageSelectionParams,
    PdfEngineName,
    PdfLibraryError,
    PdfMetadata,
    PdfToolError,
    PdfToolName,
    PdfToolOutput,
    PdfToolResult,
    PdfToolsConfig,
    ReorderParams,
    RotateParams,
    WatermarkParams,
)
from .data_access import DataAccessError, resolve_under_data_root, sha256_bytes, write_bytes_under_root
from .engines import PdfDocumentEngine, PypdfEngine, Pypdfium2Renderer
from .page_selection import canonical_page_selection, parse_insert_positions, parse_page_selection

log = logging.getLogger(__name__)

# Tool -> params type it accepts. `None` means the tool takes no parameters.
_PARAMS_TYPES: dict[PdfToolName, type | None] = {
    PdfToolName.MERGE: None,
    PdfToolName.SPLIT: None,
    PdfToolName.ROTATE: RotateParams,
    PdfToolName.EXTRACT: PageSelectionParams,
    PdfToolName.REORDER: ReorderParams,
    PdfToolName.COMPRESS: None,
    PdfToolName.DELETE: PageSelectionParams,
    PdfToolName.DUPLICATE: DuplicateParams,
    PdfToolName.WATERMARK: WatermarkParams,
    PdfToolName.REMOVE_DUPLICATES: None,
    PdfToolName.REVERSE: None,
    PdfToolName.PAGE_NUMBERS: PageNumberParams,
    PdfToolName.GRAYSCALE: GrayscaleParams,
    PdfToolName.METADATA: PdfMetadata,
    PdfToolName.BLANK_PAGES: BlankPagesParams,
    PdfToolName.CROP: CropParams,
    PdfToolName.HEADER_FOOTER: HeaderFooterParams,
}

# Tools that fall back to default params when called with params=None.
_DEFAULTABLE: dict[PdfToolName, Any] = {
    PdfToolName.ROTATE: RotateParams(),
    PdfToolName.PAGE_NUMBERS: PageNumberParams(),
    PdfToolName.GRAYSCALE: GrayscaleParams(),
    PdfToolName.CROP: CropParams(),
}


def _get_engine(engine: PdfEngineName) -> PdfDocumentEngine:
    if engine == PdfEngineName.PYPDF:
        return PypdfEngine()
    raise ValueError(f"Unsupported PDF engine: {engine}")


def _get_renderer() -> Pypdfium2Renderer:
    return Pypdfium2Renderer()


def _name_and_stem(relpath: str) -> tuple[str, str]:
    p = PurePosixPath(relpath.replace("\\", "/"))
    return p.name, p.stem


def _params_meta(params: Any) -> dict[str, Any] | None:
    if isinstance(params, PdfMetadata):
        return params.to_dict()
    if is_dataclass(params) and not isinstance(params, type):
        return asdict(params)
    return None


class _EmptySelection(ValueError):
    pass


def _selected(selection: str, *, page_count: int, strict: bool) -> list[int]:
    pages = parse_page_selection(selection, page_count=page_count, strict=strict)
    if not pages:
        raise _EmptySelection(f"selection {selection!r} matches no pages (1..{page_count})")
    return pages


def _apply_tool(
    *,
    tool: PdfToolName,
    sources: list[tuple[str, bytes]],
    params: Any,
    engine: PdfDocumentEngine,
    strict: bool,
    meta: dict[str, Any],
) -> list[tuple[str, bytes]]:
    """
    Run one tool over already-loaded sources and return (filename, bytes) outputs.

    Raises on any failure; nothing is written here.
    """

    if tool == PdfToolName.MERGE:
        return [("merged.pdf", ops.merge_pdfs([data for _, data in sources], engine=engine))]

    [(relpath, data)] = sources
    name, stem = _name_and_stem(relpath)

    if tool == PdfToolName.SPLIT:
        parts = ops.split_pdf(data, engine=engine)
        return [(f"{stem}_page_{i}.pdf", part) for i, part in enumerate(parts, start=1)]
    if tool == PdfToolName.ROTATE:
        return [(f"{stem}_rotated.pdf", ops.rotate_pdf(data, params.degrees, engine=engine))]
    if tool == PdfToolName.EXTRACT:
        pages = _selected(params.selection, page_count=ops.page_count(data, engine=engine), strict=strict)
        meta["page_selection"] = canonical_page_selection(params.selection)
        meta["pages"] = pages
        return [(f"{stem}_extracted.pdf", ops.extract_pages(data, pages, engine=engine))]
    if tool == PdfToolName.REORDER:
        return [(f"reordered_{name}", ops.reorder_pages(data, list(params.order), engine=engine))]
    if tool == PdfToolName.COMPRESS:
        return [(f"compressed_{name}", ops.compress_pdf(data, engine=engine))]
    if tool == PdfToolName.DELETE:
        n = ops.page_count(data, engine=engine)
        pages = _selected(params.selection, page_count=n, strict=strict)
        meta["page_selection"] = canonical_page_selection(params.selection)
        meta["pages"] = pages
        return [(f"{stem}_deleted.pdf", ops.delete_pages(data, pages, engine=engine))]
    if tool == PdfToolName.DUPLICATE:
        pages = _selected(params.selection, page_count=ops.page_count(data, engine=engine), strict=strict)
        meta["page_selection"] = canonical_page_selection(params.selection)
        meta["pages"] = pages
        return [(f"{stem}_duplicated.pdf", ops.duplicate_pages(data, pages, params.times, engine=engine))]
    if tool == PdfToolName.WATERMARK:
        return [(f"{stem}_watermarked.pdf", ops.add_watermark(data, params.text, params.opacity, engine=engine))]
    if tool == PdfToolName.REMOVE_DUPLICATES:
        return [(f"{stem}_no_duplicates.pdf", ops.remove_duplicate_pages(data, engine=engine))]
    if tool == PdfToolName.REVERSE:
        return [(f"{stem}_reversed.pdf", ops.reverse_page_order(data, engine=engine))]
    if tool == PdfToolName.PAGE_NUMBERS:
        out = ops.add_page_numbers(data, params.position, params.start_number, engine=engine)
        return [(f"{stem}_numbered.pdf", out)]
    if tool == PdfToolName.GRAYSCALE:
        renderer = _get_renderer()
        meta["renderer"] = renderer.backend_id()
        meta["renderer_version"] = renderer.backend_version()
        out = ops.convert_to_grayscale(data, engine=engine, renderer=renderer, dpi=params.dpi)
        return [(f"{stem}_grayscale.pdf", out)]
    if tool == PdfToolName.METADATA:
        if params is None:
            meta["metadata"] = ops.read_metadata(data, engine=engine).to_dict()
            return []
        out = ops.edit_metadata(data, params, engine=engine)
        meta["metadata"] = ops.read_metadata(out, engine=engine).to_dict()
        return [(f"{stem}_metadata.pdf", out)]
    if tool == PdfToolName.BLANK_PAGES:
        positions = parse_insert_positions(params.positions, page_count=ops.page_count(data, engine=engine))
        if not positions:
            raise _EmptySelection(f"positions {params.positions!r} contain no valid insertion index")
        meta["positions"] = positions
        size = None if params.width is None else (params.width, params.height)
        return [(f"{stem}_with_blanks.pdf", ops.insert_blank_pages(data, positions, size, engine=engine))]
    if tool == PdfToolName.CROP:
        return [(f"cropped_{name}", ops.crop_pages(data, params.margin, engine=engine))]
    if tool == PdfToolName.HEADER_FOOTER:
        return [(f"document_{name}", ops.add_header_footer(data, params.header, params.footer, engine=engine))]

    raise ValueError(f"Unsupported tool: {tool}")


def _check_request(tool: PdfToolName, pdf_relpaths: list[str], params: Any) -> PdfToolError | None:
    if tool == PdfToolName.MERGE:
        if not pdf_relpaths:
            return PdfToolError(code="PDF_TOOL_BAD_INPUT_COUNT", message="merge needs at least one PDF")
    elif len(pdf_relpaths) != 1:
        return PdfToolError(
            code="PDF_TOOL_BAD_INPUT_COUNT",
            message=f"{tool.value} takes exactly one PDF",
            detail={"count": len(pdf_relpaths)},
        )

    expected = _PARAMS_TYPES[tool]
    if expected is None:
        if params is not None:
            return PdfToolError(code="PDF_TOOL_BAD_PARAMS", message=f"{tool.value} takes no parameters")
    elif params is None:
        if tool not in _DEFAULTABLE and tool != PdfToolName.METADATA:
            return PdfToolError(code="PDF_TOOL_BAD_PARAMS", message=f"{tool.value} requires {expected.__name__}")
    elif not isinstance(params, expected):
        return PdfToolError(
            code="PDF_TOOL_BAD_PARAMS",
            message=f"{tool.value} requires {expected.__name__}",
            detail={"got": type(params).__name__},
        )
    return None


def _load_sources(
    *, config: PdfToolsConfig, pdf_relpaths: list[str]
) -> tuple[list[tuple[str, bytes]], PdfToolError | None]:
    sources: list[tuple[str, bytes]] = []
    for relpath in pdf_relpaths:
        try:
            pdf_file = resolve_under_data_root(data_root=config.data_root, relpath=relpath)
        except DataAccessError as e:
            return [], PdfToolError(
                code="PDF_TOOL_DATA_ACCESS_ERROR",
                message=str(e),
                detail={"data_root": str(config.data_root), "relpath": relpath},
            )
        if not pdf_file.is_file():
            return [], PdfToolError(
                code="PDF_TOOL_INPUT_NOT_FOUND",
                message="Input PDF not found",
                detail={"relpath": relpath},
            )
        try:
            sources.append((relpath, pdf_file.read_bytes()))
        except OSError as e:
            return [], PdfToolError(
                code="PDF_TOOL_DATA_ACCESS_ERROR",
                message="Failed to read input PDF",
                detail={"relpath": relpath, "error": repr(e)},
            )
    return sources, None


def _write_outputs(
    *, config: PdfToolsConfig, outputs: list[tuple[str, bytes]], engine: PdfDocumentEngine
) -> list[PdfToolOutput]:
    """
    Write every output or none: a failure removes whatever was already written.
    """

    written: list[Path] = []
    records: list[PdfToolOutput] = []
    try:
        for filename, data in outputs:
            written.append(write_bytes_under_root(out_root=config.out_root, relpath=filename, data=data))
            records.append(
                PdfToolOutput(
                    filename=filename,
                    out_relpath=filename,
                    page_count=ops.page_count(data, engine=engine),
                    size_bytes=len(data),
                    sha256=sha256_bytes(data),
                )
            )
    except Exception:
        for f in written:
            f.unlink(missing_ok=True)
        raise
    return records


def run_pdf_tool_relpaths(
    *,
    config: PdfToolsConfig,
    tool: PdfToolName,
    pdf_relpaths: list[str],
    params: Any = None,
) -> PdfToolResult:
    """
    Programmatic entrypoint for a single page tool.

    Inputs are relpaths under `config.data_root`; outputs are written under
    `config.out_root`. Failures are reported as coded errors, never raised, and
    leave no output files behind.
    """

    engine = _get_engine(config.engine)
    meta: dict[str, Any] = {
        "backend": engine.backend_id(),
        "backend_version": engine.backend_version(),
        "params": _params_meta(params),
    }

    def failed(error: PdfToolError) -> PdfToolResult:
        log.warning("%s failed: %s (%s)", tool.value, error.code, error.message)
        return PdfToolResult(
            tool=tool.value,
            ok=False,
            source_pdf_relpaths=list(pdf_relpaths),
            outputs=[],
            errors=[error],
            meta=meta,
        )

    request_error = _check_request(tool, pdf_relpaths, params)
    if request_error is not None:
        return failed(request_error)
    if params is None and tool in _DEFAULTABLE:
        params = _DEFAULTABLE[tool]
        meta["params"] = _params_meta(params)

    sources, load_error = _load_sources(config=config, pdf_relpaths=pdf_relpaths)
    if load_error is not None:
        return failed(load_error)

    log.info("running %s on %d file(s)", tool.value, len(sources))
    try:
        produced = _apply_tool(
            tool=tool,
            sources=sources,
            params=params,
            engine=engine,
            strict=config.strict_page_selection,
            meta=meta,
        )
    except PdfLibraryError as e:
        return failed(PdfToolError(code="PDF_TOOL_LIBRARY_ERROR", message=str(e)))
    except PageSelectionError as e:
        return failed(PdfToolError(code="PDF_TOOL_BAD_PAGE_SELECTION", message=str(e)))
    except _EmptySelection as e:
        return failed(PdfToolError(code="PDF_TOOL_EMPTY_SELECTION", message=str(e)))
    except ValueError as e:
        return failed(PdfToolError(code="PDF_TOOL_BAD_PARAMS", message=str(e)))

    try:
        outputs = _write_outputs(config=config, outputs=produced, engine=engine)
    except (OSError, DataAccessError, PdfLibraryError) as e:
        return failed(
            PdfToolError(
                code="PDF_TOOL_WRITE_FAILED",
                message="Failed to write tool output",
                detail={"out_root": str(config.out_root), "error": repr(e)},
            )
        )

    log.info("%s wrote %d output(s)", tool.value, len(outputs))
    return PdfToolResult(
        tool=tool.value,
        ok=True,
        source_pdf_relpaths=list(pdf_relpaths),
        outputs=outputs,
        errors=[],
        meta=meta,
    )


def run_pdf_batch(*, config: PdfToolsConfig, pdf_relpaths: list[str], params: BatchParams) -> PdfToolResult:
    """
    Rotate and/or watermark each PDF independently.

    A failing file contributes an error entry and no output; the other files
    are still processed. `ok` is True iff every file succeeded.
    """

    engine = _get_engine(config.engine)
    outputs: list[PdfToolOutput] = []
    errors: list[PdfToolError] = []

    for relpath in pdf_relpaths:
        sources, load_error = _load_sources(config=config, pdf_relpaths=[relpath])
        if load_error is not None:
            log.warning("batch: skipping %s: %s", relpath, load_error.code)
            errors.append(load_error)
            continue

        [(_, data)] = sources
        name, _ = _name_and_stem(relpath)
        try:
            if params.rotation % 360:
                data = ops.rotate_pdf(data, params.rotation, engine=engine)
            if params.watermark is not None:
                data = ops.add_watermark(data, params.watermark.text, params.watermark.opacity, engine=engine)
            outputs.extend(
                _write_outputs(config=config, outputs=[(f"processed_{name}", data)], engine=engine)
            )
        except PdfLibraryError as e:
            log.warning("batch: %s failed: %s", relpath, e)
            errors.append(PdfToolError(code="PDF_TOOL_LIBRARY_ERROR", message=str(e), detail={"relpath": relpath}))
        except (OSError, DataAccessError) as e:
            errors.append(
                PdfToolError(
                    code="PDF_TOOL_WRITE_FAILED",
                    message="Failed to write tool output",
                    detail={"relpath": relpath, "error": repr(e)},
                )
            )

    return PdfToolResult(
        tool="batch",
        ok=not errors,
        source_pdf_relpaths=list(pdf_relpaths),
        outputs=outputs,
        errors=errors,
        meta={
            "backend": engine.backend_id(),
            "backend_version": engine.backend_version(),
            "params": asdict(params),
        },
    )
