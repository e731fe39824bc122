"""
Page tools. Every function takes PDF bytes and returns new PDF bytes; the input
is never modified.

Page numbers are 1-indexed at this layer; out-of-range numbers are dropped
rather than treated as errors, matching how the selections are parsed.
"""

from __future__ import annotations

from io import BytesIO

from .contracts import PageNumberPosition, PdfMetadata, TextStamp
from .engines.base import PdfDocumentEngine
from .engines.pypdfium2_render import Pypdfium2Renderer

WATERMARK_FONT_SIZE = 40
WATERMARK_COLOR = (0.5, 0.5, 0.5)
WATERMARK_ROTATION = -45
PAGE_NUMBER_FONT_SIZE = 12
PAGE_NUMBER_COLOR = (0.3, 0.3, 0.3)
HEADER_FOOTER_FONT_SIZE = 10
HEADER_FOOTER_COLOR = (0.2, 0.2, 0.2)
EDGE_OFFSET = 30  # points from the page edge for page numbers and header/footer
GRAYSCALE_JPEG_QUALITY = 85


def _centered_x(width: float, text: str) -> float:
    # Approximate centering; Helvetica averages ~6pt per glyph at these sizes.
    return width / 2 - len(text) * 3


def _valid_indices(page_numbers: list[int], page_count: int) -> list[int]:
    return [n - 1 for n in page_numbers if 1 <= n <= page_count]


def page_count(data: bytes, *, engine: PdfDocumentEngine) -> int:
    return engine.page_count(engine.load(data))


def merge_pdfs(sources: list[bytes], *, engine: PdfDocumentEngine) -> bytes:
    merged = engine.create()
    for data in sources:
        src = engine.load(data)
        engine.copy_pages(merged, src, list(range(engine.page_count(src))))
    return engine.save(merged)


def split_pdf(data: bytes, *, engine: PdfDocumentEngine) -> list[bytes]:
    src = engine.load(data)
    parts: list[bytes] = []
    for i in range(engine.page_count(src)):
        single = engine.create()
        engine.copy_pages(single, src, [i])
        parts.append(engine.save(single))
    return parts


def _copy_subset(data: bytes, indices_for, *, engine: PdfDocumentEngine) -> bytes:
    src = engine.load(data)
    out = engine.create()
    engine.copy_pages(out, src, indices_for(engine.page_count(src)))
    return engine.save(out)


def extract_pages(data: bytes, page_numbers: list[int], *, engine: PdfDocumentEngine) -> bytes:
    return _copy_subset(data, lambda n: _valid_indices(page_numbers, n), engine=engine)


def reorder_pages(data: bytes, order: list[int], *, engine: PdfDocumentEngine) -> bytes:
    return _copy_subset(data, lambda n: _valid_indices(order, n), engine=engine)


def reverse_page_order(data: bytes, *, engine: PdfDocumentEngine) -> bytes:
    return _copy_subset(data, lambda n: list(reversed(range(n))), engine=engine)


def rotate_pdf(data: bytes, degrees: int, *, engine: PdfDocumentEngine) -> bytes:
    """Add `degrees` (a multiple of 90) to every page's current rotation."""

    doc = engine.load(data)
    for i in range(engine.page_count(doc)):
        engine.set_rotation(doc, i, (engine.get_rotation(doc, i) + degrees) % 360)
    return engine.save(doc)


def compress_pdf(data: bytes, *, engine: PdfDocumentEngine) -> bytes:
    doc = engine.load(data)
    engine.compress(doc)
    return engine.save(doc)


def delete_pages(data: bytes, page_numbers: list[int], *, engine: PdfDocumentEngine) -> bytes:
    doc = engine.load(data)
    # Highest index first so earlier removals do not shift later ones.
    for index in sorted(set(_valid_indices(page_numbers, engine.page_count(doc))), reverse=True):
        engine.remove_page(doc, index)
    return engine.save(doc)


def duplicate_pages(data: bytes, page_numbers: list[int], times: int, *, engine: PdfDocumentEngine) -> bytes:
    """Each selected page is followed by `times` copies of itself."""

    src = engine.load(data)
    n = engine.page_count(src)
    selected = set(_valid_indices(page_numbers, n))
    order: list[int] = []
    for i in range(n):
        order.append(i)
        if i in selected:
            order.extend([i] * times)

    out = engine.create()
    engine.copy_pages(out, src, order)
    return engine.save(out)


def remove_duplicate_pages(data: bytes, *, engine: PdfDocumentEngine) -> bytes:
    """
    Keep the first page of every distinct (width, height).

    Only page dimensions are compared, not content: two different pages of the
    same size count as duplicates.
    """

    def first_of_each_size(n: int) -> list[int]:
        seen: set[tuple[float, float]] = set()
        keep: list[int] = []
        for i in range(n):
            key = engine.page_size(src, i)
            if key not in seen:
                seen.add(key)
                keep.append(i)
        return keep

    src = engine.load(data)
    out = engine.create()
    engine.copy_pages(out, src, first_of_each_size(engine.page_count(src)))
    return engine.save(out)


def add_watermark(data: bytes, text: str, opacity: float, *, engine: PdfDocumentEngine) -> bytes:
    """`opacity` is a percentage (0..100)."""

    doc = engine.load(data)
    for i in range(engine.page_count(doc)):
        width, height = engine.page_size(doc, i)
        engine.draw_text(
            doc,
            i,
            TextStamp(
                text=text,
                x=_centered_x(width, text),
                y=height / 2,
                size=WATERMARK_FONT_SIZE,
                color=WATERMARK_COLOR,
                opacity=opacity / 100,
                rotation=WATERMARK_ROTATION,
            ),
        )
    return engine.save(doc)


def _page_number_xy(position: PageNumberPosition, width: float, height: float, label: str) -> tuple[float, float]:
    top = height - EDGE_OFFSET
    bottom = EDGE_OFFSET
    if position == PageNumberPosition.TOP_LEFT:
        return EDGE_OFFSET, top
    if position == PageNumberPosition.TOP_CENTER:
        return _centered_x(width, label), top
    if position == PageNumberPosition.TOP_RIGHT:
        return width - 50, top
    if position == PageNumberPosition.BOTTOM_LEFT:
        return EDGE_OFFSET, bottom
    if position == PageNumberPosition.BOTTOM_RIGHT:
        return width - 50, bottom
    return _centered_x(width, label), bottom


def add_page_numbers(
    data: bytes,
    position: PageNumberPosition,
    start_number: int = 1,
    *,
    engine: PdfDocumentEngine,
) -> bytes:
    doc = engine.load(data)
    for i in range(engine.page_count(doc)):
        width, height = engine.page_size(doc, i)
        label = str(start_number + i)
        x, y = _page_number_xy(position, width, height, label)
        engine.draw_text(
            doc, i, TextStamp(text=label, x=x, y=y, size=PAGE_NUMBER_FONT_SIZE, color=PAGE_NUMBER_COLOR)
        )
    return engine.save(doc)


def add_header_footer(
    data: bytes, header: str | None, footer: str | None, *, engine: PdfDocumentEngine
) -> bytes:
    if not header and not footer:
        raise ValueError("header or footer text is required")

    doc = engine.load(data)
    for i in range(engine.page_count(doc)):
        width, height = engine.page_size(doc, i)
        for text, y in ((header, height - EDGE_OFFSET), (footer, EDGE_OFFSET)):
            if text:
                engine.draw_text(
                    doc,
                    i,
                    TextStamp(
                        text=text,
                        x=_centered_x(width, text),
                        y=y,
                        size=HEADER_FOOTER_FONT_SIZE,
                        color=HEADER_FOOTER_COLOR,
                    ),
                )
    return engine.save(doc)


def insert_blank_pages(
    data: bytes,
    positions: list[int],
    size: tuple[float, float] | None = None,
    *,
    engine: PdfDocumentEngine,
) -> bytes:
    """
    Insert a blank page at each position (0 = before the first page), measured
    against the original page order. Defaults to the first page's size.
    """

    doc = engine.load(data)
    n = engine.page_count(doc)
    if size is None:
        if n == 0:
            raise ValueError("page size is required for a document without pages")
        size = engine.page_size(doc, 0)

    for position in sorted({p for p in positions if 0 <= p <= n}, reverse=True):
        engine.insert_blank_page(doc, position, size)
    return engine.save(doc)


def crop_pages(data: bytes, margin: float, *, engine: PdfDocumentEngine) -> bytes:
    """Remove `margin` points from every side of every page."""

    doc = engine.load(data)
    for i in range(engine.page_count(doc)):
        width, height = engine.page_size(doc, i)
        if 2 * margin >= min(width, height):
            raise ValueError(f"margin {margin} leaves nothing of page {i + 1} ({width}x{height})")
        engine.set_crop_box(doc, i, (margin, margin, width - margin, height - margin))
    return engine.save(doc)


def read_metadata(data: bytes, *, engine: PdfDocumentEngine) -> PdfMetadata:
    return engine.read_metadata(engine.load(data))


def edit_metadata(data: bytes, metadata: PdfMetadata, *, engine: PdfDocumentEngine) -> bytes:
    doc = engine.load(data)
    engine.set_metadata(doc, metadata)
    return engine.save(doc)


def convert_to_grayscale(
    data: bytes,
    *,
    engine: PdfDocumentEngine,
    renderer: Pypdfium2Renderer,
    dpi: int = 150,
) -> bytes:
    """
    Rasterize every page, drop color, and rebuild the document at the original
    page sizes. Text is no longer selectable in the result.
    """

    src = engine.load(data)
    sizes: list[tuple[float, float]] = []
    for i in range(engine.page_count(src)):
        width, height = engine.visible_size(src, i)
        # Rendering applies /Rotate, so the visible page is transposed.
        if engine.get_rotation(src, i) in (90, 270):
            width, height = height, width
        sizes.append((width, height))

    out = engine.create()
    for image, size in zip(renderer.render_pages(data=data, dpi=dpi), sizes):
        buf = BytesIO()
        image.convert("L").save(buf, format="JPEG", quality=GRAYSCALE_JPEG_QUALITY)
        engine.add_image_page(out, buf.getvalue(), size=size)
    return engine.save(out)
