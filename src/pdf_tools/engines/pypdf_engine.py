from __future__ import annotations

from contextlib import contextmanager
from io import BytesIO
from typing import Callable, Iterator

import pypdf
from pypdf import PageObject, PdfReader, PdfWriter
from pypdf.generic import RectangleObject
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..contracts import PdfLibraryError, PdfMetadata, RectStamp, TextStamp
from .base import PdfDocumentEngine


class PypdfDocument:
    """Engine-owned handle around a pypdf writer."""

    __slots__ = ("writer",)

    def __init__(self, writer: PdfWriter) -> None:
        self.writer = writer


@contextmanager
def _backend_call(action: str) -> Iterator[None]:
    try:
        yield
    except PdfLibraryError:
        raise
    except Exception as e:
        raise PdfLibraryError(f"{action} failed: {e!r}") from e


def _pdf_date(value) -> str:
    return value.strftime("D:%Y%m%d%H%M%S")


def _overlay_page(
    *, width: float, height: float, origin: tuple[float, float], paint: Callable[[canvas.Canvas], None]
) -> PageObject:
    """
    Render a single-page reportlab overlay in the target page's user space.
    """

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.translate(*origin)
    paint(c)
    c.showPage()
    c.save()
    buf.seek(0)
    return PdfReader(buf).pages[0]


class PypdfEngine(PdfDocumentEngine):
    """
    pypdf for document structure, reportlab for anything drawn onto a page.
    """

    def backend_id(self) -> str:
        return "pypdf"

    def backend_version(self) -> str | None:
        return getattr(pypdf, "__version__", None)

    def create(self) -> PypdfDocument:
        return PypdfDocument(PdfWriter())

    def load(self, data: bytes) -> PypdfDocument:
        with _backend_call("load"):
            reader = PdfReader(BytesIO(data))
            if reader.is_encrypted:
                raise PdfLibraryError("encrypted PDFs are not supported")
            # Force page tree parsing so malformed input fails here, not mid-tool.
            len(reader.pages)
            return PypdfDocument(PdfWriter(clone_from=reader))

    def save(self, doc: PypdfDocument) -> bytes:
        with _backend_call("save"):
            buf = BytesIO()
            doc.writer.write(buf)
            return buf.getvalue()

    def page_count(self, doc: PypdfDocument) -> int:
        return len(doc.writer.pages)

    def page_size(self, doc: PypdfDocument, index: int) -> tuple[float, float]:
        mb = doc.writer.pages[index].mediabox
        return float(mb.width), float(mb.height)

    def visible_size(self, doc: PypdfDocument, index: int) -> tuple[float, float]:
        cb = doc.writer.pages[index].cropbox
        return float(cb.width), float(cb.height)

    def copy_pages(self, dst: PypdfDocument, src: PypdfDocument, indices: list[int]) -> None:
        if not indices:
            return
        snapshot = self.save(src)
        with _backend_call("copy_pages"):
            # pypdf clones a source page only once per reader, so the n-th
            # occurrence of an index is taken from the n-th reader.
            readers: list[PdfReader] = []
            seen: dict[int, int] = {}
            for idx in indices:
                n = seen.get(idx, 0)
                seen[idx] = n + 1
                while len(readers) <= n:
                    readers.append(PdfReader(BytesIO(snapshot)))
                dst.writer.add_page(readers[n].pages[idx])

    def insert_blank_page(self, doc: PypdfDocument, index: int, size: tuple[float, float]) -> None:
        width, height = size
        with _backend_call("insert_blank_page"):
            doc.writer.insert_blank_page(width=width, height=height, index=index)

    def remove_page(self, doc: PypdfDocument, index: int) -> None:
        with _backend_call("remove_page"):
            del doc.writer.pages[index]

    def get_rotation(self, doc: PypdfDocument, index: int) -> int:
        return int(doc.writer.pages[index].rotation) % 360

    def set_rotation(self, doc: PypdfDocument, index: int, degrees: int) -> None:
        if degrees % 90 != 0:
            raise ValueError("rotation must be a multiple of 90")
        with _backend_call("set_rotation"):
            doc.writer.pages[index].rotation = degrees % 360

    def _merge_overlay(self, doc: PypdfDocument, index: int, paint: Callable[[canvas.Canvas], None]) -> None:
        page = doc.writer.pages[index]
        mb = page.mediabox
        overlay = _overlay_page(
            width=float(mb.width),
            height=float(mb.height),
            origin=(float(mb.left), float(mb.bottom)),
            paint=paint,
        )
        page.merge_page(overlay)

    def draw_text(self, doc: PypdfDocument, index: int, stamp: TextStamp) -> None:
        def paint(c: canvas.Canvas) -> None:
            c.saveState()
            c.setFillColorRGB(*stamp.color)
            c.setFillAlpha(stamp.opacity)
            c.setFont(stamp.font, stamp.size)
            c.translate(stamp.x, stamp.y)
            c.rotate(stamp.rotation)
            c.drawString(0, 0, stamp.text)
            c.restoreState()

        with _backend_call("draw_text"):
            self._merge_overlay(doc, index, paint)

    def draw_rectangle(self, doc: PypdfDocument, index: int, stamp: RectStamp) -> None:
        def paint(c: canvas.Canvas) -> None:
            c.saveState()
            if stamp.fill_color is not None:
                c.setFillColorRGB(*stamp.fill_color)
                c.setFillAlpha(stamp.opacity)
            if stamp.border_color is not None:
                c.setStrokeColorRGB(*stamp.border_color)
                c.setStrokeAlpha(stamp.opacity)
                c.setLineWidth(stamp.border_width)
            c.rect(
                stamp.x,
                stamp.y,
                stamp.width,
                stamp.height,
                stroke=int(stamp.border_color is not None),
                fill=int(stamp.fill_color is not None),
            )
            c.restoreState()

        with _backend_call("draw_rectangle"):
            self._merge_overlay(doc, index, paint)

    def set_crop_box(self, doc: PypdfDocument, index: int, box: tuple[float, float, float, float]) -> None:
        left, bottom, right, top = box
        if right <= left or top <= bottom:
            raise ValueError(f"empty crop box: {box!r}")
        with _backend_call("set_crop_box"):
            page = doc.writer.pages[index]
            page.mediabox = RectangleObject((left, bottom, right, top))
            page.cropbox = RectangleObject((left, bottom, right, top))

    def compress(self, doc: PypdfDocument) -> None:
        with _backend_call("compress"):
            for page in doc.writer.pages:
                page.compress_content_streams()

    def set_metadata(self, doc: PypdfDocument, metadata: PdfMetadata) -> None:
        info: dict[str, str] = {}
        for key, value in (
            ("/Title", metadata.title),
            ("/Author", metadata.author),
            ("/Subject", metadata.subject),
            ("/Creator", metadata.creator),
            ("/Producer", metadata.producer),
        ):
            if value is not None:
                info[key] = value
        if metadata.keywords is not None:
            info["/Keywords"] = ", ".join(metadata.keywords)
        if metadata.creation_date is not None:
            info["/CreationDate"] = _pdf_date(metadata.creation_date)
        if metadata.modification_date is not None:
            info["/ModDate"] = _pdf_date(metadata.modification_date)

        with _backend_call("set_metadata"):
            doc.writer.add_metadata(info)

    def read_metadata(self, doc: PypdfDocument) -> PdfMetadata:
        snapshot = self.save(doc)
        with _backend_call("read_metadata"):
            info = PdfReader(BytesIO(snapshot)).metadata
            if info is None:
                return PdfMetadata()

            raw_keywords = info.get("/Keywords")
            keywords = None
            if raw_keywords is not None:
                keywords = tuple(k.strip() for k in str(raw_keywords).split(",") if k.strip())

            def text(value) -> str | None:
                return None if value is None else str(value)

            return PdfMetadata(
                title=text(info.title),
                author=text(info.author),
                subject=text(info.subject),
                keywords=keywords,
                creator=text(info.creator),
                producer=text(info.producer),
                creation_date=info.creation_date,
                modification_date=info.modification_date,
            )

    def add_image_page(
        self, doc: PypdfDocument, image_bytes: bytes, size: tuple[float, float] | None = None
    ) -> None:
        with _backend_call("add_image_page"):
            image = ImageReader(BytesIO(image_bytes))
            if size is None:
                px_w, px_h = image.getSize()
                size = (float(px_w), float(px_h))
            width, height = size

            def paint(c: canvas.Canvas) -> None:
                c.drawImage(image, 0, 0, width=width, height=height)

            page = _overlay_page(width=width, height=height, origin=(0.0, 0.0), paint=paint)
            doc.writer.add_page(page)
