from __future__ import annotations

import datetime as dt
import io
import unittest
from unittest.mock import patch

from pypdf import PdfReader

from pdf_tools import operations as ops
from pdf_tools.contracts import PageNumberPosition, PdfLibraryError, PdfMetadata, RectStamp
from pdf_tools.engines import PypdfEngine, Pypdfium2Renderer


def make_pdf(sizes: list[tuple[float, float]]) -> bytes:
    engine = PypdfEngine()
    doc = engine.create()
    for i, size in enumerate(sizes):
        engine.insert_blank_page(doc, i, size)
    return engine.save(doc)


def widths(data: bytes) -> list[float]:
    return [float(p.mediabox.width) for p in PdfReader(io.BytesIO(data)).pages]


def page_text(data: bytes, index: int) -> str:
    return PdfReader(io.BytesIO(data)).pages[index].extract_text()


class TestPageStructureTools(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = PypdfEngine()
        self.pdf = make_pdf([(100, 100), (200, 100), (300, 100)])

    def test_merge_keeps_argument_order(self) -> None:
        out = ops.merge_pdfs([self.pdf, make_pdf([(50, 50)])], engine=self.engine)
        self.assertEqual(widths(out), [100, 200, 300, 50])

    def test_split_gives_one_document_per_page(self) -> None:
        parts = ops.split_pdf(self.pdf, engine=self.engine)
        self.assertEqual([widths(p) for p in parts], [[100], [200], [300]])

    def test_extract_reorder_reverse(self) -> None:
        self.assertEqual(widths(ops.extract_pages(self.pdf, [1, 3], engine=self.engine)), [100, 300])
        self.assertEqual(widths(ops.reorder_pages(self.pdf, [3, 1, 2, 9], engine=self.engine)), [300, 100, 200])
        self.assertEqual(widths(ops.reverse_page_order(self.pdf, engine=self.engine)), [300, 200, 100])

    def test_input_bytes_are_not_modified(self) -> None:
        before = bytes(self.pdf)
        ops.delete_pages(self.pdf, [1], engine=self.engine)
        self.assertEqual(self.pdf, before)

    def test_delete_pages(self) -> None:
        out = ops.delete_pages(self.pdf, [3, 1, 1, 7], engine=self.engine)
        self.assertEqual(widths(out), [200])

    def test_duplicate_pages_follow_their_original(self) -> None:
        out = ops.duplicate_pages(self.pdf, [2], 2, engine=self.engine)
        self.assertEqual(widths(out), [100, 200, 200, 200, 300])

    def test_remove_duplicates_compares_page_size_only(self) -> None:
        pdf = make_pdf([(100, 100), (200, 100), (100, 100), (100, 200)])
        out = ops.remove_duplicate_pages(pdf, engine=self.engine)
        self.assertEqual(widths(out), [100, 200, 100])

    def test_rotate_adds_to_current_rotation(self) -> None:
        once = ops.rotate_pdf(self.pdf, 90, engine=self.engine)
        twice = ops.rotate_pdf(once, 180, engine=self.engine)
        self.assertEqual([p.rotation for p in PdfReader(io.BytesIO(twice)).pages], [270, 270, 270])

    def test_insert_blank_pages_against_original_positions(self) -> None:
        pdf = make_pdf([(100, 100), (200, 100)])
        self.assertEqual(widths(ops.insert_blank_pages(pdf, [0, 2], engine=self.engine)), [100, 100, 200, 100])
        self.assertEqual(
            widths(ops.insert_blank_pages(pdf, [1], (50, 60), engine=self.engine)),
            [100, 50, 200],
        )

    def test_crop_trims_every_side(self) -> None:
        out = ops.crop_pages(make_pdf([(100, 80)]), 10, engine=self.engine)
        box = PdfReader(io.BytesIO(out)).pages[0].cropbox
        self.assertEqual((float(box.width), float(box.height)), (80.0, 60.0))

        with self.assertRaises(ValueError):
            ops.crop_pages(make_pdf([(100, 80)]), 40, engine=self.engine)

    def test_compress_keeps_pages(self) -> None:
        self.assertEqual(widths(ops.compress_pdf(self.pdf, engine=self.engine)), [100, 200, 300])

    def test_garbage_input_is_a_library_error(self) -> None:
        with self.assertRaises(PdfLibraryError):
            ops.page_count(b"%PDF-1.4 not really", engine=self.engine)


class TestDrawingTools(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = PypdfEngine()
        self.pdf = make_pdf([(300, 400), (300, 400)])

    def test_page_numbers_start_at_given_number(self) -> None:
        out = ops.add_page_numbers(self.pdf, PageNumberPosition.TOP_RIGHT, 7, engine=self.engine)
        self.assertIn("7", page_text(out, 0))
        self.assertIn("8", page_text(out, 1))

    def test_header_and_footer(self) -> None:
        out = ops.add_header_footer(self.pdf, "Quarterly Report", "Page footer", engine=self.engine)
        text = page_text(out, 1)
        self.assertIn("Quarterly Report", text)
        self.assertIn("Page footer", text)

        with self.assertRaises(ValueError):
            ops.add_header_footer(self.pdf, "", None, engine=self.engine)

    def test_watermark_adds_a_font_to_every_page(self) -> None:
        out = ops.add_watermark(self.pdf, "CONFIDENTIAL", 30, engine=self.engine)
        for page in PdfReader(io.BytesIO(out)).pages:
            self.assertIn("/Font", page["/Resources"])
        self.assertEqual(widths(out), [300, 300])


class TestEngineDrawing(unittest.TestCase):
    def test_rectangle_overlay_keeps_page_geometry(self) -> None:
        engine = PypdfEngine()
        doc = engine.load(make_pdf([(200, 100)]))

        engine.draw_rectangle(
            doc, 0, RectStamp(x=10, y=10, width=50, height=20, fill_color=(1, 1, 1), border_color=(0, 0, 0), opacity=0.5)
        )
        out = engine.save(doc)

        page = PdfReader(io.BytesIO(out)).pages[0]
        self.assertEqual((float(page.mediabox.width), float(page.mediabox.height)), (200.0, 100.0))
        self.assertIn("/ExtGState", page["/Resources"])


class TestMetadata(unittest.TestCase):
    def test_edit_then_read_back(self) -> None:
        engine = PypdfEngine()
        when = dt.datetime(2024, 5, 6, 7, 8, 9)
        out = ops.edit_metadata(
            make_pdf([(100, 100)]),
            PdfMetadata(title="Scan", author="Desk 4", keywords=("invoice", "2024"), modification_date=when),
            engine=engine,
        )

        meta = ops.read_metadata(out, engine=engine)

        self.assertEqual(meta.title, "Scan")
        self.assertEqual(meta.author, "Desk 4")
        self.assertEqual(meta.keywords, ("invoice", "2024"))
        self.assertIsNone(meta.subject)
        self.assertEqual(meta.modification_date.replace(tzinfo=None), when)

    def test_to_dict_is_json_friendly(self) -> None:
        d = PdfMetadata(keywords=("a",), creation_date=dt.datetime(2020, 1, 2, 3, 4, 5)).to_dict()
        self.assertEqual(d["keywords"], ["a"])
        self.assertEqual(d["creation_date"], "2020-01-02T03:04:05")


class TestGrayscale(unittest.TestCase):
    def test_pages_are_rebuilt_at_original_size(self) -> None:
        engine = PypdfEngine()
        pdf = ops.rotate_pdf(make_pdf([(144, 72), (72, 72)]), 90, engine=engine)

        out = ops.convert_to_grayscale(pdf, engine=engine, renderer=Pypdfium2Renderer(), dpi=36)

        sizes = [(float(p.mediabox.width), float(p.mediabox.height)) for p in PdfReader(io.BytesIO(out)).pages]
        self.assertEqual(sizes, [(72.0, 144.0), (72.0, 72.0)])

    def test_cropped_pages_keep_their_visible_size(self) -> None:
        engine = PypdfEngine()
        pdf = ops.crop_pages(make_pdf([(200, 100)]), 25, engine=engine)

        out = ops.convert_to_grayscale(pdf, engine=engine, renderer=Pypdfium2Renderer(), dpi=36)

        page = PdfReader(io.BytesIO(out)).pages[0]
        self.assertEqual((float(page.mediabox.width), float(page.mediabox.height)), (150.0, 50.0))

    def test_render_failure_is_a_library_error(self) -> None:
        engine = PypdfEngine()
        with patch("pypdfium2.PdfPage.render", side_effect=RuntimeError("bitmap allocation failed")):
            with self.assertRaises(PdfLibraryError):
                ops.convert_to_grayscale(make_pdf([(72, 72)]), engine=engine, renderer=Pypdfium2Renderer(), dpi=36)


if __name__ == "__main__":
    unittest.main()
