from __future__ import annotations

import hashlib
import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np
from PIL import Image

from scan_enhance.codec import decode_image, fit_to_width, make_thumbnail
from scan_enhance.contracts import (
    DecodeError,
    EnhancementSettings,
    ImageFormat,
    RasterImage,
    ScanConfig,
)
from scan_enhance.module import enhance_raster, process_image_bytes, run_scan_batch
from scan_enhance.sharpen import apply_sharpen
from scan_enhance.tone import apply_tone_remap


def _png_bytes(width: int, height: int, seed: int = 0) -> bytes:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()


def _decode_rgba(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as im:
        return np.array(im.convert("RGBA"), dtype=np.uint8)


class TestEnhanceRaster(unittest.TestCase):
    def setUp(self) -> None:
        rng = np.random.default_rng(7)
        self.img = RasterImage(width=6, height=5, pixels=rng.integers(0, 256, size=(5, 6, 4), dtype=np.uint8))

    def test_without_sharpen_equals_tone_remap(self) -> None:
        settings = EnhancementSettings(brightness=-12, contrast=1.7, sharpen=False)
        out = enhance_raster(self.img, settings)
        expected = apply_tone_remap(self.img, brightness=-12, contrast=1.7)
        np.testing.assert_array_equal(out.pixels, expected.pixels)

    def test_tone_remap_runs_before_sharpen(self) -> None:
        settings = EnhancementSettings(brightness=10, contrast=1.3, sharpen=True)
        out = enhance_raster(self.img, settings)
        expected = apply_sharpen(apply_tone_remap(self.img, brightness=10, contrast=1.3))
        np.testing.assert_array_equal(out.pixels, expected.pixels)

    def test_disabled_returns_unchanged_copy(self) -> None:
        out = enhance_raster(self.img, None)
        self.assertIsNot(out.pixels, self.img.pixels)
        np.testing.assert_array_equal(out.pixels, self.img.pixels)


class TestProcessImageBytes(unittest.TestCase):
    def _config(self, **kwargs) -> ScanConfig:
        return ScanConfig(data_root=Path("."), out_root=Path("."), image_format=ImageFormat.PNG, **kwargs)

    def test_png_output_matches_enhanced_source(self) -> None:
        data = _png_bytes(12, 9, seed=3)
        config = self._config()

        page = process_image_bytes(data, config=config, source_name="a.png")

        source = RasterImage.from_pil(decode_image(data))
        expected = enhance_raster(source, config.settings)
        np.testing.assert_array_equal(_decode_rgba(page.image_bytes), expected.pixels)
        self.assertEqual((page.width, page.height), (12, 9))
        self.assertEqual(page.source_name, "a.png")
        self.assertEqual(page.image_format, ImageFormat.PNG)

    def test_thumbnail_is_made_from_the_unenhanced_source(self) -> None:
        data = _png_bytes(300, 100, seed=4)
        config = self._config(thumbnail_width=150)

        page = process_image_bytes(data, config=config, source_name="wide.png")

        expected = decode_image(data).resize((150, 50), Image.Resampling.LANCZOS)
        np.testing.assert_array_equal(_decode_rgba(page.thumbnail_bytes), np.array(expected.convert("RGBA")))
        self.assertEqual((page.thumbnail_width, page.thumbnail_height), (150, 50))

    def test_disabled_enhancement_keeps_downscaled_dimensions(self) -> None:
        data = _png_bytes(300, 100, seed=5)
        config = self._config(auto_enhance=False, max_width=150)

        page = process_image_bytes(data, config=config, source_name="wide.png")

        self.assertEqual((page.width, page.height), (150, 50))
        with Image.open(io.BytesIO(page.image_bytes)) as im:
            self.assertEqual(im.size, (150, 50))

    def test_max_width_none_keeps_source_size(self) -> None:
        page = process_image_bytes(_png_bytes(40, 20), config=self._config(max_width=None), source_name="x.png")
        self.assertEqual((page.width, page.height), (40, 20))

    def test_fractional_scaled_heights_are_truncated(self) -> None:
        image = decode_image(_png_bytes(300, 103))
        # 103 * 150 / 300 = 51.5
        self.assertEqual(fit_to_width(image, 150).size, (150, 51))
        self.assertEqual(make_thumbnail(image, width=150).size, (150, 51))

        page = process_image_bytes(
            _png_bytes(300, 103), config=self._config(max_width=150, thumbnail_width=150), source_name="odd.png"
        )
        self.assertEqual((page.width, page.height), (150, 51))
        self.assertEqual((page.thumbnail_width, page.thumbnail_height), (150, 51))

    def test_page_ids_are_unique(self) -> None:
        data = _png_bytes(4, 4)
        a = process_image_bytes(data, config=self._config(), source_name="x.png")
        b = process_image_bytes(data, config=self._config(), source_name="x.png")
        self.assertNotEqual(a.page_id, b.page_id)

    def test_jpeg_output_is_rgb(self) -> None:
        config = ScanConfig(data_root=Path("."), out_root=Path("."))
        page = process_image_bytes(_png_bytes(16, 16), config=config, source_name="x.png")
        with Image.open(io.BytesIO(page.image_bytes)) as im:
            self.assertEqual(im.format, "JPEG")
            self.assertEqual(im.mode, "RGB")

    def test_undecodable_bytes_raise_decode_error(self) -> None:
        with self.assertRaises(DecodeError):
            process_image_bytes(b"not an image", config=self._config(), source_name="bad.png")
        with self.assertRaises(DecodeError):
            process_image_bytes(b"", config=self._config(), source_name="empty.png")


class TestRunScanBatch(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.data_root = self.root / "in"
        self.data_root.mkdir()
        (self.data_root / "a.png").write_bytes(_png_bytes(10, 8, seed=1))
        (self.data_root / "bad.png").write_bytes(b"\x89PNG truncated")
        (self.data_root / "c.png").write_bytes(_png_bytes(6, 12, seed=2))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _config(self, **kwargs) -> ScanConfig:
        return ScanConfig(data_root=self.data_root, out_root=self.root / "out", **kwargs)

    def test_one_bad_file_does_not_affect_the_others(self) -> None:
        result = run_scan_batch(config=self._config(), image_relpaths=["a.png", "bad.png", "c.png"])

        self.assertFalse(result.ok)
        self.assertEqual([r.ok for r in result.pages], [True, False, True])
        self.assertEqual([r.index for r in result.pages], [0, 1, 2])
        self.assertEqual(result.pages[1].errors[0].code, "SCAN_DECODE_FAILED")
        self.assertEqual([p.source_name for p in result.scanned_pages], ["a.png", "c.png"])
        self.assertEqual([(p.width, p.height) for p in result.scanned_pages], [(10, 8), (6, 12)])

    def test_oversized_image_is_a_decode_failure(self) -> None:
        (self.data_root / "huge.png").write_bytes(_png_bytes(30, 20, seed=3))

        # 600 pixels is more than twice the limit, so Pillow refuses to open it
        with mock.patch.object(Image, "MAX_IMAGE_PIXELS", 100):
            result = run_scan_batch(config=self._config(), image_relpaths=["a.png", "huge.png"])

        self.assertFalse(result.ok)
        self.assertEqual([r.ok for r in result.pages], [True, False])
        self.assertEqual(result.pages[1].errors[0].code, "SCAN_DECODE_FAILED")

    def test_parallel_run_keeps_input_order(self) -> None:
        relpaths = ["c.png", "a.png", "bad.png", "a.png"]
        result = run_scan_batch(config=self._config(max_workers=3), image_relpaths=relpaths)

        self.assertEqual([r.source_image_relpath for r in result.pages], relpaths)
        self.assertEqual([r.ok for r in result.pages], [True, True, False, True])

    def test_missing_and_escaping_paths_are_coded(self) -> None:
        result = run_scan_batch(config=self._config(), image_relpaths=["nope.png", "../outside.png", "/etc/passwd"])

        codes = [r.errors[0].code for r in result.pages]
        self.assertEqual(codes, ["SCAN_INPUT_NOT_FOUND", "SCAN_DATA_ACCESS_ERROR", "SCAN_DATA_ACCESS_ERROR"])

    def test_all_good_batch_is_ok(self) -> None:
        result = run_scan_batch(
            config=self._config(compute_source_sha256=True), image_relpaths=["a.png", "c.png"]
        )
        self.assertTrue(result.ok)
        self.assertEqual(len(result.meta["source_sha256"]), 2)

    def test_source_hashes_keep_one_entry_per_submitted_image(self) -> None:
        a_digest = hashlib.sha256((self.data_root / "a.png").read_bytes()).hexdigest()

        result = run_scan_batch(
            config=self._config(compute_source_sha256=True), image_relpaths=["a.png", "bad.png", "a.png"]
        )

        self.assertEqual(result.meta["source_sha256"], [a_digest, None, a_digest])

    def test_batch_id_is_deterministic(self) -> None:
        a = run_scan_batch(config=self._config(), image_relpaths=["a.png", "c.png"])
        b = run_scan_batch(config=self._config(), image_relpaths=["a.png", "c.png"])
        c = run_scan_batch(
            config=self._config(settings=EnhancementSettings(brightness=0)), image_relpaths=["a.png", "c.png"]
        )

        self.assertEqual(a.batch_id, b.batch_id)
        self.assertNotEqual(a.batch_id, c.batch_id)
        self.assertTrue(a.batch_id.startswith("a_"))


if __name__ == "__main__":
    unittest.main()
