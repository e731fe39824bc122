"""
Scanned page enhancement.

Pipeline per image: decode (EXIF-oriented) -> fit to max width -> tone remap
-> sharpen -> encode, plus a thumbnail of the un-enhanced source. Batches keep
input order and report per-image failures as coded errors. Processed pages are
collected in a `ScanSession` and assembled into a PDF through
`pdf_tools.engines`.
"""

from .contracts import (
    DecodeError,
    EncodeError,
    EnhancementSettings,
    ImageFormat,
    RasterImage,
    ScanBatchResult,
    ScanConfig,
    ScanError,
    ScannedPage,
    ScanPageResult,
)
from .module import assemble_pdf, enhance_raster, process_image_bytes, run_scan_batch, run_scan_to_pdf
from .session import ScanSession
from .sharpen import SHARPEN_KERNEL, apply_sharpen
from .tone import apply_tone_remap

__all__ = [
    "DecodeError",
    "EncodeError",
    "EnhancementSettings",
    "ImageFormat",
    "RasterImage",
    "SHARPEN_KERNEL",
    "ScanBatchResult",
    "ScanConfig",
    "ScanError",
    "ScanPageResult",
    "ScanSession",
    "ScannedPage",
    "apply_sharpen",
    "apply_tone_remap",
    "assemble_pdf",
    "enhance_raster",
    "process_image_bytes",
    "run_scan_batch",
    "run_scan_to_pdf",
]
