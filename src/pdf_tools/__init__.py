"""
PDF page tools (merge, split, rotate, extract, watermark, ...).

Each tool is a thin transformation over a PDF document backend:
- `operations` works on bytes and raises on failure.
- `module.run_pdf_tool_relpaths` resolves inputs under an explicit data root,
  writes outputs under an explicit out root, and reports failures as coded
  errors instead of raising.
- The backend is behind `engines.PdfDocumentEngine`; no tool touches pypdf
  or reportlab directly.
"""

from .contracts import (
    BatchParams,
    BlankPagesParams,
    CropParams,
    DuplicateParams,
    GrayscaleParams,
    HeaderFooterParams,
    PageNumberParams,
    PageNumberPosition,
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
    RectStamp,
    ReorderParams,
    RotateParams,
    TextStamp,
    WatermarkParams,
)
from .module import run_pdf_batch, run_pdf_tool_relpaths
from .page_selection import parse_insert_positions, parse_page_selection

__all__ = [
    "BatchParams",
    "BlankPagesParams",
    "CropParams",
    "DuplicateParams",
    "GrayscaleParams",
    "HeaderFooterParams",
    "PageNumberParams",
    "PageNumberPosition",
    "PageSelectionError",
    "PageSelectionParams",
    "PdfEngineName",
    "PdfLibraryError",
    "PdfMetadata",
    "PdfToolError",
    "PdfToolName",
    "PdfToolOutput",
    "PdfToolResult",
    "PdfToolsConfig",
    "RectStamp",
    "ReorderParams",
    "RotateParams",
    "TextStamp",
    "WatermarkParams",
    "parse_insert_positions",
    "parse_page_selection",
    "run_pdf_batch",
    "run_pdf_tool_relpaths",
]
