from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class PdfLibraryError(Exception):
    """Opaque failure surfaced by the PDF backend (malformed input, failed save, ...)."""


class PageSelectionError(ValueError):
    pass


class PdfEngineName(str, Enum):
    """
    Document backend identifiers.
    """

    PYPDF = "pypdf"


class PdfToolName(str, Enum):
    MERGE = "merge"
    SPLIT = "split"
    ROTATE = "rotate"
    EXTRACT = "extract"
    REORDER = "reorder"
    COMPRESS = "compress"
    DELETE = "delete"
    DUPLICATE = "duplicate"
    WATERMARK = "watermark"
    REMOVE_DUPLICATES = "remove-duplicates"
    REVERSE = "reverse"
    PAGE_NUMBERS = "page-numbers"
    GRAYSCALE = "grayscale"
    METADATA = "metadata"
    BLANK_PAGES = "blank-pages"
    CROP = "crop"
    HEADER_FOOTER = "header-footer"


class PageNumberPosition(str, Enum):
    TOP_LEFT = "top-left"
    TOP_CENTER = "top-center"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_CENTER = "bottom-center"
    BOTTOM_RIGHT = "bottom-right"


@dataclass(frozen=True, slots=True)
class TextStamp:
    """
    Text drawn onto a page. Coordinates are PDF points from the bottom-left corner.

    `color` is an (r, g, b) triple in 0..1, `opacity` in 0..1, `rotation` in
    degrees counter-clockwise around (x, y).
    """

    text: str
    x: float
    y: float
    size: float = 12.0
    color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    opacity: float = 1.0
    rotation: float = 0.0
    font: str = "Helvetica"


@dataclass(frozen=True, slots=True)
class RectStamp:
    x: float
    y: float
    width: float
    height: float
    fill_color: tuple[float, float, float] | None = (1.0, 1.0, 1.0)
    border_color: tuple[float, float, float] | None = None
    border_width: float = 1.0
    opacity: float = 1.0


@dataclass(frozen=True, slots=True)
class PdfMetadata:
    """
    Document information record. Every field is optional: on write, `None`
    leaves the existing value untouched; on read, `None` means absent.
    """

    title: str | None = None
    author: str | None = None
    subject: str | None = None
    keywords: tuple[str, ...] | None = None
    creator: str | None = None
    producer: str | None = None
    creation_date: dt.datetime | None = None
    modification_date: dt.datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        for key in ("creation_date", "modification_date"):
            if d[key] is not None:
                d[key] = d[key].isoformat()
        if d["keywords"] is not None:
            d["keywords"] = list(d["keywords"])
        return d


# Per-tool parameter structs. These are the whole request surface of a tool;
# nothing is read from ambient state.


@dataclass(frozen=True, slots=True)
class RotateParams:
    degrees: int = 90

    def __post_init__(self) -> None:
        if self.degrees % 90 != 0:
            raise ValueError("degrees must be a multiple of 90")


@dataclass(frozen=True, slots=True)
class PageSelectionParams:
    selection: str  # e.g. "1,3-5"


@dataclass(frozen=True, slots=True)
class ReorderParams:
    order: tuple[int, ...]  # 1-indexed page numbers in the desired order


@dataclass(frozen=True, slots=True)
class DuplicateParams:
    selection: str
    times: int = 1

    def __post_init__(self) -> None:
        if self.times < 1:
            raise ValueError("times must be >= 1")


@dataclass(frozen=True, slots=True)
class WatermarkParams:
    text: str
    opacity: float = 30.0  # percent, 0..100

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("watermark text must not be empty")
        if not (0.0 <= self.opacity <= 100.0):
            raise ValueError("opacity must be within [0, 100]")


@dataclass(frozen=True, slots=True)
class PageNumberParams:
    position: PageNumberPosition = PageNumberPosition.BOTTOM_CENTER
    start_number: int = 1


@dataclass(frozen=True, slots=True)
class BlankPagesParams:
    positions: str  # e.g. "0,2"; 0 inserts before the first page
    width: float | None = None
    height: float | None = None

    def __post_init__(self) -> None:
        if (self.width is None) != (self.height is None):
            raise ValueError("width and height must be given together")
        if self.width is not None and (self.width <= 0 or self.height <= 0):  # type: ignore[operator]
            raise ValueError("page size must be positive")


@dataclass(frozen=True, slots=True)
class CropParams:
    margin: float = 20.0  # points removed from every side

    def __post_init__(self) -> None:
        if self.margin < 0:
            raise ValueError("margin must be >= 0")


@dataclass(frozen=True, slots=True)
class HeaderFooterParams:
    header: str | None = None
    footer: str | None = None


@dataclass(frozen=True, slots=True)
class GrayscaleParams:
    dpi: int = 150

    def __post_init__(self) -> None:
        if self.dpi <= 0:
            raise ValueError("dpi must be a positive integer")


@dataclass(frozen=True, slots=True)
class BatchParams:
    rotation: int = 0
    watermark: WatermarkParams | None = None

    def __post_init__(self) -> None:
        if self.rotation % 90 != 0:
            raise ValueError("rotation must be a multiple of 90")


@dataclass(frozen=True, slots=True)
class PdfToolError:
    code: str
    message: str
    detail: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class PdfToolOutput:
    filename: str
    out_relpath: str  # relative to config.out_root
    page_count: int
    size_bytes: int
    sha256: str


@dataclass(frozen=True, slots=True)
class PdfToolResult:
    tool: str
    ok: bool
    source_pdf_relpaths: list[str]
    outputs: list[PdfToolOutput]
    errors: list[PdfToolError]
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PdfToolsConfig:
    """
    Page tool configuration.

    `data_root` and `out_root` must be passed explicitly; inputs are resolved
    under `data_root`, outputs are written under `out_root`.
    """

    data_root: Path
    out_root: Path
    engine: PdfEngineName = PdfEngineName.PYPDF
    strict_page_selection: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.data_root, Path) or not isinstance(self.out_root, Path):
            raise TypeError("data_root and out_root must be pathlib.Path")
