from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
from PIL import Image


class DecodeError(Exception):
    """Input bytes are not a decodable image."""


class EncodeError(Exception):
    """The raster backend failed to encode an image."""


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"

    @property
    def extension(self) -> str:
        return "jpg" if self == ImageFormat.JPEG else "png"


@dataclass(slots=True)
class RasterImage:
    """
    Owned, mutable RGBA buffer: `pixels` has shape (height, width, 4), dtype
    uint8, row-major with the origin at the top-left.

    Zero-sized images are valid.
    """

    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError("width and height must be >= 0")
        if not isinstance(self.pixels, np.ndarray) or self.pixels.dtype != np.uint8:
            raise TypeError("pixels must be a uint8 numpy array")
        if self.pixels.shape != (self.height, self.width, 4):
            raise ValueError(
                f"pixels shape {self.pixels.shape} does not match "
                f"{self.height}x{self.width}x4"
            )

    @classmethod
    def blank(cls, width: int, height: int, rgba: tuple[int, int, int, int] = (0, 0, 0, 255)) -> "RasterImage":
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[...] = rgba
        return cls(width=width, height=height, pixels=pixels)

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        pixels = np.array(rgba, dtype=np.uint8).reshape(rgba.height, rgba.width, 4)
        return cls(width=rgba.width, height=rgba.height, pixels=pixels)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def copy(self) -> "RasterImage":
        return RasterImage(width=self.width, height=self.height, pixels=self.pixels.copy())

    @property
    def buffer_length(self) -> int:
        return int(self.pixels.size)


@dataclass(frozen=True, slots=True)
class EnhancementSettings:
    """
    Tone remap + sharpen parameters, fixed for a whole batch.

    brightness: offset added after scaling, typically -50..50
    contrast: positive multiplier, typically 0.5..2.5
    """

    brightness: float = 10.0
    contrast: float = 1.3
    sharpen: bool = True

    def __post_init__(self) -> None:
        if not (math.isfinite(self.brightness) and math.isfinite(self.contrast)):
            raise ValueError("brightness and contrast must be finite numbers")
        if not self.contrast > 0:
            raise ValueError("contrast must be a positive number")


@dataclass(frozen=True, slots=True)
class ScannedPage:
    """
    One processed capture, destined for one output PDF page.

    `image_bytes` is the enhanced full image; `thumbnail_bytes` is a small
    preview of the un-enhanced source.
    """

    page_id: str
    source_name: str
    image_format: ImageFormat
    image_bytes: bytes
    width: int
    height: int
    thumbnail_bytes: bytes
    thumbnail_width: int
    thumbnail_height: int


@dataclass(frozen=True, slots=True)
class ScanError:
    code: str
    message: str
    detail: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class ScanPageResult:
    index: int  # position in the submitted batch, 0-based
    source_image_relpath: str
    ok: bool
    page: ScannedPage | None
    errors: list[ScanError]

    def to_dict(self) -> dict[str, Any]:
        page = None
        if self.page is not None:
            page = {
                "page_id": self.page.page_id,
                "source_name": self.page.source_name,
                "image_format": self.page.image_format.value,
                "width": self.page.width,
                "height": self.page.height,
                "image_size_bytes": len(self.page.image_bytes),
                "thumbnail_width": self.page.thumbnail_width,
                "thumbnail_height": self.page.thumbnail_height,
                "thumbnail_size_bytes": len(self.page.thumbnail_bytes),
            }
        return {
            "index": self.index,
            "source_image_relpath": self.source_image_relpath,
            "ok": self.ok,
            "page": page,
            "errors": [asdict(e) for e in self.errors],
        }


@dataclass(frozen=True, slots=True)
class ScanBatchResult:
    """
    Per-batch result. `pages` keeps the submitted order, failed entries included.

    `ok` is True iff every page succeeded and there are no batch-level errors.
    """

    batch_id: str
    ok: bool
    pages: list[ScanPageResult]
    errors: list[ScanError]
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def scanned_pages(self) -> list[ScannedPage]:
        return [r.page for r in self.pages if r.page is not None]

    def to_dict(self) -> dict[str, Any]:
        # Image payloads stay out of the manifest; only their shape is recorded.
        return {
            "batch_id": self.batch_id,
            "ok": self.ok,
            "pages": [p.to_dict() for p in self.pages],
            "errors": [asdict(e) for e in self.errors],
            "meta": self.meta,
        }


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """
    Scanner configuration.

    `data_root` and `out_root` must be passed explicitly. `settings` applies
    only when `auto_enhance` is on; otherwise images pass through unchanged
    (apart from the `max_width` downscale).
    """

    data_root: Path
    out_root: Path
    auto_enhance: bool = True
    settings: EnhancementSettings = EnhancementSettings()
    max_width: int | None = 2400
    thumbnail_width: int = 150
    image_format: ImageFormat = ImageFormat.JPEG
    image_quality: int = 95
    thumbnail_quality: int = 70
    max_workers: int = 1
    write_page_images: bool = False
    compute_source_sha256: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.data_root, Path) or not isinstance(self.out_root, Path):
            raise TypeError("data_root and out_root must be pathlib.Path")
        if self.max_width is not None and self.max_width <= 0:
            raise ValueError("max_width must be a positive integer or None")
        if self.thumbnail_width <= 0:
            raise ValueError("thumbnail_width must be a positive integer")
        for name in ("image_quality", "thumbnail_quality"):
            if not (1 <= getattr(self, name) <= 100):
                raise ValueError(f"{name} must be within [1, 100]")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @property
    def effective_settings(self) -> EnhancementSettings | None:
        return self.settings if self.auto_enhance else None
