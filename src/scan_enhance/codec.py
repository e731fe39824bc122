from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

from .contracts import DecodeError, EncodeError, ImageFormat, RasterImage


def decode_image(data: bytes) -> Image.Image:
    """
    Decode an encoded capture (JPEG, PNG, ...) to RGBA with EXIF orientation
    applied.

    Raises DecodeError for anything Pillow cannot read.
    """

    if not data:
        raise DecodeError("empty input")
    try:
        with Image.open(io.BytesIO(data)) as im:
            im.load()
            return ImageOps.exif_transpose(im).convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"{type(e).__name__}: {e}") from e


def fit_to_width(image: Image.Image, max_width: int | None) -> Image.Image:
    if max_width is None or image.width <= max_width:
        return image
    # fractional heights are truncated
    height = max(1, int(image.height * max_width / image.width))
    return image.resize((max_width, height), Image.Resampling.LANCZOS)


def encode_image(image: Image.Image, *, image_format: ImageFormat, quality: int) -> bytes:
    """
    Encode a PIL image. JPEG has no alpha channel, so RGBA input is flattened
    to RGB first.
    """

    buf = io.BytesIO()
    try:
        if image_format == ImageFormat.JPEG:
            rgb = image if image.mode in ("RGB", "L") else image.convert("RGB")
            rgb.save(buf, format="JPEG", quality=quality)
        else:
            image.save(buf, format="PNG", optimize=True)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"{type(e).__name__}: {e}") from e
    return buf.getvalue()


def encode_raster(raster: RasterImage, *, image_format: ImageFormat, quality: int) -> bytes:
    if raster.width == 0 or raster.height == 0:
        raise EncodeError("cannot encode a zero-sized image")
    return encode_image(raster.to_pil(), image_format=image_format, quality=quality)


def make_thumbnail(image: Image.Image, *, width: int) -> Image.Image:
    """Proportional resize to `width`; the source image is left untouched."""

    height = max(1, int(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)
