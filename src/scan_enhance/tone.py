from __future__ import annotations

import math

import numpy as np

from .contracts import RasterImage


def apply_tone_remap(image: RasterImage, *, brightness: float, contrast: float) -> RasterImage:
    """
    Affine brightness/contrast on R, G, B: `v * contrast + brightness`,
    rounded half-up, then clamped to 0..255. Alpha is copied unchanged.

    Returns a new image; `image` is not modified.
    """

    if not (math.isfinite(brightness) and math.isfinite(contrast)):
        raise ValueError("brightness and contrast must be finite numbers")
    if not contrast > 0:
        raise ValueError("contrast must be a positive number")

    out = image.pixels.copy()
    if out.size == 0:
        return RasterImage(width=image.width, height=image.height, pixels=out)

    rgb = out[..., :3].astype(np.float64)
    rgb *= contrast
    rgb += brightness
    # round-half-up before clamping
    np.floor(rgb + 0.5, out=rgb)
    np.clip(rgb, 0, 255, out=rgb)
    out[..., :3] = rgb.astype(np.uint8)
    return RasterImage(width=image.width, height=image.height, pixels=out)
