from __future__ import annotations

import numpy as np

from .contracts import RasterImage

SHARPEN_KERNEL = np.array(
    [
        [-1, -1, -1],
        [-1, 9, -1],
        [-1, -1, -1],
    ],
    dtype=np.int32,
)


def apply_sharpen(image: RasterImage) -> RasterImage:
    """
    3x3 sharpen on R, G, B; alpha is copied from the source pixel.

    Taps that fall outside the image are dropped from the sum rather than
    mirrored or clamped, so border pixels get a brighter response than the
    interior: on a flat field of value v a corner computes 6v and an edge 4v.
    Dropping a tap is the same as reading a zero, hence the zero padding.
    """

    out = image.pixels.copy()
    if out.size == 0:
        return RasterImage(width=image.width, height=image.height, pixels=out)

    h, w = image.height, image.width
    rgb = image.pixels[..., :3].astype(np.int32)
    padded = np.pad(rgb, ((1, 1), (1, 1), (0, 0)), mode="constant", constant_values=0)

    acc = np.zeros((h, w, 3), dtype=np.int32)
    for dy in range(3):
        for dx in range(3):
            acc += SHARPEN_KERNEL[dy, dx] * padded[dy : dy + h, dx : dx + w]

    np.clip(acc, 0, 255, out=acc)
    out[..., :3] = acc.astype(np.uint8)
    return RasterImage(width=image.width, height=image.height, pixels=out)
