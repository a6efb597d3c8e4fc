"""Image pipeline: base64 PNG payload → image ready for the ESC/POS raster commands.

``render_image`` is a pure function of its arguments and keeps no state, so it
is safe to call from any worker thread.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re

from PIL import Image, UnidentifiedImageError

from receipt import DitherMode

logger = logging.getLogger(__name__)

# "data:image/png;base64," as produced by canvas.toDataURL() and friends
_DATA_URI = re.compile(r"^data:[\w/+.-]*(;[\w=.-]+)*;base64,", re.IGNORECASE)


class ImageDecodeError(ValueError):
    """Raised when image data is not valid base64-encoded PNG."""


def decode_png(data: str) -> Image.Image:
    """Decode a base64 string (optionally a data URI) into a loaded PIL image."""

    payload = _DATA_URI.sub("", data.strip(), count=1)
    # MIME-style base64 wraps lines at 76 columns
    payload = "".join(payload.split())
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"invalid base64 image data: {e}") from e

    try:
        img = Image.open(io.BytesIO(raw), formats=["PNG"])
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
        raise ImageDecodeError(f"failed to decode PNG image: {e}") from e
    return img


def _fit_width(img: Image.Image, max_width: int | None) -> Image.Image:
    """Downscale to ``max_width`` dots keeping the aspect ratio; never upscale."""

    if not max_width or img.width <= max_width:
        return img
    ratio = max_width / img.width
    new_height = max(1, int(img.height * ratio))
    logger.debug("Resizing image %sx%s to %sx%s", img.width, img.height, max_width, new_height)
    return img.resize((max_width, new_height), Image.Resampling.LANCZOS)


def _flatten(img: Image.Image) -> Image.Image:
    """Composite transparent pixels onto white paper and return grayscale."""

    has_alpha = img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )
    if has_alpha:
        rgba = img.convert("RGBA")
        paper = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
        img = Image.alpha_composite(paper, rgba)
    return img.convert("L")


def floyd_steinberg(img: Image.Image) -> Image.Image:
    """Dither to a 1-bit black/white image with Floyd-Steinberg error diffusion.

    Error is propagated left to right, top to bottom, so the result is
    bit-identical for identical input pixels.
    """

    return _flatten(img).convert("1", dither=Image.Dither.FLOYDSTEINBERG)


def render_image(
    data: str,
    dither_mode: DitherMode,
    max_width: int | None = None,
) -> Image.Image:
    """Turn an image command payload into a printable image.

    With ``DitherMode.NONE`` the decoded image is returned as-is and the 1-bit
    reduction is left to python-escpos. With ``DitherMode.FLOYDSTEINBERG`` a
    mode ``"1"`` image is returned.
    """

    img = _fit_width(decode_png(data), max_width)
    if dither_mode is DitherMode.FLOYDSTEINBERG:
        return floyd_steinberg(img)
    if dither_mode is DitherMode.NONE:
        return img
    raise ValueError(f"Unknown dither mode: {dither_mode!r}")
