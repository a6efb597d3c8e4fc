"""Shared fixtures: in-memory PNG payloads."""

import base64
import io

import pytest
from PIL import Image


def png_base64(img: Image.Image) -> str:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def gradient(width: int = 64, height: int = 16) -> Image.Image:
    """Horizontal black-to-white gradient."""
    img = Image.new("L", (width, height))
    img.putdata([int(255 * x / (width - 1)) for _ in range(height) for x in range(width)])
    return img


@pytest.fixture
def gradient_png() -> str:
    return png_base64(gradient())
