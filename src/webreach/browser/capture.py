"""Pixel capture of the current viewport, downscaled for model consumption."""

from __future__ import annotations

import base64
import logging
from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image
from playwright.sync_api import Error as PlaywrightError

from webreach.browser.runtime import is_detached_error
from webreach.exceptions import SessionNotReady

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)


def _resize_png(png_bytes: bytes, width: int, height: int) -> bytes:
    """Downscale PNG bytes to fit within target resolution, preserving aspect ratio.

    Uses thumbnail() which never upscales and always preserves aspect ratio.
    If the image is already at or below the target, returns original bytes unchanged.
    """
    img = Image.open(BytesIO(png_bytes))
    if img.width <= width and img.height <= height:
        return png_bytes
    img.thumbnail((width, height), Image.LANCZOS)
    buf = BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def capture_png(page: Page, max_width: int = 1280, max_height: int = 800) -> bytes:
    """Capture the visible viewport as PNG bytes no larger than the given box."""
    if page.is_closed():
        raise SessionNotReady("Page has been closed")
    try:
        png_bytes = page.screenshot(type="png", full_page=False)
    except PlaywrightError as exc:
        if is_detached_error(exc):
            raise SessionNotReady(f"Page went away during screenshot: {exc}") from exc
        logger.error("Screenshot failed: %s", exc)
        raise
    return _resize_png(png_bytes, max_width, max_height)


def capture_base64(page: Page, max_width: int = 1280, max_height: int = 800) -> str:
    """Capture the viewport and return it base64-encoded."""
    return base64.b64encode(capture_png(page, max_width, max_height)).decode("utf-8")


def capture_to_file(page: Page, path: Path, max_width: int = 1280, max_height: int = 800) -> Path:
    """Capture the viewport to *path*, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(capture_png(page, max_width, max_height))
    logger.debug("Screenshot saved to %s", path)
    return path
