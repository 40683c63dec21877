"""Unit tests for webreach.browser.capture."""

from __future__ import annotations

import base64
from io import BytesIO
from unittest.mock import MagicMock

import pytest
from PIL import Image
from playwright.sync_api import Error as PlaywrightError

from webreach.browser.capture import _resize_png, capture_base64, capture_png, capture_to_file
from webreach.exceptions import SessionNotReady


def _png(width: int, height: int) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def _size(png_bytes: bytes) -> tuple[int, int]:
    return Image.open(BytesIO(png_bytes)).size


@pytest.fixture()
def shot_page():
    page = MagicMock()
    page.is_closed.return_value = False
    page.screenshot.return_value = _png(2560, 1600)
    return page


class TestResizePng:
    def test_downscales_preserving_aspect(self) -> None:
        assert _size(_resize_png(_png(2560, 1600), 1280, 800)) == (1280, 800)
        assert _size(_resize_png(_png(2000, 500), 1280, 800)) == (1280, 320)

    def test_small_image_untouched(self) -> None:
        original = _png(640, 400)
        assert _resize_png(original, 1280, 800) is original


class TestCapture:
    def test_capture_png_viewport_only(self, shot_page) -> None:
        data = capture_png(shot_page, 640, 400)
        assert _size(data) == (640, 400)
        shot_page.screenshot.assert_called_once_with(type="png", full_page=False)

    def test_base64(self, shot_page) -> None:
        decoded = base64.b64decode(capture_base64(shot_page))
        assert decoded.startswith(b"\x89PNG")

    def test_to_file(self, shot_page, tmp_path) -> None:
        path = capture_to_file(shot_page, tmp_path / "shots" / "view.png", 320, 200)
        assert path.exists()
        assert _size(path.read_bytes()) == (320, 200)

    def test_closed_page(self, shot_page) -> None:
        shot_page.is_closed.return_value = True
        with pytest.raises(SessionNotReady):
            capture_png(shot_page)

    def test_detached_page(self, shot_page) -> None:
        shot_page.screenshot.side_effect = PlaywrightError("Target page, context or browser has been closed")
        with pytest.raises(SessionNotReady):
            capture_png(shot_page)
