"""Locate and rasterize the CAPTCHA challenge element."""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

from PIL import Image
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from regsearch.exceptions import ElementNotFound
from regsearch.models.search import CaptchaChallenge

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)


def capture_challenge(page: Page, selector: str, *, timeout_ms: int = 15_000) -> CaptchaChallenge:
    """Wait for the CAPTCHA element and screenshot exactly its bounding box.

    Clipping to the element keeps surrounding modal chrome out of the OCR
    input.

    Args:
        page: Playwright ``Page`` showing the CAPTCHA modal.
        selector: Canvas/image selector inside the modal.
        timeout_ms: Visibility wait bound.

    Returns:
        A new ``CaptchaChallenge`` holding the RGBA bitmap.

    Raises:
        ElementNotFound: If the element never becomes visible or has no box.
    """
    try:
        page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
    except PlaywrightTimeout as exc:
        raise ElementNotFound(selector, timeout_ms) from exc

    box = page.locator(selector).first.bounding_box()
    if not box or box["width"] <= 0 or box["height"] <= 0:
        raise ElementNotFound(selector, timeout_ms)

    clip = {"x": box["x"], "y": box["y"], "width": box["width"], "height": box["height"]}
    png = page.screenshot(clip=clip)
    image = Image.open(io.BytesIO(png)).convert("RGBA")
    logger.debug("CAPTCHA captured: %dx%d at (%.0f, %.0f)", image.width, image.height, box["x"], box["y"])
    return CaptchaChallenge(raw_image=image)
