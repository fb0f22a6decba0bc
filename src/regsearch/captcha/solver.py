"""Arithmetic CAPTCHA solver.

The challenge is a single line ``A + B`` drawn on a noisy canvas.  Solving
is a strict pipeline:

1. **Binarize**: threshold the per-pixel channel mean to pure black/white,
   which strips the anti-OCR gradients while keeping glyph shape.
2. **Recognize**: OCR restricted to digits, ``+`` and space, single line.
3. **Clean**: drop whitespace and trailing ``=``/``?`` prompt glyphs.
4. **Parse**: exactly two all-digit operands around one ``+``.
5. **Compute**: their sum as a plain base-10 string.

A misread never gets corrected or guessed at: any leftover character outside
the digit/``+`` set, or any operand count other than two, raises
``CaptchaSolveFailure``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from PIL import Image, ImageMath

from regsearch.exceptions import CaptchaSolveFailure
from regsearch.models.search import CaptchaChallenge

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 128
DEFAULT_WHITELIST = "0123456789+ "

_WHITESPACE_RE = re.compile(r"\s+")
_ALLOWED_RE = re.compile(r"^[0-9+]*$")
_PROMPT_SUFFIX = "=?"


class OcrEngine(Protocol):
    """Anything that turns a bitmap into best-effort text."""

    def recognize(self, image: Image.Image, whitelist: str, single_line: bool) -> str: ...


class TesseractOcrEngine:
    """``OcrEngine`` backed by Tesseract through ``pytesseract``.

    Args:
        tesseract_cmd: Path to the ``tesseract`` binary; empty uses ``PATH``.
        page_segmentation_mode: PSM used when *single_line* is requested.
        timeout_s: Seconds before the Tesseract process is killed.
    """

    def __init__(self, tesseract_cmd: str = "", page_segmentation_mode: int = 7, timeout_s: float = 10.0) -> None:
        self._tesseract_cmd = tesseract_cmd
        self._psm = page_segmentation_mode
        self._timeout_s = timeout_s

    def recognize(self, image: Image.Image, whitelist: str, single_line: bool) -> str:
        import pytesseract

        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd
        psm = self._psm if single_line else 6
        config = f'--oem 3 --psm {psm} -c "tessedit_char_whitelist={whitelist}"'
        try:
            return pytesseract.image_to_string(image, config=config, timeout=self._timeout_s)
        except RuntimeError as e:
            # pytesseract signals a killed process with a bare RuntimeError
            if "timeout" not in str(e).lower():
                raise
            raise CaptchaSolveFailure("", f"OCR timed out after {self._timeout_s:g}s") from e


def binarize(image: Image.Image, threshold: int = DEFAULT_THRESHOLD) -> Image.Image:
    """Map every pixel to opaque black or white by its RGB channel mean.

    A pixel becomes white when ``mean(r, g, b) > threshold``.  For any
    threshold in ``0..254`` the output is a fixed point: binarizing it again
    returns identical pixels.
    """
    r, g, b = image.convert("RGB").split()
    # mean > threshold  <=>  sum > 3 * threshold, kept in integers
    mask = ImageMath.lambda_eval(
        lambda args: ((args["r"] + args["g"] + args["b"]) > 3 * threshold) * 255, r=r, g=g, b=b
    ).convert("L")
    return Image.merge("RGBA", (mask, mask, mask, Image.new("L", mask.size, 255)))


def clean_text(raw_text: str) -> str:
    """Normalize OCR output to the ``digits+digits`` alphabet.

    Raises:
        CaptchaSolveFailure: If a character outside digits and ``+`` remains.
    """
    text = _WHITESPACE_RE.sub("", raw_text).rstrip(_PROMPT_SUFFIX)
    if not _ALLOWED_RE.match(text):
        raise CaptchaSolveFailure(raw_text, "unexpected characters in recognized text")
    return text


def parse_expression(text: str, raw_text: str | None = None) -> tuple[int, int]:
    """Parse cleaned ``A+B`` text into its two operands.

    Raises:
        CaptchaSolveFailure: Unless there are exactly two all-digit operands.
    """
    raw = text if raw_text is None else raw_text
    tokens = text.split("+")
    if len(tokens) != 2:
        raise CaptchaSolveFailure(raw, f"expected 2 operands, found {len(tokens)}")
    if not all(token.isdigit() for token in tokens):
        raise CaptchaSolveFailure(raw, "operand is not an integer")
    return int(tokens[0]), int(tokens[1])


def compute_answer(operands: tuple[int, int]) -> str:
    return str(operands[0] + operands[1])


def solve_text(raw_text: str) -> tuple[tuple[int, int], str]:
    """Clean, parse and compute from OCR text alone."""
    operands = parse_expression(clean_text(raw_text), raw_text)
    return operands, compute_answer(operands)


class CaptchaSolver:
    """Run the full binarize → OCR → parse → sum pipeline on a bitmap.

    Args:
        engine: OCR engine; defaults to Tesseract.
        threshold: Luminance threshold for binarization.
        whitelist: Characters the OCR engine may emit.
        debug_dir: When set, raw and binarized bitmaps are written here.
    """

    def __init__(
        self,
        engine: OcrEngine | None = None,
        *,
        threshold: int = DEFAULT_THRESHOLD,
        whitelist: str = DEFAULT_WHITELIST,
        debug_dir: Path | None = None,
    ) -> None:
        self._engine = engine or TesseractOcrEngine()
        self._threshold = threshold
        self._whitelist = whitelist
        self._debug_dir = debug_dir
        self._solved = 0

    @property
    def debug_dir(self) -> Path | None:
        return self._debug_dir

    def solve(self, challenge: CaptchaChallenge) -> CaptchaChallenge:
        """Fill in *challenge* from its ``raw_image``.

        Raises:
            CaptchaSolveFailure: If the recognized text is not ``A + B``.
        """
        if challenge.raw_image is None:
            raise ValueError("CaptchaChallenge has no raw image to solve")

        challenge.binary_image = binarize(challenge.raw_image, self._threshold)
        self._save_debug(challenge)

        challenge.recognized_text = self._engine.recognize(
            challenge.binary_image, self._whitelist, True
        )
        logger.info("CAPTCHA OCR text: %r", challenge.recognized_text)

        challenge.operands, challenge.answer = solve_text(challenge.recognized_text)
        logger.info("CAPTCHA solved: %d + %d = %s", *challenge.operands, challenge.answer)
        return challenge

    def _save_debug(self, challenge: CaptchaChallenge) -> None:
        if not self._debug_dir:
            return
        self._solved += 1
        try:
            self._debug_dir.mkdir(parents=True, exist_ok=True)
            challenge.raw_image.save(self._debug_dir / f"captcha_{self._solved:02d}_raw.png")
            challenge.binary_image.save(self._debug_dir / f"captcha_{self._solved:02d}_binary.png")
        except OSError as e:
            logger.warning("Failed to save CAPTCHA debug images: %s", e)
