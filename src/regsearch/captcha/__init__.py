"""Arithmetic CAPTCHA capture (``acquisition``) and solving (``solver``)."""

from regsearch.captcha.acquisition import capture_challenge
from regsearch.captcha.solver import CaptchaSolver, OcrEngine, TesseractOcrEngine, binarize

__all__ = ["CaptchaSolver", "OcrEngine", "TesseractOcrEngine", "binarize", "capture_challenge"]
