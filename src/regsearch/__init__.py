"""Registry Search: CAPTCHA-gated registry search automation with structured result extraction."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("regsearch")
except Exception:
    __version__ = "0.0.0"
