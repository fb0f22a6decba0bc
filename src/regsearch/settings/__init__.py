"""Layered configuration (TOML files + REGSEARCH_* environment variables)."""

from regsearch.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
