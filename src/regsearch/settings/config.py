"""Configuration loader for regsearch using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (REGSEARCH_* with __ for nesting)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("REGSEARCH_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "REGSEARCH_ENV"
DEFAULT_ENV = "local"

DEFAULT_TARGET_URL = (
    "https://www.mca.gov.in/content/mca/global/en/mca/fo-llp-services/company-llp-name-search.html"
)


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright browser settings."""

    model_config = SettingsConfigDict(env_prefix="REGSEARCH_BROWSER__")

    headless: bool = True
    sandbox: bool = False
    timeout_ms: int = 30_000
    wait_until: str = "domcontentloaded"
    user_agents: list[str] = Field(default_factory=list)
    proxy: str = ""


class TargetSettings(BaseSettings):
    """Target page URL and its DOM-identifier contract."""

    model_config = SettingsConfigDict(env_prefix="REGSEARCH_TARGET__")

    url: str = DEFAULT_TARGET_URL
    blocked_paths: list[str] = Field(default_factory=lambda: ["/home"])

    # Raw-HTML markers that must be present before any interaction
    required_markers: dict[str, str] = Field(
        default_factory=lambda: {
            "search_input": "masterdata-search-box",
            "search_button": "searchicon",
            "captcha_modal": "captchaModal",
        }
    )

    search_input: str = "#masterdata-search-box"
    search_button: str = "#searchicon"
    captcha_modal: str = "#captchaModal"
    captcha_image: str = "#captchaModal canvas, #captchaModal img"
    captcha_input: str = "#customCaptchaInput"
    results_table: str = "#results table"
    inline_error: str = "#errorMessage"


class CaptchaSettings(BaseSettings):
    """CAPTCHA capture and OCR configuration."""

    model_config = SettingsConfigDict(env_prefix="REGSEARCH_CAPTCHA__")

    threshold: int = Field(default=128, ge=0, le=254)
    whitelist: str = "0123456789+ "
    page_segmentation_mode: int = 7
    tesseract_cmd: str = ""
    ocr_timeout_s: float = Field(default=10.0, gt=0)
    wait_timeout_ms: int = 15_000
    type_delay_ms: int = 120


class SearchSettings(BaseSettings):
    """Attempt-level timing and retry policy."""

    model_config = SettingsConfigDict(env_prefix="REGSEARCH_SEARCH__")

    attempt_timeout_s: float = 120.0
    element_timeout_ms: int = 10_000
    navigation_race_ms: int = 5_000
    result_timeout_ms: int = 20_000
    settle_ms: int = 500
    quiescence_idle_ms: int = 500
    quiescence_timeout_ms: int = 5_000
    max_attempts: int = 1
    retry_base_delay_s: float = 2.0
    retry_max_delay_s: float = 30.0


class DiagnosticsSettings(BaseSettings):
    """Failure screenshots and intermediate CAPTCHA bitmaps."""

    model_config = SettingsConfigDict(env_prefix="REGSEARCH_DIAGNOSTICS__")

    enabled: bool = True
    output_dir: str = "data/diagnostics"
    save_captcha_images: bool = False
    screenshot_on_failure: bool = True


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root regsearch settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="REGSEARCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    target: TargetSettings = Field(default_factory=TargetSettings)
    captcha: CaptchaSettings = Field(default_factory=CaptchaSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    diagnostics: DiagnosticsSettings = Field(default_factory=DiagnosticsSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        if self.diagnostics.output_dir and not Path(self.diagnostics.output_dir).is_absolute():
            self.diagnostics.output_dir = str(self.project_root / self.diagnostics.output_dir)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
