"""Browser identity and fingerprint hardening.

The registry front end refuses traffic that looks automated, so every
session presents:

- a user agent drawn at random from the configured pool,
- Chromium without the ``AutomationControlled`` blink feature,
- init-script overrides for ``navigator.webdriver``, ``navigator.plugins``
  and ``navigator.languages`` that run before any page script.

``build_browser_profile`` returns the keyword arguments for
``chromium.launch()`` and ``browser.new_context()``; ``apply_stealth_scripts``
installs the overrides on a page.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Used when no pool is configured
_USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
)

_CHROMIUM_FLAGS: tuple[str, ...] = ("--disable-blink-features=AutomationControlled",)
_UNSANDBOXED_FLAGS: tuple[str, ...] = ("--no-sandbox", "--disable-setuid-sandbox")

_FINGERPRINT_OVERRIDES = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = window.chrome || { runtime: {} };
"""


def select_user_agent(pool: Iterable[str] | None = None) -> str:
    """Pick a user agent from *pool*, or from the built-in set when empty."""
    candidates = sorted({ua.strip() for ua in (pool or ()) if ua.strip()})
    return random.choice(candidates or _USER_AGENTS)


@dataclass
class BrowserProfile:
    """Launch and context keyword arguments for one session."""

    launch_args: dict[str, Any] = field(default_factory=dict)
    context_args: dict[str, Any] = field(default_factory=dict)
    user_agent: str = ""
    proxy_url: str = ""


def build_browser_profile(
    *,
    headless: bool = True,
    sandbox: bool = False,
    user_agent_pool: Iterable[str] | None = None,
    proxy: str = "",
) -> BrowserProfile:
    """Assemble the browser identity for a new session.

    Args:
        headless: Launch without a visible window.
        sandbox: Keep Chromium's sandbox (containers usually need it off).
        user_agent_pool: Candidates for the session's user agent.
        proxy: Optional proxy server URL.
    """
    flags = list(_CHROMIUM_FLAGS)
    if not sandbox:
        flags.extend(_UNSANDBOXED_FLAGS)

    user_agent = select_user_agent(user_agent_pool)
    profile = BrowserProfile(
        launch_args={"headless": headless, "args": flags},
        context_args={"user_agent": user_agent, "locale": "en-US"},
        user_agent=user_agent,
    )

    proxy = proxy.strip()
    if proxy:
        profile.launch_args["proxy"] = {"server": proxy}
        profile.proxy_url = proxy
        logger.debug("Routing browser through proxy %s", proxy)
    return profile


def apply_stealth_scripts(page) -> None:
    """Register the fingerprint overrides on *page*.

    Must run before the first navigation so the overrides apply to every
    document the page loads.
    """
    page.add_init_script(_FINGERPRINT_OVERRIDES)
    logger.debug("Fingerprint overrides registered")
