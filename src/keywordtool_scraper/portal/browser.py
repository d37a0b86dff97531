from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from playwright.sync_api import BrowserContext, Page, sync_playwright

from ..config import BrowserConfig
from ..models import SessionRecord


logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]

# Hide the most obvious automation fingerprints before any site script runs.
_STEALTH_INIT_SCRIPT = """
(() => {
  Object.defineProperty(navigator, 'webdriver', { get: () => false });
  Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
  window.chrome = { runtime: {} };
})();
"""


@dataclass
class AutomationSession:
    """
    One isolated browser context + page, owned by exactly one account attempt.
    """

    context: BrowserContext
    page: Page
    user_agent: str
    restored_session: bool = False

    def cookies(self) -> list[dict]:
        return [dict(c) for c in self.context.cookies()]

    def current_user_agent(self) -> str:
        try:
            return str(self.page.evaluate("() => navigator.userAgent") or self.user_agent)
        except Exception:
            return self.user_agent

    def snapshot(self) -> SessionRecord:
        return SessionRecord(cookies=self.cookies(), user_agent=self.current_user_agent())


def pick_user_agent(cfg: BrowserConfig, saved: Optional[SessionRecord]) -> str:
    # Cookies are tied to the browser identity that created them; reuse it when we have one.
    if saved is not None and saved.user_agent:
        return saved.user_agent
    if cfg.user_agents:
        return random.choice(cfg.user_agents)
    return ""


@contextmanager
def open_automation_session(cfg: BrowserConfig, *, saved: Optional[SessionRecord] = None) -> Iterator[AutomationSession]:
    """
    Launch Chromium, build a fresh context (optionally seeded with saved cookies) and yield it.

    Teardown runs on every exit path so no browser process outlives the attempt.
    """
    user_agent = pick_user_agent(cfg, saved)

    with sync_playwright() as p:
        slow_mo = int(cfg.slow_mo_ms or 0)
        try:
            browser = p.chromium.launch(headless=cfg.headless, slow_mo=slow_mo, args=_LAUNCH_ARGS)
        except Exception as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise
            logger.warning(
                "Playwright Chromium executable missing; falling back to system Chrome channel. (%s)",
                msg,
            )
            browser = p.chromium.launch(headless=cfg.headless, slow_mo=slow_mo, args=_LAUNCH_ARGS, channel="chrome")

        try:
            ctx_kwargs: dict = {
                "viewport": {"width": 1280, "height": 720},
                "locale": cfg.locale,
                "extra_http_headers": {"Accept-Language": cfg.accept_language},
            }
            if user_agent:
                ctx_kwargs["user_agent"] = user_agent

            restored = False
            if saved is not None and saved.cookies:
                ctx_kwargs["storage_state"] = {"cookies": saved.cookies, "origins": []}
                restored = True

            try:
                ctx = browser.new_context(**ctx_kwargs)
            except Exception as e:
                if not restored:
                    raise
                # Malformed cookies make Playwright reject the whole context; start clean instead.
                logger.warning("Failed to restore saved cookies; starting a fresh context. (%s)", e)
                ctx_kwargs.pop("storage_state", None)
                restored = False
                ctx = browser.new_context(**ctx_kwargs)

            try:
                ctx.set_default_timeout(cfg.request_timeout_ms)
                ctx.add_init_script(_STEALTH_INIT_SCRIPT)
                page = ctx.new_page()
                yield AutomationSession(context=ctx, page=page, user_agent=user_agent, restored_session=restored)
            finally:
                ctx.close()
        finally:
            browser.close()
