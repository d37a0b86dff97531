from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from keywordtool_scraper.models import SessionRecord
from keywordtool_scraper.portal.browser import AutomationSession
from keywordtool_scraper.session_store import SessionStore


DEFAULT_COOKIES = [{"name": "kt_session", "value": "abc", "domain": ".keywordtool.io", "path": "/"}]


class FakeKeyboard:
    def __init__(self) -> None:
        self.pressed: list[str] = []
        self.typed: list[str] = []

    def press(self, key: str) -> None:
        self.pressed.append(key)

    def type(self, text: str) -> None:
        self.typed.append(text)


class FakeLocator:
    """
    Minimal stand-in for a Playwright Locator. Behaviour is driven by the owning FakePage's tables.
    """

    def __init__(self, page: "FakePage", selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    @property
    def last(self) -> "FakeLocator":
        return self

    def nth(self, _i: int) -> "FakeLocator":
        return self

    def locator(self, selector: str) -> "FakeLocator":
        return FakeLocator(self.page, f"{self.selector} >> {selector}")

    def filter(self, has_text: Optional[str] = None) -> "FakeLocator":
        return FakeLocator(self.page, f"{self.selector}:has-text({has_text})")

    def is_visible(self) -> bool:
        return self.selector in self.page.visible

    def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        if state == "visible" and not self.is_visible():
            raise PlaywrightTimeoutError(f"waiting for {self.selector} timed out")

    def count(self) -> int:
        if self.selector in self.page.counts:
            return self.page.counts[self.selector]
        return 1 if self.is_visible() else 0

    def click(self, timeout: Optional[float] = None) -> None:
        self.page._act("click", self.selector)

    def fill(self, value: str) -> None:
        self.page._act("fill", self.selector, value)

    def text_content(self, timeout: Optional[float] = None) -> str:
        if self.selector not in self.page.texts:
            raise PlaywrightTimeoutError(f"no text for {self.selector}")
        return self.page.texts[self.selector]


class FakePage:
    def __init__(
        self,
        *,
        url: str = "about:blank",
        visible: tuple[str, ...] = (),
        texts: Optional[dict[str, str]] = None,
        body_text: str = "",
        rows: Optional[list[dict]] = None,
        navigate_on_click: Optional[dict[str, str]] = None,
        fail_on: Optional[dict[str, Exception]] = None,
        goto_errors: Optional[dict[str, Exception]] = None,
        user_agent: str = "FakeUA/1.0",
    ) -> None:
        self.url = url
        self.visible = set(visible)
        self.texts = dict(texts or {})
        self.body_text = body_text
        self.rows = list(rows or [])
        self.navigate_on_click = dict(navigate_on_click or {})
        self.fail_on = dict(fail_on or {})
        self.goto_errors = dict(goto_errors or {})
        self.user_agent = user_agent
        self.keyboard = FakeKeyboard()

        self.counts: dict[str, int] = {"table tbody tr": len(self.rows)}
        self.visits: list[str] = []
        self.actions: list[tuple] = []
        self.screenshots: list[str] = []
        self.waited_ms = 0

    # recorded interactions
    def _act(self, kind: str, selector: str, *args: Any) -> None:
        err = self.fail_on.get(selector)
        if err is not None:
            raise err
        self.actions.append((kind, selector, *args))
        if kind == "click" and selector in self.navigate_on_click:
            self.url = self.navigate_on_click[selector]

    @property
    def fills(self) -> list[tuple]:
        return [a for a in self.actions if a[0] == "fill"]

    @property
    def clicks(self) -> list[str]:
        return [a[1] for a in self.actions if a[0] == "click"]

    # Page API surface used by the scraper
    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def goto(self, url: str, wait_until: Optional[str] = None, timeout: Optional[float] = None) -> None:
        err = self.goto_errors.get(url)
        if err is not None:
            raise err
        self.visits.append(url)
        self.url = url

    def fill(self, selector: str, value: str) -> None:
        self._act("fill", selector, value)

    def wait_for_timeout(self, ms: float) -> None:
        self.waited_ms += int(ms)

    def wait_for_url(self, predicate: Callable[[str], bool], timeout: Optional[float] = None) -> None:
        if not predicate(self.url):
            raise PlaywrightTimeoutError(f"url did not change from {self.url}")

    def inner_text(self, _selector: str) -> str:
        return self.body_text

    def text_content(self, _selector: str) -> str:
        return self.body_text

    def evaluate(self, script: str, arg: Any = None) -> Any:
        if "navigator.userAgent" in script:
            return self.user_agent
        return self.rows

    def screenshot(self, path: str, full_page: bool = False) -> None:
        self.screenshots.append(path)

    def content(self) -> str:
        return "<html><body>fake</body></html>"


class FakeContext:
    def __init__(self, cookies: Optional[list[dict]] = None) -> None:
        self._cookies = list(cookies if cookies is not None else DEFAULT_COOKIES)
        self.closed = False

    def cookies(self) -> list[dict]:
        return list(self._cookies)


def make_session(page: FakePage, *, cookies: Optional[list[dict]] = None, restored: bool = False) -> AutomationSession:
    return AutomationSession(
        context=FakeContext(cookies), page=page, user_agent=page.user_agent, restored_session=restored  # type: ignore[arg-type]
    )


class FakeSessionFactory:
    """
    Replacement for `open_automation_session`: hands out scripted pages and records teardown.
    """

    def __init__(self, *pages: FakePage) -> None:
        self.pages = list(pages)
        self.opened: list[Optional[SessionRecord]] = []
        self.closed = 0

    @contextmanager
    def __call__(self, _browser_cfg: Any, *, saved: Optional[SessionRecord] = None) -> Iterator[AutomationSession]:
        self.opened.append(saved)
        page = self.pages.pop(0)
        try:
            yield make_session(page, restored=saved is not None and bool(saved.cookies))
        finally:
            self.closed += 1


class SpySessionStore(SessionStore):
    def __init__(self) -> None:
        self.saved: list[tuple[str, SessionRecord]] = []
        self.deleted: list[str] = []
        self.loaded: list[str] = []

    def load(self, account):  # type: ignore[override]
        self.loaded.append(account.email)
        return super().load(account)

    def save(self, account, record):  # type: ignore[override]
        self.saved.append((account.email, record))
        return super().save(account, record)

    def delete(self, account):  # type: ignore[override]
        self.deleted.append(account.email)
        return super().delete(account)


def blurred_cell() -> dict:
    return {"text": "1,000", "classes": ["blur"], "html": "<span>1,000</span>", "has_blur_child": False}


def plain_cell(text: str) -> dict:
    return {"text": text, "classes": [], "html": text, "has_blur_child": False}


def row(keyword: str, volume: Optional[str] = "1,200", trend: str = "+10%", *, blurred: bool = False) -> dict:
    vol_cell = blurred_cell() if blurred else plain_cell(volume or "")
    return {"spanning": False, "cells": [plain_cell("1"), plain_cell(keyword), vol_cell, plain_cell(trend)]}
