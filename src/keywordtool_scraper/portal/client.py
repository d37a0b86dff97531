from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import AccountConfig, BrowserConfig
from ..errors import AccountError, AccountExtractionError
from ..models import KeywordResultSet, ScrapeRequest
from ..platforms import RESULT_TABS, PlatformInfo, get_platform
from ..session_store import SessionStore
from ..util.debug_bundle import safe_name, save_debug_snapshot
from ..util.delays import human_pause
from .browser import AutomationSession, open_automation_session
from .extraction import extract_keywords, is_degraded, read_page_totals
from .login import LoginStateMachine
from .selectors import KeywordToolSelectors


logger = logging.getLogger(__name__)

RESULTS_ROUTE_TIMEOUT_MS = 60_000


class KeywordToolClient:
    """
    keywordtool.io automation for a single account attempt.

    Each call to `scrape_with_account()` owns one fresh browser context from start to finish.
    """

    def __init__(
        self,
        *,
        browser: BrowserConfig,
        session_store: SessionStore,
        selectors: Optional[KeywordToolSelectors] = None,
        guest_fallback: bool = True,
        session_factory: Callable[..., Any] = open_automation_session,
    ) -> None:
        self.browser = browser
        self.session_store = session_store
        self.selectors = selectors or KeywordToolSelectors()
        self.guest_fallback = guest_fallback
        self._session_factory = session_factory

    def _pause(self, page: Any, min_ms: int, max_ms: int) -> None:
        human_pause(page, min_ms, max_ms, scale=self.browser.delay_scale)

    def _new_login_machine(self) -> LoginStateMachine:
        return LoginStateMachine(
            selectors=self.selectors,
            request_timeout_ms=self.browser.request_timeout_ms,
            debug_dir=self.browser.debug_dir,
            delay_scale=self.browser.delay_scale,
        )

    def scrape_with_account(self, account: AccountConfig, request: ScrapeRequest) -> KeywordResultSet:
        platform = get_platform(request.platform)
        saved = self.session_store.load(account)

        with self._session_factory(self.browser, saved=saved) as session:
            if saved is not None and session.restored_session:
                logger.info("Restored saved session (%d cookies) for %s", len(saved.cookies), account.email)
            elif saved is not None:
                logger.warning("Saved session for %s could not be restored; starting without cookies.", account.email)
            login_error: Optional[AccountError] = None
            try:
                self._goto_platform(session.page, platform)
                login_error = self._login_or_guest(session, account)
                return self._search_and_extract(session, account, request, platform)
            except AccountError as e:
                self._capture_failure(session, account)
                raise self._attribute(e, login_error)
            except PlaywrightTimeoutError as e:
                self._capture_failure(session, account)
                error = AccountExtractionError(f"Timed out while scraping ({e})", account=account.email)
                error.__cause__ = e
                raise self._attribute(error, login_error)
            except Exception as e:
                self._capture_failure(session, account)
                error = AccountExtractionError(f"{type(e).__name__}: {e}", account=account.email)
                error.__cause__ = e
                raise self._attribute(error, login_error)

    # --- attempt steps ---

    def _login_or_guest(self, session: AutomationSession, account: AccountConfig) -> Optional[AccountError]:
        """
        Log in if needed. A rejected/challenged/timed-out login is soft: the saved session is dropped and
        the attempt continues as guest (blurred data beats no data). Returns the login error, if any.
        """
        outcome = self._new_login_machine().run(session, account)
        if outcome.authenticated:
            return None

        error = outcome.to_error(account.email)
        self.session_store.delete(account)
        if error is None:
            return None
        if not self.guest_fallback:
            raise error

        logger.warning("Login failed/skipped for %s (%s); proceeding as guest, data may be blurred.", account.email, error)
        return error

    def _search_and_extract(
        self,
        session: AutomationSession,
        account: AccountConfig,
        request: ScrapeRequest,
        platform: PlatformInfo,
    ) -> KeywordResultSet:
        page = session.page

        # Login may have left us on the login page or the dashboard.
        if not platform.is_current(page.url or ""):
            self._goto_platform(page, platform)

        self._ensure_language(page)
        self._submit_search(page, request.keyword, platform)
        self._wait_for_results(page)
        self._pause(page, 8000, 12000)

        if request.tab != "suggestions":
            self._switch_tab(page, request.tab)

        totals = read_page_totals(page)
        records = extract_keywords(page, selectors=self.selectors, delay_scale=self.browser.delay_scale)

        if records and is_degraded(records):
            logger.warning("All %d rows are blurred for %s (guest/free tier); returning them anyway.", len(records), account.email)
        elif not is_degraded(records):
            self.session_store.save(account, session.snapshot())

        result = KeywordResultSet.build(
            account=account.email,
            records=records,
            volume_filter=request.filter,
            total_search_volume=totals.total_search_volume,
            average_trend=totals.average_trend,
        )
        logger.info(
            "Volume filter (%s-%s): %d of %d keywords",
            request.filter.min_volume,
            request.filter.max_volume if request.filter.max_volume is not None else "unlimited",
            result.filtered_count,
            result.total_keywords_found,
        )
        return result

    def _goto_platform(self, page: Any, platform: PlatformInfo) -> None:
        logger.info("Navigating to %s", platform.url)
        page.goto(platform.url, wait_until="domcontentloaded", timeout=self.browser.request_timeout_ms)
        self._pause(page, 2000, 3000)
        self._dismiss_overlays(page)

    def _dismiss_overlays(self, page: Any) -> bool:
        """
        Best-effort: click away cookie/promo overlays that would intercept clicks. Skips when none are shown.
        """
        for selector in self.selectors.overlay_dismiss:
            try:
                btn = page.locator(selector).first
                if btn.is_visible():
                    btn.click(timeout=2_000)
                    logger.debug("Dismissed overlay via %s", selector)
                    return True
            except Exception:
                continue
        return False

    def _ensure_language(self, page: Any) -> bool:
        """
        Best-effort: make sure the search language picker shows `browser.language`.

        Returns False when the picker could not be driven; the search then runs with whatever language the
        site defaulted to.
        """
        language = (self.browser.language or "").strip()
        if not language:
            return True

        wrapper = page.locator(self.selectors.language_wrapper).last
        control = wrapper.locator(self.selectors.language_control)
        try:
            current = (control.text_content(timeout=3_000) or "").strip()
        except Exception as e:
            logger.info("Language picker not found; keeping site default. (%s)", e)
            return False

        if current.startswith(language):
            logger.info("Language already %s", language)
            return True

        logger.info("Setting language %r -> %r", current, language)
        try:
            control.click()
            self._pause(page, 600, 1000)
            wrapper.locator(self.selectors.language_input).fill(language)
            self._pause(page, 800, 1200)

            option = page.locator(self.selectors.language_option).filter(has_text=language).first
            if option.is_visible():
                option.click()
            else:
                page.keyboard.press("Enter")
            self._pause(page, 500, 800)
            return True
        except Exception as e:
            logger.info("Language picker interaction failed; trying keyboard. (%s)", e)

        try:
            page.keyboard.type(language)
            self._pause(page, 1000, 1500)
            page.keyboard.press("Enter")
            self._pause(page, 500, 800)
            return True
        except Exception:
            logger.warning("Could not set language to %s; continuing with site default.", language, exc_info=True)
            return False

    def _submit_search(self, page: Any, keyword: str, platform: PlatformInfo) -> None:
        logger.info("Searching %r on %s", keyword, platform.slug)
        box = page.locator(self.selectors.keyword_input).first
        box.click()
        box.fill("")
        self._pause(page, 300, 500)
        box.fill(keyword)
        self._pause(page, 500, 800)
        page.locator(self.selectors.search_button).first.click()

    def _wait_for_results(self, page: Any) -> bool:
        token = self.selectors.results_route_token
        try:
            page.wait_for_url(lambda url: token in url, timeout=RESULTS_ROUTE_TIMEOUT_MS)
            logger.info("Results page loaded")
            return True
        except PlaywrightTimeoutError:
            # Some searches render results in place; extraction decides whether anything is there.
            logger.warning("Timed out waiting for the results URL; trying to read the page anyway.")
            return False

    def _switch_tab(self, page: Any, tab: str) -> bool:
        label = RESULT_TABS.get(tab)
        if not label:
            return False
        try:
            page.locator(self.selectors.result_tab_link).filter(has_text=label).first.click()
            logger.info("Switched to tab %s", label)
            self._pause(page, 3000, 5000)
            return True
        except Exception as e:
            logger.warning("Tab switch to %s failed; using the default tab. (%s)", label, e)
            return False

    # --- failure handling ---

    def _capture_failure(self, session: AutomationSession, account: AccountConfig) -> None:
        save_debug_snapshot(
            session.page,
            debug_dir=self.browser.debug_dir,
            name_prefix=f"attempt_failed_{safe_name(account.email)}",
        )

    @staticmethod
    def _attribute(error: AccountError, login_error: Optional[AccountError]) -> AccountError:
        """
        When we were scraping as guest because login failed, report the login failure as the root cause
        (with the downstream error attached) so callers can still tell "bad credentials" from "site broke".
        """
        if login_error is None or error is login_error:
            return error
        combined = type(login_error)(
            f"{login_error.message}; guest attempt then failed: {error.message}",
            account=login_error.account,
        )
        combined.__cause__ = error
        return combined
