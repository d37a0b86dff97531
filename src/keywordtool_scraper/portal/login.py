from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..config import AccountConfig
from ..errors import AccountChallengeError, AccountError, AccountExtractionError, AccountRejectedError, LoginFormError
from ..platforms import BASE_URL, LOGIN_PATH
from ..util.debug_bundle import safe_name, save_debug_snapshot
from ..util.delays import human_pause
from .selectors import KeywordToolSelectors


logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING_AUTH_STATE = "checking_auth_state"
    ALREADY_AUTHENTICATED = "already_authenticated"
    SUBMITTING_CREDENTIALS = "submitting_credentials"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    CHALLENGED = "challenged"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset(
    {
        LoginState.ALREADY_AUTHENTICATED,
        LoginState.AUTHENTICATED,
        LoginState.REJECTED,
        LoginState.CHALLENGED,
        LoginState.TIMED_OUT,
    }
)

_CHALLENGE_URL_SEGMENTS = ("/otp", "/verify", "/captcha", "/two-factor")
_CHALLENGE_TEXT_RES = (
    re.compile(r"one[-\s]?time\s+password", re.I),
    re.compile(r"\botp\b", re.I),
    re.compile(r"verification\s+code", re.I),
    re.compile(r"verify\s+your", re.I),
    re.compile(r"too\s+many", re.I),
    re.compile(r"rate\s+limit", re.I),
    re.compile(r"captcha", re.I),
)


@dataclass(frozen=True)
class LoginOutcome:
    state: LoginState
    message: str = ""

    @property
    def authenticated(self) -> bool:
        return self.state in (LoginState.ALREADY_AUTHENTICATED, LoginState.AUTHENTICATED)

    def to_error(self, account: str) -> Optional[AccountError]:
        if self.state == LoginState.CHALLENGED:
            return AccountChallengeError(f"Verification required for {account}: {self.message}", account=account)
        if self.state == LoginState.REJECTED:
            detail = f": {self.message}" if self.message else ""
            return AccountRejectedError(f"Login failed for {account}{detail}", account=account)
        if self.state == LoginState.TIMED_OUT:
            return AccountExtractionError(f"Login timed out for {account}: {self.message}", account=account)
        return None


def find_challenge_signal(url: str, body_text: str) -> Optional[str]:
    """
    Return a short description of the first OTP/CAPTCHA/rate-limit hint in the page, or None.
    """
    u = (url or "").lower()
    for seg in _CHALLENGE_URL_SEGMENTS:
        if seg in u:
            return f"url contains {seg}"
    text = body_text or ""
    for pat in _CHALLENGE_TEXT_RES:
        m = pat.search(text)
        if m:
            return f"page mentions {m.group(0).lower()!r}"
    return None


def is_login_url(url: str) -> bool:
    return LOGIN_PATH in (url or "")


def classify_submission(*, url: str, body_text: str, navigated: bool) -> LoginState:
    """
    Decide the terminal state after credentials were submitted.

    Challenge signals win over everything else, then "still on the login page", then success.
    """
    if find_challenge_signal(url, body_text):
        return LoginState.CHALLENGED
    if not navigated or is_login_url(url):
        return LoginState.REJECTED
    return LoginState.AUTHENTICATED


class LoginStateMachine:
    """
    Drives one account from "unknown" to a terminal login state on an already-open page.

    Nothing is persisted here; the caller saves the session once the scraped rows show real data.
    """

    def __init__(
        self,
        *,
        selectors: Optional[KeywordToolSelectors] = None,
        login_url: str = f"{BASE_URL}{LOGIN_PATH}",
        request_timeout_ms: int = 30_000,
        navigation_timeout_ms: int = 15_000,
        auth_probe_timeout_ms: int = 2_000,
        debug_dir: str = "data/debug",
        delay_scale: float = 1.0,
    ) -> None:
        self.selectors = selectors or KeywordToolSelectors()
        self.login_url = login_url
        self.request_timeout_ms = request_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.auth_probe_timeout_ms = auth_probe_timeout_ms
        self.debug_dir = debug_dir
        self.delay_scale = delay_scale

        self.state = LoginState.UNKNOWN
        self.history: list[LoginState] = [LoginState.UNKNOWN]

    def _transition(self, state: LoginState) -> None:
        logger.debug("Login state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _finish(self, state: LoginState, message: str = "") -> LoginOutcome:
        self._transition(state)
        return LoginOutcome(state=state, message=message)

    def run(self, session: Any, account: AccountConfig) -> LoginOutcome:
        page = session.page

        self._transition(LoginState.CHECKING_AUTH_STATE)
        if self.check_auth_state(page):
            logger.info("Already logged in as %s (saved session valid)", account.email)
            return self._finish(LoginState.ALREADY_AUTHENTICATED)

        logger.info("Not logged in; logging in as %s", account.email)
        return self.submit_credentials(session, account)

    # --- auth state probes ---

    def has_login_affordance(self, page: Any) -> bool:
        try:
            return bool(page.locator(self.selectors.login_link).first.is_visible())
        except Exception:
            return False

    def has_authenticated_only_element(self, page: Any) -> bool:
        for selector in self.selectors.authenticated_only:
            try:
                page.locator(selector).first.wait_for(state="visible", timeout=self.auth_probe_timeout_ms)
                return True
            except Exception:
                continue
        return False

    def check_auth_state(self, page: Any) -> bool:
        """
        Two independent checks: no visible login link AND a visible signed-in-only element.

        A missing login link alone is not proof (it also disappears on error pages and half-rendered
        layouts), so anything inconclusive is treated as logged out.
        """
        if self.has_login_affordance(page):
            return False
        return self.has_authenticated_only_element(page)

    # --- credential submission ---

    def submit_credentials(self, session: Any, account: AccountConfig) -> LoginOutcome:
        page = session.page
        self._transition(LoginState.SUBMITTING_CREDENTIALS)

        if not is_login_url(page.url):
            try:
                page.goto(self.login_url, wait_until="domcontentloaded", timeout=self.request_timeout_ms)
            except PlaywrightTimeoutError as e:
                return self._finish(LoginState.TIMED_OUT, f"login page did not load ({e})")
            human_pause(page, 1000, 2000, scale=self.delay_scale)

        try:
            page.fill(self.selectors.email_input, account.email)
            human_pause(page, 500, 1000, scale=self.delay_scale)
            page.fill(self.selectors.password_input, account.password)
            human_pause(page, 800, 1500, scale=self.delay_scale)
            page.locator(self.selectors.login_submit).first.click()
            logger.info("Login form submitted for %s", account.email)
        except Exception as e:
            save_debug_snapshot(
                page,
                debug_dir=self.debug_dir,
                name_prefix=f"login_fill_failed_{safe_name(account.email)}",
            )
            raise LoginFormError(f"Could not fill/submit the login form ({e})", account=account.email) from e

        navigated = self._wait_for_navigation_away(page)
        human_pause(page, 2000, 3000, scale=self.delay_scale)

        url = page.url or ""
        body = self._body_text(page)
        state = classify_submission(url=url, body_text=body, navigated=navigated)

        if state == LoginState.CHALLENGED:
            signal = find_challenge_signal(url, body) or "verification required"
            logger.warning("Login for %s hit a verification/rate-limit step (%s)", account.email, signal)
            return self._finish(state, signal)

        if state == LoginState.REJECTED:
            reason = self._inline_error(page)
            logger.warning("Login rejected for %s%s", account.email, f": {reason}" if reason else "")
            return self._finish(state, reason)

        logger.info("Login succeeded: %s", account.email)
        return self._finish(LoginState.AUTHENTICATED)

    def _wait_for_navigation_away(self, page: Any) -> bool:
        try:
            page.wait_for_url(lambda url: not is_login_url(url), timeout=self.navigation_timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    def _body_text(self, page: Any) -> str:
        try:
            return page.inner_text("body") or ""
        except Exception:
            return ""

    def _inline_error(self, page: Any) -> str:
        try:
            text = page.locator(self.selectors.login_error).first.text_content(timeout=3_000)
        except Exception:
            return ""
        return re.sub(r"\s+", " ", text or "").strip()
