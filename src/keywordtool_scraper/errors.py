from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .models import AttemptFailure


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NO_ACCOUNTS_CONFIGURED = "no_accounts_configured"
    ACCOUNT_CHALLENGE = "account_challenge"
    ACCOUNT_REJECTED = "account_rejected"
    ACCOUNT_EXTRACTION_FAILURE = "account_extraction_failure"
    ALL_ACCOUNTS_EXHAUSTED = "all_accounts_exhausted"


class KeywordScraperError(RuntimeError):
    """
    Base class for every failure the scraper surfaces to its caller.

    `kind` is the machine-readable category a boundary (CLI / HTTP layer) maps to a status.
    """

    kind: ErrorKind = ErrorKind.ACCOUNT_EXTRACTION_FAILURE

    def __init__(self, message: str, *, details: Optional[dict] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class InvalidInputError(KeywordScraperError):
    """Bad platform / keyword / tab / volume bounds. Raised before any account is tried."""

    kind = ErrorKind.INVALID_INPUT


class NoAccountsConfiguredError(KeywordScraperError):
    kind = ErrorKind.NO_ACCOUNTS_CONFIGURED


class AccountError(KeywordScraperError):
    """
    A failure scoped to one account attempt. The orchestrator catches these and moves on.
    """

    def __init__(self, message: str, *, account: str = "", details: Optional[dict] = None) -> None:
        self.account = account
        combined = dict(details or {})
        if account:
            combined.setdefault("account", account)
        super().__init__(message, details=combined)


class AccountChallengeError(AccountError):
    """OTP / verification code / CAPTCHA / rate-limit page after submitting credentials."""

    kind = ErrorKind.ACCOUNT_CHALLENGE


class AccountRejectedError(AccountError):
    """Credentials submitted but the site kept us on the login page."""

    kind = ErrorKind.ACCOUNT_REJECTED


class AccountExtractionError(AccountError):
    """Navigation, timeout or DOM failure while scraping with an account."""

    kind = ErrorKind.ACCOUNT_EXTRACTION_FAILURE


class LoginFormError(AccountExtractionError):
    """
    Raised when the login form could not be filled/submitted (field missing, click intercepted, ...).

    Unlike a rejection this is fatal for the attempt: there is no point scraping as guest on a page
    we could not even drive.
    """


class AllAccountsExhaustedError(KeywordScraperError):
    kind = ErrorKind.ALL_ACCOUNTS_EXHAUSTED

    def __init__(self, failures: list["AttemptFailure"]) -> None:
        self.failures = list(failures)
        detail = " | ".join(f"{f.account}: {f.reason}" for f in self.failures)
        super().__init__(f"All {len(self.failures)} account(s) failed. {detail}".strip())

    @property
    def failure_kinds(self) -> set[ErrorKind]:
        return {f.kind for f in self.failures}


def http_status_for(exc: BaseException) -> int:
    """
    Map a scraper error to the HTTP status class a request/response front end should return.
    """
    if not isinstance(exc, KeywordScraperError):
        return 500

    kind = exc.kind
    if kind == ErrorKind.INVALID_INPUT:
        return 400
    if kind == ErrorKind.ACCOUNT_CHALLENGE:
        return 503
    if kind == ErrorKind.ACCOUNT_REJECTED:
        return 401
    if isinstance(exc, AllAccountsExhaustedError):
        kinds = exc.failure_kinds
        # one account needing verification makes the whole pool "try again later"
        if ErrorKind.ACCOUNT_CHALLENGE in kinds:
            return 503
        if ErrorKind.ACCOUNT_REJECTED in kinds:
            return 401
    return 500
