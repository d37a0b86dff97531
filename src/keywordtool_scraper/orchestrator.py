from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from .cache import ResponseCache
from .config import AccountConfig, AppConfig
from .errors import (
    AccountError,
    AllAccountsExhaustedError,
    ErrorKind,
    KeywordScraperError,
    NoAccountsConfiguredError,
)
from .models import AttemptFailure, KeywordResultSet, ScrapeRequest
from .portal.client import KeywordToolClient
from .session_store import SessionStore


logger = logging.getLogger(__name__)

AttemptRunner = Callable[[AccountConfig, ScrapeRequest], KeywordResultSet]


def order_accounts(accounts: Sequence[AccountConfig], session_store: SessionStore) -> list[AccountConfig]:
    """
    Accounts with a saved session first (likely still logged in), original order otherwise.
    """
    return sorted(accounts, key=lambda a: 0 if session_store.exists(a) else 1)


def _failure_from(account: AccountConfig, exc: Exception) -> AttemptFailure:
    if isinstance(exc, KeywordScraperError):
        return AttemptFailure(account=account.email, kind=exc.kind, reason=exc.message)
    return AttemptFailure(
        account=account.email,
        kind=ErrorKind.ACCOUNT_EXTRACTION_FAILURE,
        reason=f"{type(exc).__name__}: {exc}",
    )


class AccountOrchestrator:
    """
    Try each configured account in turn until one returns a result.

    Attempts are strictly sequential. Every failed attempt drops that account's saved session so the next
    run starts it from a clean login.
    """

    def __init__(
        self,
        *,
        accounts: Sequence[AccountConfig],
        session_store: SessionStore,
        attempt: AttemptRunner,
        cache: Optional[ResponseCache] = None,
    ) -> None:
        self.accounts = list(accounts)
        self.session_store = session_store
        self.attempt = attempt
        self.cache = cache

    @classmethod
    def from_config(cls, cfg: AppConfig, *, cache: Optional[ResponseCache] = None) -> "AccountOrchestrator":
        store = SessionStore()
        client = KeywordToolClient(
            browser=cfg.browser,
            session_store=store,
            guest_fallback=cfg.scrape.guest_fallback,
        )
        if cache is None:
            cache = ResponseCache(ttl_seconds=cfg.scrape.cache_ttl_minutes * 60)
        return cls(accounts=cfg.accounts, session_store=store, attempt=client.scrape_with_account, cache=cache)

    def scrape(
        self,
        keyword: str,
        platform: str = "google",
        tab: Optional[str] = None,
        min_volume: int = 0,
        max_volume: Optional[int] = None,
    ) -> KeywordResultSet:
        request = ScrapeRequest.create(keyword, platform, tab=tab, min_volume=min_volume, max_volume=max_volume)
        return self.run(request)

    def run(self, request: ScrapeRequest) -> KeywordResultSet:
        if not self.accounts:
            raise NoAccountsConfiguredError(
                "No keywordtool.io accounts configured. Set KEYWORDTOOL_EMAIL_1 / KEYWORDTOOL_PASSWORD_1 in .env."
            )

        cache_key = request.cache_key()
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        ordered = order_accounts(self.accounts, self.session_store)
        failures: list[AttemptFailure] = []

        for idx, account in enumerate(ordered, start=1):
            logger.info("Trying account %d/%d: %s", idx, len(ordered), account.email)
            t0 = time.time()
            try:
                result = self.attempt(account, request)
            except Exception as e:
                failure = _failure_from(account, e)
                if isinstance(e, AccountError):
                    logger.error("Account %s failed (%s): %s", account.email, failure.kind.value, failure.reason)
                else:
                    logger.error("Account %s failed unexpectedly: %s", account.email, failure.reason, exc_info=True)
                self.session_store.delete(account)
                failures.append(failure)
                continue

            logger.info(
                "Succeeded with account %s (keywords=%d seconds=%.2f)",
                account.email,
                result.filtered_count,
                time.time() - t0,
            )
            if self.cache is not None:
                self.cache.set(cache_key, result)
            return result

        raise AllAccountsExhaustedError(failures)
