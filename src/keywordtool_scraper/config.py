from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, field_validator


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
MAX_ENV_ACCOUNTS = 9

DEFAULT_USER_AGENTS: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.5; rv:133.0) Gecko/20100101 Firefox/133.0",
)


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def default_session_file(index: int, session_dir: str = "data/sessions") -> str:
    return str(Path(session_dir) / f"kt-cookies-{index}.json")


def _accounts_from_env() -> list[dict]:
    """
    Collect KEYWORDTOOL_EMAIL_N / KEYWORDTOOL_PASSWORD_N pairs in order.

    Incomplete pairs are skipped, so leaving account 2 blank still lets account 3 be used.
    """
    session_dir = os.getenv("SESSION_DIR", "data/sessions")
    accounts: list[dict] = []
    for i in range(1, MAX_ENV_ACCOUNTS + 1):
        email = (os.getenv(f"KEYWORDTOOL_EMAIL_{i}", "") or "").strip()
        password = os.getenv(f"KEYWORDTOOL_PASSWORD_{i}", "") or ""
        if not email or not password:
            continue
        accounts.append(
            {
                "email": email,
                "password": password,
                "session_file": os.getenv(f"KEYWORDTOOL_SESSION_FILE_{i}", "") or default_session_file(i, session_dir),
            }
        )
    return accounts


def _default_config_from_env() -> dict:
    """
    Env-only config so most users only need `.env`; YAML remains an optional override.
    """
    return {
        "accounts": _accounts_from_env(),
        "browser": {
            "headless": _env_bool("HEADLESS", default=True),
            "request_timeout_ms": _env_int("REQUEST_TIMEOUT_MS", 30_000),
            "slow_mo_ms": _env_int("SLOW_MO_MS", 0),
            "delay_scale": float(os.getenv("DELAY_SCALE", "1.0") or 1.0),
            "language": os.getenv("SEARCH_LANGUAGE", "Indonesian"),
            "locale": os.getenv("SEARCH_LOCALE", "id-ID"),
            "debug_dir": os.getenv("DEBUG_DIR", "data/debug"),
        },
        "scrape": {
            "guest_fallback": _env_bool("GUEST_FALLBACK", default=True),
            "cache_ttl_minutes": _env_int("CACHE_TTL_MINUTES", 10),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", "data/scraper.log"),
        },
    }


class AccountConfig(BaseModel):
    """
    One keywordtool.io login. `session_file` is where this account's cookies + user agent live.
    """

    model_config = {"frozen": True}

    email: str
    password: str = Field(repr=False)
    session_file: str = ""

    @field_validator("email")
    @classmethod
    def _email_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("account email is required")
        return v


class BrowserConfig(BaseModel):
    headless: bool = True
    request_timeout_ms: int = 30_000
    slow_mo_ms: int = 0
    # Multiplier for the randomized human-like pauses (0 disables them, useful when debugging).
    delay_scale: float = 1.0
    language: str = "Indonesian"
    locale: str = "id-ID"
    user_agents: list[str] = Field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    debug_dir: str = "data/debug"

    @field_validator("request_timeout_ms")
    @classmethod
    def _positive_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("browser.request_timeout_ms must be > 0")
        return v

    @property
    def accept_language(self) -> str:
        lang = (self.locale or "").split("-", 1)[0]
        if not lang or lang == "en":
            return "en-US,en;q=0.9"
        return f"{self.locale},{lang};q=0.9,en;q=0.8"


class ScrapeConfig(BaseModel):
    # Scrape as guest (blurred data) when login is rejected/challenged, instead of failing the account.
    guest_fallback: bool = True
    cache_ttl_minutes: int = 10


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = "data/scraper.log"


class AppConfig(BaseModel):
    accounts: list[AccountConfig] = Field(default_factory=list)
    browser: BrowserConfig = BrowserConfig()
    scrape: ScrapeConfig = ScrapeConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("accounts", mode="before")
    @classmethod
    def _fill_session_files(cls, value: object) -> object:
        if not isinstance(value, list):
            return value
        out = []
        for idx, item in enumerate(value, start=1):
            if isinstance(item, dict) and not item.get("session_file"):
                item = {**item, "session_file": default_session_file(idx, os.getenv("SESSION_DIR", "data/sessions"))}
            out.append(item)
        return out


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
