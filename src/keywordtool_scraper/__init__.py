from .errors import (
    AccountChallengeError,
    AccountExtractionError,
    AccountRejectedError,
    AllAccountsExhaustedError,
    ErrorKind,
    InvalidInputError,
    KeywordScraperError,
    NoAccountsConfiguredError,
    http_status_for,
)
from .models import KeywordRecord, KeywordResultSet, SessionRecord, VolumeFilter
from .orchestrator import AccountOrchestrator
from .session_store import SessionStore

__all__ = [
    "AccountChallengeError",
    "AccountExtractionError",
    "AccountOrchestrator",
    "AccountRejectedError",
    "AllAccountsExhaustedError",
    "ErrorKind",
    "InvalidInputError",
    "KeywordRecord",
    "KeywordResultSet",
    "KeywordScraperError",
    "NoAccountsConfiguredError",
    "SessionRecord",
    "SessionStore",
    "VolumeFilter",
    "http_status_for",
]
