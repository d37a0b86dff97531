from .client import KeywordToolClient
from .login import LoginOutcome, LoginState, LoginStateMachine
from .selectors import KeywordToolSelectors

__all__ = [
    "KeywordToolClient",
    "KeywordToolSelectors",
    "LoginOutcome",
    "LoginState",
    "LoginStateMachine",
]
