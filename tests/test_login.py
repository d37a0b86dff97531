from __future__ import annotations

from pathlib import Path

import pytest
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from keywordtool_scraper.errors import (
    AccountChallengeError,
    AccountExtractionError,
    AccountRejectedError,
    LoginFormError,
)
from keywordtool_scraper.portal.login import (
    LoginOutcome,
    LoginState,
    LoginStateMachine,
    classify_submission,
    find_challenge_signal,
)
from keywordtool_scraper.portal.selectors import KeywordToolSelectors

from fakes import FakePage, make_session


SEL = KeywordToolSelectors()
LOGIN_URL = "https://keywordtool.io/user/login"
PLATFORM_URL = "https://keywordtool.io/google"


def _machine(tmp_path) -> LoginStateMachine:
    return LoginStateMachine(debug_dir=str(tmp_path / "debug"), delay_scale=0)


@pytest.mark.parametrize(
    "url,body",
    [
        ("https://keywordtool.io/user/otp", ""),
        ("https://keywordtool.io/user/verify?x=1", ""),
        ("https://keywordtool.io/captcha", ""),
        ("https://keywordtool.io/two-factor", ""),
        ("https://keywordtool.io/dashboard", "Enter the One-Time Password we sent you"),
        ("https://keywordtool.io/dashboard", "Your OTP has been sent"),
        ("https://keywordtool.io/dashboard", "Please enter the verification code"),
        ("https://keywordtool.io/dashboard", "Verify your email address"),
        ("https://keywordtool.io/user/login", "Too many login attempts"),
        ("https://keywordtool.io/user/login", "Rate limit exceeded"),
        ("https://keywordtool.io/dashboard", "Please solve the CAPTCHA"),
    ],
)
def test_challenge_signals_win(url: str, body: str) -> None:
    assert find_challenge_signal(url, body) is not None
    assert classify_submission(url=url, body_text=body, navigated=True) == LoginState.CHALLENGED
    assert classify_submission(url=url, body_text=body, navigated=False) == LoginState.CHALLENGED


def test_otp_must_be_a_word() -> None:
    assert find_challenge_signal("https://keywordtool.io/google", "Hotpot recipes") is None


def test_still_on_login_page_is_rejected() -> None:
    assert classify_submission(url=LOGIN_URL, body_text="Invalid email", navigated=True) == LoginState.REJECTED
    assert classify_submission(url=PLATFORM_URL, body_text="", navigated=False) == LoginState.REJECTED


def test_navigated_away_is_authenticated() -> None:
    assert classify_submission(url=PLATFORM_URL, body_text="Welcome back", navigated=True) == LoginState.AUTHENTICATED


def test_outcome_errors_by_state() -> None:
    assert isinstance(LoginOutcome(LoginState.CHALLENGED, "otp").to_error("a"), AccountChallengeError)
    assert isinstance(LoginOutcome(LoginState.REJECTED, "").to_error("a"), AccountRejectedError)
    assert isinstance(LoginOutcome(LoginState.TIMED_OUT, "slow").to_error("a"), AccountExtractionError)
    assert LoginOutcome(LoginState.AUTHENTICATED).to_error("a") is None
    assert LoginOutcome(LoginState.ALREADY_AUTHENTICATED).authenticated


def test_already_authenticated_never_submits_credentials(tmp_path, make_account) -> None:
    page = FakePage(url=PLATFORM_URL, visible=(".avatar",))
    machine = _machine(tmp_path)

    outcome = machine.run(make_session(page), make_account(1))

    assert outcome.state == LoginState.ALREADY_AUTHENTICATED
    assert page.fills == []
    assert LOGIN_URL not in page.visits
    assert machine.history == [LoginState.UNKNOWN, LoginState.CHECKING_AUTH_STATE, LoginState.ALREADY_AUTHENTICATED]


def test_missing_login_link_alone_is_not_proof_of_login(tmp_path, make_account) -> None:
    # Neither the login link nor any signed-in element: inconclusive -> log in again.
    page = FakePage(url=PLATFORM_URL, navigate_on_click={SEL.login_submit: PLATFORM_URL})
    machine = _machine(tmp_path)

    assert machine.check_auth_state(page) is False
    outcome = machine.run(make_session(page), make_account(1))

    assert outcome.state == LoginState.AUTHENTICATED
    assert LoginState.SUBMITTING_CREDENTIALS in machine.history


def test_login_link_visible_means_logged_out_even_with_avatar(tmp_path) -> None:
    page = FakePage(visible=(SEL.login_link, ".avatar"))
    assert _machine(tmp_path).check_auth_state(page) is False


def test_successful_login_does_not_persist_the_session(tmp_path, make_account) -> None:
    account = make_account(1)
    page = FakePage(
        url=PLATFORM_URL,
        visible=(SEL.login_link,),
        navigate_on_click={SEL.login_submit: PLATFORM_URL},
        user_agent="SavedUA/2.0",
    )

    outcome = _machine(tmp_path).run(make_session(page), account)

    assert outcome.state == LoginState.AUTHENTICATED
    assert page.visits == [LOGIN_URL]
    assert ("fill", SEL.email_input, account.email) in page.fills
    assert ("fill", SEL.password_input, account.password) in page.fills
    # persisting is left to the caller once the scraped rows prove the session is useful
    assert not Path(account.session_file).exists()


def test_rejected_login_carries_inline_error(tmp_path, make_account) -> None:
    page = FakePage(
        url=LOGIN_URL,
        visible=(SEL.login_link,),
        texts={SEL.login_error: "  These credentials do not match\n our records. "},
    )

    outcome = _machine(tmp_path).run(make_session(page), make_account(1))

    assert outcome.state == LoginState.REJECTED
    assert outcome.message == "These credentials do not match our records."
    assert page.visits == []  # already on the login page


def test_challenge_after_submit(tmp_path, make_account) -> None:
    page = FakePage(
        url=PLATFORM_URL,
        visible=(SEL.login_link,),
        navigate_on_click={SEL.login_submit: "https://keywordtool.io/user/verify"},
    )

    outcome = _machine(tmp_path).run(make_session(page), make_account(1))

    assert outcome.state == LoginState.CHALLENGED
    assert "/verify" in outcome.message


def test_login_page_timeout_is_timed_out(tmp_path, make_account) -> None:
    page = FakePage(
        url=PLATFORM_URL,
        visible=(SEL.login_link,),
        goto_errors={LOGIN_URL: PlaywrightTimeoutError("goto timed out")},
    )
    outcome = _machine(tmp_path).run(make_session(page), make_account(1))
    assert outcome.state == LoginState.TIMED_OUT
    assert page.fills == []


def test_fill_failure_saves_snapshot_and_raises(tmp_path, make_account) -> None:
    page = FakePage(
        url=LOGIN_URL,
        visible=(SEL.login_link,),
        fail_on={SEL.email_input: RuntimeError("element not found")},
    )

    with pytest.raises(LoginFormError) as excinfo:
        _machine(tmp_path).run(make_session(page), make_account(1))

    assert "element not found" in str(excinfo.value)
    assert len(page.screenshots) == 1
    assert (tmp_path / "debug").is_dir()
