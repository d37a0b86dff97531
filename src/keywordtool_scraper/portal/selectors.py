from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KeywordToolSelectors:
    """
    keywordtool.io is a moving target; keep every UI selector/text hook here for easy maintenance.
    """

    # Auth state
    login_link: str = 'a[href="/user/login"]'
    # Only rendered for signed-in users (avatar / account menu).
    authenticated_only: tuple[str, ...] = (".user-account", ".avatar", "text=My Account")

    # Login form
    email_input: str = "input#email"
    password_input: str = "input#password"
    login_submit: str = 'button[type="submit"]'
    login_error: str = ".alert-danger, .alert-error, .text-error, .text-red-500"

    # Overlays that can intercept clicks (cookie consent, promo modals).
    overlay_dismiss: tuple[str, ...] = (
        "#onetrust-accept-btn-handler",
        'button:has-text("Accept")',
        ".modal.show button.close",
        '.modal.show [data-dismiss="modal"]',
        '.modal.show [data-bs-dismiss="modal"]',
    )

    # Language picker (tom-select widget next to the search box)
    language_wrapper: str = ".ts-wrapper"
    language_control: str = ".ts-control"
    language_input: str = "input.dropdown-input"
    language_option: str = ".ts-dropdown .option"

    # Search
    keyword_input: str = 'input[id*="keyword"]'
    search_button: str = "form button.btn.btn-primary, button.btn.btn-primary"
    results_route_token: str = "/search/"

    # Results
    result_tab_link: str = "a.nav-link"
    table_rows: str = "table tbody tr"
