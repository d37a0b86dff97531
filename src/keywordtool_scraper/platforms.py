from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


BASE_URL = "https://keywordtool.io"
LOGIN_PATH = "/user/login"


@dataclass(frozen=True)
class PlatformInfo:
    slug: str
    display_name: str
    url: str

    @property
    def route_token(self) -> str:
        # google-trends pages live under /google-trends, the rest under /{slug}
        return "google-trends" if self.slug == "google-trends" else f"/{self.slug}"

    def is_current(self, url: str) -> bool:
        return self.route_token in (url or "")


KNOWN_PLATFORMS: Mapping[str, PlatformInfo] = {
    "google": PlatformInfo(slug="google", display_name="Google", url=f"{BASE_URL}/google"),
    "youtube": PlatformInfo(slug="youtube", display_name="YouTube", url=f"{BASE_URL}/youtube"),
    "instagram": PlatformInfo(slug="instagram", display_name="Instagram", url=f"{BASE_URL}/instagram"),
    "tiktok": PlatformInfo(slug="tiktok", display_name="TikTok", url=f"{BASE_URL}/tiktok"),
    "google-trends": PlatformInfo(slug="google-trends", display_name="Google Trends", url=f"{BASE_URL}/google-trends"),
}

# Result tabs shown above the keyword table, keyed by the value callers pass.
RESULT_TABS: Mapping[str, str] = {
    "suggestions": "Keyword Suggestions",
    "questions": "Questions",
    "prepositions": "Prepositions",
    "related": "Related Keywords",
}

DEFAULT_TAB = "suggestions"


def is_known_platform(platform: str) -> bool:
    return (platform or "").strip().lower() in KNOWN_PLATFORMS


def get_platform(platform: str) -> PlatformInfo:
    return KNOWN_PLATFORMS[(platform or "").strip().lower()]
