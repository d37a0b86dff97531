from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, model_validator

from .errors import ErrorKind, InvalidInputError
from .platforms import DEFAULT_TAB, RESULT_TABS, is_known_platform, KNOWN_PLATFORMS


PLACEHOLDER = "-"


class SessionRecord(BaseModel):
    # Older session files were written with a camelCase "userAgent" key.
    model_config = ConfigDict(populate_by_name=True)

    cookies: list[dict[str, Any]] = Field(default_factory=list)
    user_agent: str = Field(default="", validation_alias=AliasChoices("user_agent", "userAgent"))


class KeywordRecord(BaseModel):
    keyword: str
    search_volume: int = Field(default=0, ge=0)
    search_volume_display: str = PLACEHOLDER
    trend: str = PLACEHOLDER
    is_data_available: bool = True

    @model_validator(mode="after")
    def _redacted_rows_have_no_volume(self) -> "KeywordRecord":
        if not self.is_data_available:
            self.search_volume = 0
            self.search_volume_display = PLACEHOLDER
        return self


class VolumeFilter(BaseModel):
    min_volume: int = 0
    # None means "unlimited"
    max_volume: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_unlimited(cls, data: object) -> object:
        if isinstance(data, dict):
            raw = data.get("max_volume")
            if isinstance(raw, str) and raw.strip().lower() in {"", "unlimited", "inf", "infinity"}:
                data = {**data, "max_volume": None}
        return data

    @model_validator(mode="after")
    def _validate_bounds(self) -> "VolumeFilter":
        if self.min_volume < 0:
            raise ValueError("min_volume must be >= 0")
        if self.max_volume is not None and self.max_volume < self.min_volume:
            raise ValueError("max_volume must be >= min_volume (or unlimited)")
        return self

    @field_serializer("max_volume")
    def _serialize_max(self, value: Optional[int]) -> Union[int, str]:
        return "unlimited" if value is None else value

    def contains(self, volume: int) -> bool:
        if volume < self.min_volume:
            return False
        return self.max_volume is None or volume <= self.max_volume

    def apply(self, records: list[KeywordRecord]) -> list[KeywordRecord]:
        return [r for r in records if self.contains(r.search_volume)]


class KeywordResultSet(BaseModel):
    account: str
    total_keywords_found: int = 0
    total_search_volume: int = 0
    average_trend: str = PLACEHOLDER
    filter: VolumeFilter = Field(default_factory=VolumeFilter)
    filtered_count: int = 0
    keywords: list[KeywordRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _keywords_match_filter(self) -> "KeywordResultSet":
        outside = [k.keyword for k in self.keywords if not self.filter.contains(k.search_volume)]
        if outside:
            raise ValueError(f"keywords outside the volume filter: {outside[:5]}")
        if self.filtered_count != len(self.keywords):
            raise ValueError("filtered_count must equal the number of returned keywords")
        return self

    @classmethod
    def build(
        cls,
        *,
        account: str,
        records: list[KeywordRecord],
        volume_filter: VolumeFilter,
        total_search_volume: int = 0,
        average_trend: str = PLACEHOLDER,
    ) -> "KeywordResultSet":
        kept = volume_filter.apply(records)
        return cls(
            account=account,
            total_keywords_found=len(records),
            total_search_volume=total_search_volume,
            average_trend=average_trend,
            filter=volume_filter,
            filtered_count=len(kept),
            keywords=kept,
        )


class AttemptFailure(BaseModel):
    account: str
    kind: ErrorKind
    reason: str


class ScrapeRequest(BaseModel):
    keyword: str
    platform: str = "google"
    tab: str = DEFAULT_TAB
    filter: VolumeFilter = Field(default_factory=VolumeFilter)

    @classmethod
    def create(
        cls,
        keyword: str,
        platform: str,
        tab: Optional[str] = None,
        min_volume: int = 0,
        max_volume: Optional[int] = None,
    ) -> "ScrapeRequest":
        """
        Validate caller input and raise `InvalidInputError` (never a pydantic error) on bad values.
        """
        kw = (keyword or "").strip()
        if not kw:
            raise InvalidInputError("Missing required parameter: keyword")

        plat = (platform or "").strip().lower()
        if not is_known_platform(plat):
            raise InvalidInputError(
                f"Invalid platform: {platform!r}",
                details={"valid_platforms": ", ".join(KNOWN_PLATFORMS)},
            )

        tab_key = (tab or DEFAULT_TAB).strip().lower()
        if tab_key not in RESULT_TABS:
            raise InvalidInputError(
                f"Invalid tab: {tab!r}",
                details={"valid_tabs": ", ".join(RESULT_TABS)},
            )

        try:
            volume_filter = VolumeFilter(min_volume=int(min_volume or 0), max_volume=max_volume)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid volume filter: {e}") from e

        return cls(keyword=kw, platform=plat, tab=tab_key, filter=volume_filter)

    def cache_key(self) -> str:
        max_part = "" if self.filter.max_volume is None else str(self.filter.max_volume)
        return "|".join(
            [self.keyword.lower(), self.platform, self.tab, str(self.filter.min_volume), max_part]
        )
