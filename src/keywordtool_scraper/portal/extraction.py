from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..models import PLACEHOLDER, KeywordRecord
from ..util.delays import human_pause
from ..util.numbers import parse_grouped_int
from .selectors import KeywordToolSelectors


logger = logging.getLogger(__name__)

TABLE_WAIT_ATTEMPTS = 3

_TOTAL_VOLUME_RE = re.compile(r"Total Search Volume[^0-9]*(\d[\d,]*)")
_AVERAGE_TREND_RE = re.compile(r"Average Trend[^+-]*([+-][\d,.]+%)")

# Runs in the page: describe every row/cell without interpreting it, so parsing stays testable in Python.
_READ_ROWS_JS = """
(selector) => Array.from(document.querySelectorAll(selector)).map((row) => ({
  spanning: row.querySelector('td[colspan]') !== null,
  cells: Array.from(row.querySelectorAll('td')).map((td) => ({
    text: (td.textContent || '').trim(),
    classes: Array.from(td.classList || []),
    html: td.innerHTML || '',
    has_blur_child: td.querySelector('.blur') !== null,
  })),
}))
"""


@dataclass(frozen=True)
class PageTotals:
    total_search_volume: int = 0
    average_trend: str = PLACEHOLDER


def is_redacted(cell: Optional[dict]) -> bool:
    """
    A cell is blurred when it carries the `blur` class, mentions blur in its markup, or wraps a `.blur` node.
    """
    if not cell:
        return False
    if "blur" in (cell.get("classes") or []):
        return True
    if "blur" in (cell.get("html") or ""):
        return True
    return bool(cell.get("has_blur_child"))


def parse_volume(text: str) -> int:
    if not text or text.strip() == PLACEHOLDER:
        return 0
    return parse_grouped_int(text)


def _cell_value(cell: Optional[dict]) -> tuple[str, bool]:
    if cell is None:
        return PLACEHOLDER, False
    if is_redacted(cell):
        return PLACEHOLDER, True
    return (cell.get("text") or "").strip() or PLACEHOLDER, False


def parse_rows(raw_rows: list[dict]) -> list[KeywordRecord]:
    """
    Turn the row descriptors read from the results table into records.

    Column layout: [index/checkbox, keyword, search volume, trend, ...]. Blurred rows are kept with
    `is_data_available=False`; only the volume cell decides availability.
    """
    records: list[KeywordRecord] = []
    for row in raw_rows or []:
        if row.get("spanning"):
            continue
        cells = row.get("cells") or []
        if len(cells) < 3:
            continue

        keyword = (cells[1].get("text") or "").strip()
        if not keyword:
            continue

        volume_text, volume_redacted = _cell_value(cells[2])
        trend_text, _ = _cell_value(cells[3] if len(cells) > 3 else None)

        records.append(
            KeywordRecord(
                keyword=keyword,
                search_volume=0 if volume_redacted else parse_volume(volume_text),
                search_volume_display=volume_text,
                trend=trend_text,
                is_data_available=not volume_redacted,
            )
        )
    return records


def is_degraded(records: list[KeywordRecord]) -> bool:
    """
    True when nothing proves the session sees real data (every row blurred, or no rows at all).
    """
    return not any(r.is_data_available for r in records)


def parse_page_totals(body_text: str) -> PageTotals:
    text = body_text or ""
    total = 0
    trend = PLACEHOLDER
    m = _TOTAL_VOLUME_RE.search(text)
    if m:
        total = parse_grouped_int(m.group(1))
    m = _AVERAGE_TREND_RE.search(text)
    if m:
        trend = m.group(1)
    return PageTotals(total_search_volume=total, average_trend=trend)


def read_page_totals(page: Any) -> PageTotals:
    try:
        body = page.text_content("body") or ""
    except Exception:
        logger.debug("Could not read body text for totals.", exc_info=True)
        return PageTotals()
    return parse_page_totals(body)


def wait_for_table_rows(
    page: Any,
    *,
    selectors: Optional[KeywordToolSelectors] = None,
    attempts: int = TABLE_WAIT_ATTEMPTS,
    delay_ms: tuple[int, int] = (5_000, 8_000),
    delay_scale: float = 1.0,
) -> int:
    sel = selectors or KeywordToolSelectors()
    for attempt in range(1, attempts + 1):
        try:
            count = int(page.locator(sel.table_rows).count())
        except Exception:
            count = 0
        if count > 0:
            logger.info("Results table found: %d rows (attempt %d)", count, attempt)
            return count
        logger.info("Results table not found (attempt %d/%d)", attempt, attempts)
        if attempt < attempts:
            human_pause(page, delay_ms[0], delay_ms[1], scale=delay_scale)
    return 0


def extract_keywords(
    page: Any,
    *,
    selectors: Optional[KeywordToolSelectors] = None,
    delay_scale: float = 1.0,
) -> list[KeywordRecord]:
    """
    Wait for the results table and read every row.

    A table that never shows up yields an empty list rather than an error: the site renders the same
    empty shell for "no suggestions" and for a page that failed to load, and we cannot tell them apart.
    """
    sel = selectors or KeywordToolSelectors()
    if wait_for_table_rows(page, selectors=sel, delay_scale=delay_scale) == 0:
        logger.warning("No result rows found; returning an empty keyword list.")
        return []

    human_pause(page, 1500, 2500, scale=delay_scale)
    raw_rows = page.evaluate(_READ_ROWS_JS, sel.table_rows) or []
    records = parse_rows(raw_rows)
    logger.info("Extracted %d keywords (%d with data)", len(records), sum(r.is_data_available for r in records))
    return records
