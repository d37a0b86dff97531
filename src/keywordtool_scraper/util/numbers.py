from __future__ import annotations

import re


_LEADING_INT_RE = re.compile(r"^[+-]?\d+")


def parse_grouped_int(text: str) -> int:
    """
    Parse values like "1,234", "12 100" or "1,000,000" into an int.

    Thousands separators and whitespace are stripped; anything that does not start with digits yields 0.
    """
    s = re.sub(r"[,\s]", "", text or "")
    m = _LEADING_INT_RE.match(s)
    if not m:
        return 0
    return max(0, int(m.group(0)))
