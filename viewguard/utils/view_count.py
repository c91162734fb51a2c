"""Display and sanity helpers for view counts."""

import math

from viewguard.config import BIGINT_MAX


def sanitize_view_count(count, ceiling: int = BIGINT_MAX) -> int:
    """
    Coerce ``count`` into a displayable view count.

    Non-numbers and NaN become 0, negatives become 0, values above
    ``ceiling`` become ``ceiling`` and fractions are truncated.
    """
    if isinstance(count, bool) or not isinstance(count, (int, float)):
        return 0
    if isinstance(count, float) and math.isnan(count):
        return 0
    if count < 0:
        return 0
    if count > ceiling:
        return ceiling
    return int(count)


def is_safe_view_count(count, ceiling: int = BIGINT_MAX) -> bool:
    return isinstance(count, int) and not isinstance(count, bool) and 0 <= count <= ceiling


def format_view_count(count) -> str:
    """
    Abbreviate a view count for display.

    >>> format_view_count(999)
    '999'
    >>> format_view_count(1500)
    '1.5K'
    >>> format_view_count(2_500_000)
    '2.5M'
    """
    value = sanitize_view_count(count)
    if value >= 1_000_000:
        return f"{value / 1e6:.1f}M"
    if value >= 1000:
        return f"{value / 1000:.1f}K"
    return str(value)
