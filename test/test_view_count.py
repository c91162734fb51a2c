"""
Tests for view count display and sanity helpers
"""

import pytest

from viewguard.config import BIGINT_MAX
from viewguard.utils.view_count import format_view_count, is_safe_view_count, sanitize_view_count


class TestFormatViewCount:
    @pytest.mark.parametrize(
        ("count", "expected"),
        [
            (0, "0"),
            (999, "999"),
            (1000, "1.0K"),
            (1500, "1.5K"),
            (999_999, "1000.0K"),
            (1_000_000, "1.0M"),
            (2_500_000, "2.5M"),
        ],
    )
    def test_format(self, count, expected):
        assert format_view_count(count) == expected

    def test_negative_and_garbage_display_as_zero(self):
        assert format_view_count(-5) == "0"
        assert format_view_count(None) == "0"
        assert format_view_count("12") == "0"


class TestSanitizeViewCount:
    def test_passes_valid_counts(self):
        assert sanitize_view_count(42) == 42

    def test_clamps_range(self):
        assert sanitize_view_count(-1) == 0
        assert sanitize_view_count(BIGINT_MAX + 10) == BIGINT_MAX
        assert sanitize_view_count(500, ceiling=100) == 100

    def test_rejects_non_numbers(self):
        assert sanitize_view_count(float("nan")) == 0
        assert sanitize_view_count(True) == 0
        assert sanitize_view_count("7") == 0

    def test_truncates_fractions(self):
        assert sanitize_view_count(7.9) == 7

    def test_is_safe_view_count(self):
        assert is_safe_view_count(0) is True
        assert is_safe_view_count(BIGINT_MAX) is True
        assert is_safe_view_count(-1) is False
        assert is_safe_view_count(BIGINT_MAX + 1) is False
        assert is_safe_view_count(3.0) is False
