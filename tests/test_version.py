"""Tests for dotted version comparison."""

from __future__ import annotations

import pytest

from lgpm.packages.version import compare_versions, is_newer_or_equal


class TestCompareVersions:
    """Tests for compare_versions()."""

    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("1.2.3", "1.2.3", 0),
            ("1.2.4", "1.2.3", 1),
            ("1.2.3", "1.3.0", -1),
            ("2.0", "1.99.99", 1),
            ("1.10.0", "1.9.0", 1),
        ],
    )
    def test_numeric_ordering(self, a, b, expected):
        """Segments compare as integers, left to right."""
        assert compare_versions(a, b) == expected

    def test_missing_segments_are_zero(self):
        """1.2 equals 1.2.0 in both directions."""
        assert compare_versions("1.2", "1.2.0") == 0
        assert compare_versions("1.2.0", "1.2") == 0
        assert compare_versions("1.2", "1.2.1") == -1

    def test_non_numeric_segment_is_zero(self):
        """Malformed segments never raise; they count as 0."""
        assert compare_versions("1.x.3", "1.0.3") == 0
        assert compare_versions("1.beta", "1.1") == -1

    def test_leading_v_is_not_special(self):
        """'v1.0' parses its first segment as 0."""
        assert compare_versions("v1.0", "0.0") == 0
        assert compare_versions("v2.0", "1.0") == -1

    def test_empty_strings(self):
        assert compare_versions("", "") == 0
        assert compare_versions("", "0.0.1") == -1

    def test_antisymmetric(self):
        pairs = [("1.0", "1.0.1"), ("3.2.1", "3.10"), ("0.9", "0.9.0")]
        for a, b in pairs:
            assert compare_versions(a, b) == -compare_versions(b, a)


class TestIsNewerOrEqual:
    """Tests for the skip-check helper."""

    def test_equal_counts_as_not_older(self):
        assert is_newer_or_equal("1.0.0", "1.0")

    def test_installed_newer(self):
        assert is_newer_or_equal("2.0.0", "1.5.0")

    def test_installed_older(self):
        assert not is_newer_or_equal("1.0.0", "1.0.1")
