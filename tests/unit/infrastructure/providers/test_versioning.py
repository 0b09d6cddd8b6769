"""Tests for provider version ordering and compatibility ranges."""

import pytest

from tunedock.infrastructure.providers.versioning import (
    ZERO_VERSION,
    is_newer,
    parse_version,
    satisfies,
    to_specifier,
)


class TestVersionOrdering:
    """Test semantic ordering of provider versions."""

    def test_garbage_sorts_as_zero(self) -> None:
        assert parse_version("not-a-version") == ZERO_VERSION
        assert parse_version(None) == ZERO_VERSION
        assert parse_version("") == ZERO_VERSION

    def test_leading_v_is_accepted(self) -> None:
        assert parse_version("v1.2.3") == parse_version("1.2.3")

    def test_numeric_not_lexicographic(self) -> None:
        assert is_newer("1.10.0", "1.9.9")
        assert not is_newer("1.2.0", "1.10.0")

    def test_equal_is_not_newer(self) -> None:
        assert not is_newer("3.0.0", "3.0.0")
        assert not is_newer("3.0", "3.0.0")


class TestCompatibilityRanges:
    """Test app_version range checks."""

    @pytest.mark.parametrize(
        ("version", "range_text", "expected"),
        [
            ("1.2.3", "^1.0.0", True),
            ("2.0.0", "^1.0.0", False),
            ("0.2.5", "^0.2.1", True),
            ("0.3.0", "^0.2.1", False),
            ("1.2.9", "~1.2", True),
            ("1.3.0", "~1.2", False),
            ("1.5.0", ">=1.0.0 <2.0.0", True),
            ("2.0.0", ">=1.0.0 <2.0.0", False),
            ("1.5.0", ">= 1.0.0", True),
            ("1.5.0", ">=1.0,<2", True),
            ("1.4.7", "1.x", True),
            ("1.2.3", "1.2.3", True),
            ("1.2.4", "1.2.3", False),
            ("9.9.9", "*", True),
        ],
    )
    def test_satisfies(self, version: str, range_text: str, expected: bool) -> None:
        assert satisfies(version, range_text) is expected

    def test_no_range_is_always_compatible(self) -> None:
        assert satisfies("1.0.0", None)
        assert satisfies("1.0.0", "   ")

    def test_unparseable_range_is_incompatible(self) -> None:
        assert not satisfies("1.0.0", "definitely not a range")

    def test_alternatives_match_any(self) -> None:
        assert satisfies("1.4.0", "^0.9.0 || ^1.2.0")
        assert not satisfies("3.0.0", "^0.9.0 || ^1.2.0")

    def test_caret_translation(self) -> None:
        assert str(to_specifier("^1.2.3")) == "<2.0.0,>=1.2.3"
