"""
Unit tests for ApiVersion.

Tests cover:
- Parsing of strings, tuples and versions
- Ordering and equality across notations
- Malformed input
"""

import pytest

from couch_db import ApiVersion, UsageError
from couch_db.version import parse_version


class TestApiVersionParse:
    """Tests for ApiVersion.parse()."""

    def test_full_version(self):
        """Parses major.minor.patch."""
        version = ApiVersion.parse("3.3.3")

        assert (version.major, version.minor, version.patch) == (3, 3, 3)

    def test_patch_defaults_to_zero(self):
        """The patch level is optional."""
        assert ApiVersion.parse("2.4") == ApiVersion(2, 4, 0)
        assert ApiVersion.parse("2.4") == ApiVersion.parse("2.4.0")

    def test_suffix_ignored(self):
        """Release suffixes do not matter."""
        assert ApiVersion.parse("3.1.0-rc1") == ApiVersion(3, 1, 0)
        assert ApiVersion.parse("v2.3") == ApiVersion(2, 3)

    def test_tuple(self):
        """Tuples parse into versions."""
        assert ApiVersion.parse((1, 6)) == ApiVersion(1, 6, 0)

    def test_version_passes_through(self):
        """A version is returned unchanged."""
        version = ApiVersion(3, 0)
        assert ApiVersion.parse(version) is version

    @pytest.mark.parametrize("value", ["", "three", "3", "a.b"])
    def test_malformed(self, value):
        """Malformed versions raise UsageError."""
        with pytest.raises(UsageError, match="Malformed version"):
            ApiVersion.parse(value)

    @pytest.mark.parametrize("value", [(1,), (1, 2, 3, 4), ()])
    def test_malformed_tuple(self, value):
        """Tuples need two or three parts."""
        with pytest.raises(UsageError, match="Malformed version"):
            ApiVersion.parse(value)

    def test_str(self):
        """Versions print with all three parts."""
        assert str(ApiVersion.parse("2.4")) == "2.4.0"


class TestApiVersionOrdering:
    """Tests for comparisons between versions."""

    def test_numeric_ordering(self):
        """Parts compare as numbers, not text."""
        assert ApiVersion.parse("2.10") > ApiVersion.parse("2.9")
        assert ApiVersion.parse("1.0") < ApiVersion.parse("2.4")

    def test_sorting(self):
        versions = [ApiVersion.parse(v) for v in ("3.0", "2.4.1", "2.4", "1.6.1")]

        assert [str(v) for v in sorted(versions)] == ["1.6.1", "2.4.0", "2.4.1", "3.0.0"]

    def test_hashable(self):
        """Equal versions are equal keys."""
        assert {ApiVersion.parse("2.4"): "x"}[ApiVersion(2, 4, 0)] == "x"


def test_parse_version_optional():
    """Empty values stay None."""
    assert parse_version(None) is None
    assert parse_version("") is None
    assert parse_version("2.0") == ApiVersion(2, 0)
