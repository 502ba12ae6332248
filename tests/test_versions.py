"""Tests for version pattern matching and override lookup."""

from __future__ import annotations

import pytest

from ecobuild.dsl import ignore, override
from ecobuild.versions import compare_versions, find_version_config, major_minor, matches_version


# ---------------------------------------------------------------------------
# major.minor parsing
# ---------------------------------------------------------------------------


class TestMajorMinor:
    @pytest.mark.parametrize(
        "version, expected",
        [
            ("24.6.0", (24, 6)),
            ("25.0-SNAPSHOT", (25, 0)),
            ("25.1.0.beta1", (25, 1)),
            ("26", (26, 0)),
            ("25.0.0-rc1", (25, 0)),
        ],
    )
    def test_parses(self, version, expected):
        assert major_minor(version) == expected

    def test_compare_ignores_patch(self):
        assert compare_versions("24.6.9", "24.6.0") == 0
        assert compare_versions("24.5.0", "24.6.0") < 0
        assert compare_versions("25.0.0", "24.9.9") > 0


# ---------------------------------------------------------------------------
# Pattern matching
# ---------------------------------------------------------------------------


class TestMatchesVersion:
    def test_wildcard_prefix(self):
        assert matches_version("24.*", "24.6.0")
        assert matches_version("24.*", "24.0-SNAPSHOT")
        assert not matches_version("24.*", "25.0.0")

    def test_greater_or_equal(self):
        assert matches_version(">=24.1", "24.6.0")
        assert matches_version(">=24.1", "25.0.0")
        assert not matches_version(">=24.1", "24.0.5")

    def test_exact_only_matches_literal(self):
        assert matches_version("25.0.5", "25.0.5")
        assert not matches_version("25.0.5", "25.0.6")
        assert not matches_version("25.0.5", "25.0.5-SNAPSHOT")

    def test_other_comparators(self):
        assert matches_version("<25.0", "24.9.1")
        assert not matches_version("<25.0", "25.0.0")
        assert matches_version("<=25.0", "25.0.3")
        assert matches_version(">24.9", "25.0-SNAPSHOT")
        assert not matches_version(">24.9", "24.9.5")

    def test_prerelease_suffix_is_stripped_for_comparators(self):
        assert matches_version(">=25.0", "25.0-SNAPSHOT")

    @pytest.mark.parametrize("pattern, version", [(None, "25.0.0"), ("25.*", None), ("", "25.0.0")])
    def test_missing_values_never_match(self, pattern, version):
        assert not matches_version(pattern, version)


# ---------------------------------------------------------------------------
# Override lookup
# ---------------------------------------------------------------------------


class TestFindVersionConfig:
    def test_project_override_wins_over_defaults(self):
        mine = override(branch="v1")
        defaults = {"24.*": ignore("limited")}
        assert find_version_config({"24.*": mine}, "24.6.0", defaults) is mine

    def test_falls_back_to_defaults(self):
        default = ignore("limited")
        assert find_version_config({}, "24.6.0", {"24.*": default}) is default

    def test_empty_override_still_matches(self):
        opt_out = override()
        defaults = {"24.*": ignore("limited")}
        assert find_version_config({"24.*": opt_out}, "24.2.0", defaults) is opt_out

    def test_first_matching_rule_wins(self):
        first = override(branch="a")
        second = override(branch="b")
        assert find_version_config({">=24.0": first, "25.*": second}, "25.0.0") is first

    def test_no_match(self):
        assert find_version_config({"23.*": override()}, "25.0.0", {"24.*": override()}) is None
