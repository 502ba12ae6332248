"""Tests for the roster helpers."""

from __future__ import annotations

import pytest

from ecobuild.dsl import addon, app, build, ignore, override, project, roster
from ecobuild.model import TaskKind


class TestProjectHelpers:
    def test_addon_and_app_set_kind(self):
        assert addon("a", "https://example.com/a").kind is TaskKind.ADDON
        assert app("b", "https://example.com/b").kind is TaskKind.APP

    def test_lists_become_tuples(self):
        p = addon("a", "https://example.com/a", extra_args=["-X"], notify_users=["me"])
        assert p.extra_args == ("-X",)
        assert p.notify_users == ("me",)

    @pytest.mark.parametrize("name, url", [("", "https://example.com/a"), ("a", "")])
    def test_name_and_url_required(self, name, url):
        with pytest.raises(ValueError):
            project(name, url)


class TestOverrides:
    def test_ignore_sets_reason(self):
        vc = ignore("broken upstream")
        assert vc.ignored and vc.ignore_reason == "broken upstream"

    def test_empty_override_sets_nothing(self):
        vc = override()
        assert vc.branch is None and vc.java_version is None and vc.extra_args is None
        assert not vc.ignored


class TestProjectBuilder:
    def test_fluent_build(self):
        p = (
            build("super-fields", "https://example.com/sf", TaskKind.ADDON)
            .in_subdir("superfields")
            .with_java("21-tem")
            .with_addons_repo()
            .with_args("-DskipITs", "-Pfast")
            .notify("alice")
            .for_version("24.*", override(branch="v24"))
            .build()
        )
        assert p.build_subdir == "superfields"
        assert p.java_version == "21-tem"
        assert p.use_addons_repo
        assert p.extra_args == ("-DskipITs", "-Pfast")
        assert p.notify_users == ("alice",)
        assert p.version_overrides["24.*"].branch == "v24"

    def test_builder_ignore(self):
        p = build("old", "https://example.com/old").on_branch("legacy").ignore("archived").build()
        assert p.ignored and p.ignore_reason == "archived" and p.branch == "legacy"


class TestRoster:
    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            roster(addon("a", "https://example.com/a"), app("a", "https://example.com/b"))
