"""
Tests for the module cache probe.
"""

from pathlib import Path

import pytest

from binpin.core.errors import NoCachedModule, PinError
from binpin.core.models.package import ModuleVersion, Package
from binpin.core.services.pinning.cache_probe import (
    candidate_module_paths,
    latest_listed_version,
    resolve_in_mod_cache,
)
from binpin.core.services.pinning.toolchain import UpdatePolicy


def _cache(root: Path, module_path: str, versions: list[str], infos: list[str] | None = None) -> Path:
    meta = root / "cache" / "download" / module_path / "@v"
    meta.mkdir(parents=True)
    (meta / "list").write_text("".join(f"{v}\n" for v in versions))
    for name in infos if infos is not None else versions:
        (meta / f"{name}.info").write_text("{}")
    return meta


def _unknown(package_path: str, version: str = "") -> Package:
    return Package(module=ModuleVersion(version=version), rel_path=package_path)


class TestCandidates:
    """Tests for candidate module path generation."""

    def test_longest_first(self):
        assert list(candidate_module_paths("github.com/a/b/cmd/c")) == [
            "github.com/a/b/cmd/c",
            "github.com/a/b/cmd",
            "github.com/a/b",
        ]

    def test_short_path_has_no_candidates(self):
        assert list(candidate_module_paths("github.com/a")) == []


class TestLatestListedVersion:
    """Tests for reading the cached version list."""

    def test_last_line(self, tmp_path):
        f = tmp_path / "list"
        f.write_text("v1.0.0\nv1.1.0\n\n")
        assert latest_listed_version(f) == "v1.1.0"

    def test_empty_file(self, tmp_path):
        f = tmp_path / "list"
        f.write_text("")
        with pytest.raises(PinError, match="empty file"):
            latest_listed_version(f)


class TestResolveInModCache:
    """Tests for resolving packages against the download cache."""

    def test_latest_when_no_version(self, tmp_path):
        _cache(tmp_path, "github.com/a/b", ["v1.0.0", "v1.2.0"])
        pkg = resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b/cmd/c"))
        assert pkg.module == ModuleVersion(path="github.com/a/b", version="v1.2.0")
        assert pkg.rel_path == "cmd/c"
        assert pkg.path == "github.com/a/b/cmd/c"

    def test_latest_when_updating(self, tmp_path):
        _cache(tmp_path, "github.com/a/b", ["v1.0.0", "v1.2.0"])
        pkg = resolve_in_mod_cache(tmp_path, UpdatePolicy.UPDATE, _unknown("github.com/a/b", "v1.0.0"))
        assert pkg.module.version == "v1.2.0"
        assert pkg.rel_path == ""

    def test_exact_tag(self, tmp_path):
        _cache(tmp_path, "github.com/a/b", ["v1.0.0", "v1.2.0"])
        pkg = resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b/cmd/c", "v1.0.0"))
        assert pkg.module == ModuleVersion(path="github.com/a/b", version="v1.0.0")

    def test_longest_module_wins(self, tmp_path):
        # Nested module with its own go.mod at cmd/c.
        _cache(tmp_path, "github.com/a/b", ["v1.0.0"])
        _cache(tmp_path, "github.com/a/b/cmd/c", ["v1.0.0"])
        pkg = resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b/cmd/c", "v1.0.0"))
        assert pkg.module.path == "github.com/a/b/cmd/c"
        assert pkg.rel_path == ""

    def test_missing_tag_falls_through_to_shorter_prefix(self, tmp_path):
        _cache(tmp_path, "github.com/a/b/cmd", ["v2.0.0"])
        _cache(tmp_path, "github.com/a/b", ["v1.0.0"])
        pkg = resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b/cmd/c/d", "v1.0.0"))
        assert pkg.module.path == "github.com/a/b"
        assert pkg.rel_path == "cmd/c/d"

    def test_revision(self, tmp_path):
        pseudo = "v0.0.0-20230101000000-0123456789ab"
        _cache(tmp_path, "github.com/a/b", [], infos=[pseudo])
        pkg = resolve_in_mod_cache(
            tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b/cmd/c", "0123456789abcdef0123")
        )
        assert pkg.module.version == pseudo

    def test_short_revision_never_matches(self, tmp_path):
        _cache(tmp_path, "github.com/a/b", [], infos=["v0.0.0-20230101000000-0123456789ab"])
        with pytest.raises(NoCachedModule):
            resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b", "0123456789ab"))

    def test_unreadable_cache_dir(self, tmp_path, monkeypatch):
        _cache(tmp_path, "github.com/a/b", [], infos=["v0.0.0-20230101000000-0123456789ab"])

        def denied(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "iterdir", denied)
        with pytest.raises(PinError, match="read cached versions in .*Permission denied"):
            resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b", "0123456789abcdef0123"))

    def test_uppercase_paths_are_escaped(self, tmp_path):
        _cache(tmp_path, "github.com/!burnt!sushi/toml", ["v1.3.2"])
        pkg = resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/BurntSushi/toml/cmd/tomlv"))
        assert pkg.module.path == "github.com/BurntSushi/toml"
        assert pkg.rel_path == "cmd/tomlv"

    def test_nothing_cached(self, tmp_path):
        with pytest.raises(NoCachedModule, match="github.com/a/b/cmd/c"):
            resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, _unknown("github.com/a/b/cmd/c"))

    def test_target_not_mutated(self, tmp_path):
        _cache(tmp_path, "github.com/a/b", ["v1.0.0"])
        target = _unknown("github.com/a/b/cmd/c")
        resolve_in_mod_cache(tmp_path, UpdatePolicy.NONE, target)
        assert target.module.path == ""
        assert target.rel_path == "github.com/a/b/cmd/c"
