"""Tests for bonvoy.versions."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_commit

from bonvoy.config import BonvoyConfig
from bonvoy.context import Context, VersionContext
from bonvoy.errors import InvalidVersionError
from bonvoy.hooks import Bonvoy
from bonvoy.journal import NoopJournal
from bonvoy.log import silent_logger
from bonvoy.models import CommitInfo, Package
from bonvoy.plugins.conventional import ConventionalPlugin
from bonvoy.versions import bump_version, parse_version, resolve_versions, validate_version
from bonvoy.workspace import assign_commits_to_packages


class TestParseVersion:
    def test_full_version(self) -> None:
        v = parse_version("1.2.3")
        assert (v.major, v.minor, v.patch) == (1, 2, 3)

    def test_pads_missing_parts(self) -> None:
        assert str(parse_version("1")) == "1.0.0"
        assert str(parse_version("1.2")) == "1.2.0"

    def test_keeps_prerelease(self) -> None:
        assert str(parse_version("1.2.3-rc.1")) == "1.2.3-rc.1"

    def test_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_version("not-a-version")


class TestBumpVersion:
    @pytest.mark.parametrize(
        ("current", "bump", "expected"),
        [
            ("1.5.3", "major", "2.0.0"),
            ("1.5.3", "minor", "1.6.0"),
            ("1.5.3", "patch", "1.5.4"),
            ("0.5.0", "major", "1.0.0"),
            ("0.5.0", "minor", "0.6.0"),
            ("1.0.0-rc.1", "prerelease", "1.0.0-rc.2"),
        ],
    )
    def test_severities(self, current: str, bump: str, expected: str) -> None:
        assert bump_version(current, bump) == expected

    def test_prerelease_from_release(self) -> None:
        assert bump_version("1.0.0", "prerelease") == "1.0.1-rc.1"

    def test_prerelease_custom_preid(self) -> None:
        assert bump_version("1.0.0", "prerelease", "beta") == "1.0.1-beta.1"

    def test_explicit_version(self) -> None:
        assert bump_version("1.0.0", "3.0.0") == "3.0.0"

    def test_explicit_version_can_go_down(self) -> None:
        assert bump_version("2.0.0", "1.0.0") == "1.0.0"

    def test_invalid_explicit_version(self) -> None:
        with pytest.raises(InvalidVersionError, match="Invalid version"):
            bump_version("1.0.0", "not-a-version")

    def test_explicit_version_not_coerced(self) -> None:
        with pytest.raises(InvalidVersionError):
            bump_version("1.0.0", "2.0")

    def test_malformed_current_left_unchanged(self) -> None:
        assert bump_version("invalid", "minor") == "invalid"

    def test_validate_version(self) -> None:
        assert validate_version("1.2.3-beta.1+build.5") == "1.2.3-beta.1+build.5"


def _resolve(
    packages: list[Package],
    commits: list[CommitInfo],
    config: BonvoyConfig | None = None,
    **kwargs: object,
) -> VersionContext:
    config = config or BonvoyConfig()
    pipeline = Bonvoy(config)
    pipeline.use(ConventionalPlugin(config.conventional))
    base = Context(
        config=config,
        packages=packages,
        root_path=Path("/repo"),
        logger=silent_logger(),
        journal=NoopJournal(),
        commits=assign_commits_to_packages(commits, packages, "/repo"),
    )
    ctx = VersionContext(base=base)
    resolve_versions(pipeline, ctx, **kwargs)  # type: ignore[arg-type]
    return ctx


def _pkgs(*specs: tuple[str, str]) -> list[Package]:
    return [Package(name=n, version=v, path=f"packages/{n}") for n, v in specs]


class TestResolveVersions:
    def test_breaking_on_stable(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "1.5.3")),
            [make_commit("feat!: remove deprecated API", ["packages/core/api.py"])],
        )
        assert ctx.versions == {"core": "2.0.0"}
        assert ctx.bumps == {"core": "major"}

    def test_breaking_on_pre_1_0(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "0.5.0")),
            [make_commit("feat!: breaking change", ["packages/core/api.py"])],
        )
        assert ctx.versions == {"core": "1.0.0"}

    def test_only_touched_package_changes(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "1.0.0"), ("utils", "1.0.0")),
            [make_commit("feat: new thing", ["packages/core/src/thing.py"])],
        )
        assert ctx.versions == {"core": "1.1.0"}
        assert [p.name for p in ctx.changed_packages] == ["core"]
        assert "utils" not in ctx.bumps

    def test_none_bump_excluded(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "1.0.0")),
            [make_commit("docs: readme", ["packages/core/README.md"])],
        )
        assert ctx.changed_packages == []
        assert ctx.versions == {}

    def test_force_bump_replaces_computed(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "1.0.0"), ("utils", "1.0.0")),
            [make_commit("feat!: x", ["packages/core/x.py"])],
            force_bump="patch",
        )
        assert ctx.versions == {"core": "1.0.1", "utils": "1.0.1"}
        assert ctx.bumps == {"core": "patch", "utils": "patch"}

    def test_force_explicit_version(self) -> None:
        ctx = _resolve(_pkgs(("core", "1.0.0")), [], force_bump="3.0.0")
        assert ctx.versions == {"core": "3.0.0"}
        assert ctx.bumps == {"core": "3.0.0"}

    def test_force_invalid_version_raises_before_anything(self) -> None:
        with pytest.raises(InvalidVersionError):
            _resolve(_pkgs(("core", "1.0.0")), [], force_bump="banana")

    def test_malformed_current_still_changed(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "invalid")),
            [make_commit("feat: x", ["packages/core/x.py"])],
        )
        assert ctx.versions == {"core": "invalid"}
        assert [p.name for p in ctx.changed_packages] == ["core"]

    def test_only_filter(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "1.0.0"), ("utils", "1.0.0")),
            [make_commit("fix: x", ["packages/core/x.py", "packages/utils/y.py"])],
            only=["utils"],
        )
        assert ctx.versions == {"utils": "1.0.1"}

    def test_prerelease_preid(self) -> None:
        ctx = _resolve(
            _pkgs(("core", "1.0.0")), [], force_bump="prerelease", preid="alpha"
        )
        assert ctx.versions == {"core": "1.0.1-alpha.1"}

    def test_fixed_versioning_applies_top_bump_to_all(self) -> None:
        config = BonvoyConfig(versioning="fixed")
        ctx = _resolve(
            _pkgs(("core", "1.0.0"), ("utils", "1.0.0")),
            [
                make_commit("fix: a", ["packages/utils/a.py"], hash="1"),
                make_commit("feat: b", ["packages/core/b.py"], hash="2"),
            ],
            config=config,
        )
        assert ctx.versions == {"core": "1.1.0", "utils": "1.1.0"}
        assert ctx.bumps == {"core": "minor", "utils": "minor"}

    def test_fixed_versioning_with_explicit_version(self) -> None:
        config = BonvoyConfig(versioning="fixed")
        ctx = _resolve(
            _pkgs(("core", "1.0.0"), ("utils", "1.2.0")),
            [make_commit("fix: a", ["packages/core/a.py"])],
            config=config,
            force_bump="2.0.0",
        )
        assert ctx.versions == {"core": "2.0.0", "utils": "2.0.0"}

    def test_fixed_versioning_nothing_to_release(self) -> None:
        config = BonvoyConfig(versioning="fixed")
        ctx = _resolve(_pkgs(("core", "1.0.0"), ("utils", "1.0.0")), [], config=config)
        assert ctx.changed_packages == []

    def test_waterfall_sees_package_commits_only(self) -> None:
        seen: dict[str, list[str]] = {}
        config = BonvoyConfig()
        pipeline = Bonvoy(config)

        def record(bump: str | None, ctx: Context) -> str:
            assert ctx.current_package is not None
            seen[ctx.current_package.name] = [c.hash for c in ctx.commits]
            return "patch"

        pipeline.tap("getVersion", "recorder", record)
        packages = _pkgs(("core", "1.0.0"), ("utils", "1.0.0"))
        commits = assign_commits_to_packages(
            [
                make_commit("fix: a", ["packages/core/a.py"], hash="c1"),
                make_commit("fix: b", ["packages/utils/b.py"], hash="u1"),
            ],
            packages,
            "/repo",
        )
        base = Context(
            config=config,
            packages=packages,
            root_path=Path("/repo"),
            logger=silent_logger(),
            journal=NoopJournal(),
            commits=commits,
        )

        resolve_versions(pipeline, VersionContext(base=base))

        assert seen == {"core": ["c1"], "utils": ["u1"]}
