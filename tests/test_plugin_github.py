"""Tests for bonvoy.plugins.github."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeGitHubOperations, make_version_context

from bonvoy.config import BonvoyConfig
from bonvoy.context import ChangelogContext, PRContext, PublishContext, ReleaseContext
from bonvoy.errors import ProviderError
from bonvoy.journal import ActionJournal, release_log_path
from bonvoy.models import ActionEntry, Package
from bonvoy.plugins.github import GitHubPlugin
from bonvoy.rollback import RollbackContext, Undone, compensate

CONFIG = BonvoyConfig.model_validate({"github": {"owner": "acme", "repo": "tools"}})


@pytest.fixture
def packages() -> list[Package]:
    return [
        Package(name="core", version="1.0.0", path="packages/core"),
        Package(name="utils", version="1.0.0", path="packages/utils"),
    ]


@pytest.fixture
def journal(tmp_path: Path) -> ActionJournal:
    return ActionJournal(release_log_path(tmp_path), {}, [])


@pytest.fixture(autouse=True)
def token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GH_TOKEN", raising=False)
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")


def _release_ctx(
    root: Path,
    packages: list[Package],
    versions: dict[str, str],
    journal: ActionJournal,
    dry_run: bool = False,
) -> ReleaseContext:
    version = make_version_context(root, packages, versions, journal=journal, dry_run=dry_run)
    changelog = ChangelogContext(version=version, changelogs={"core": "## [1.1.0]\n\n- feat: x"})
    return ReleaseContext(publish=PublishContext(changelog=changelog))


class TestMakeReleases:
    def test_one_release_per_package(
        self, tmp_path: Path, packages: list[Package], journal: ActionJournal
    ) -> None:
        ops = FakeGitHubOperations()
        ctx = _release_ctx(tmp_path, packages, {"core": "1.1.0", "utils": "2.0.0-rc.1"}, journal)

        GitHubPlugin(CONFIG, ops).make_releases(ctx)

        assert ops.releases[100] == {
            "tag_name": "core@1.1.0",
            "name": "core v1.1.0",
            "body": "## [1.1.0]\n\n- feat: x",
            "draft": False,
            "prerelease": False,
        }
        assert ops.releases[101]["prerelease"] is True
        assert ops.releases[101]["body"] == ""
        assert [e.data for e in journal.entries()] == [
            {"tag": "core@1.1.0", "id": 100, "owner": "acme", "repo": "tools"},
            {"tag": "utils@2.0.0-rc.1", "id": 101, "owner": "acme", "repo": "tools"},
        ]
        assert ctx.releases["core"].tag == "core@1.1.0"
        assert ctx.releases["core"].url.endswith("/releases/tag/core@1.1.0")

    def test_prerelease_config_wins(
        self, tmp_path: Path, packages: list[Package], journal: ActionJournal
    ) -> None:
        config = BonvoyConfig.model_validate(
            {"github": {"owner": "acme", "repo": "tools", "prerelease": True, "draft": True}}
        )
        ops = FakeGitHubOperations()

        GitHubPlugin(config, ops).make_releases(
            _release_ctx(tmp_path, packages, {"core": "1.1.0"}, journal)
        )

        assert ops.releases[100]["prerelease"] is True
        assert ops.releases[100]["draft"] is True

    def test_skips_without_token(
        self,
        tmp_path: Path,
        packages: list[Package],
        journal: ActionJournal,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.delenv("GITHUB_TOKEN")
        ops = FakeGitHubOperations()

        GitHubPlugin(CONFIG, ops).make_releases(
            _release_ctx(tmp_path, packages, {"core": "1.1.0"}, journal)
        )

        assert ops.releases == {}
        assert journal.entries() == []

    def test_dry_run(self, tmp_path: Path, packages: list[Package], journal: ActionJournal) -> None:
        ops = FakeGitHubOperations()

        GitHubPlugin(CONFIG, ops).make_releases(
            _release_ctx(tmp_path, packages, {"core": "1.1.0"}, journal, dry_run=True)
        )

        assert ops.releases == {}

    @patch("bonvoy.retry.time.sleep")
    def test_retries_transient_errors(
        self,
        mock_sleep: MagicMock,
        tmp_path: Path,
        packages: list[Package],
        journal: ActionJournal,
    ) -> None:
        ops = FakeGitHubOperations()
        calls = {"n": 0}
        original = ops.create_release

        def flaky(*args: object) -> dict:
            calls["n"] += 1
            if calls["n"] == 1:
                raise ProviderError("Service Unavailable", 503)
            return original(*args)  # type: ignore[arg-type]

        ops.create_release = flaky  # type: ignore[method-assign]

        GitHubPlugin(CONFIG, ops).make_releases(
            _release_ctx(tmp_path, packages, {"core": "1.1.0"}, journal)
        )

        assert calls["n"] == 2
        mock_sleep.assert_called_once_with(1.0)
        assert len(journal.entries()) == 1

    def test_permanent_error_propagates(
        self, tmp_path: Path, packages: list[Package], journal: ActionJournal
    ) -> None:
        ops = FakeGitHubOperations()
        ops.fail_release = ProviderError("Validation Failed", 422)

        with pytest.raises(ProviderError):
            GitHubPlugin(CONFIG, ops).make_releases(
                _release_ctx(tmp_path, packages, {"core": "1.1.0"}, journal)
            )
        assert journal.entries() == []


class TestRepoInfo:
    def test_from_config(self, tmp_path: Path) -> None:
        assert GitHubPlugin(CONFIG).repo_info(tmp_path) == ("acme", "tools")

    @patch("bonvoy.plugins.github.git")
    def test_from_origin(self, mock_git: MagicMock, tmp_path: Path) -> None:
        mock_git.return_value = "git@github.com:octo/widgets.git"
        assert GitHubPlugin(BonvoyConfig()).repo_info(tmp_path) == ("octo", "widgets")

    @patch("bonvoy.plugins.github.git")
    def test_unknown_remote(self, mock_git: MagicMock, tmp_path: Path) -> None:
        mock_git.return_value = ""
        with pytest.raises(ProviderError, match="Could not determine"):
            GitHubPlugin(BonvoyConfig()).repo_info(tmp_path)

    def test_config_token_preferred(self) -> None:
        config = BonvoyConfig.model_validate({"github": {"token": "from-config"}})
        assert GitHubPlugin(config).token() == "from-config"


class TestCreatePR:
    def test_opens_pull_request(self, tmp_path: Path, packages: list[Package]) -> None:
        ops = FakeGitHubOperations()
        version = make_version_context(tmp_path, packages, {"core": "1.1.0"})
        ctx = PRContext(
            base=version.base,
            branch_name="release/1",
            base_branch="main",
            title="chore(release): core",
            body="body",
        )

        GitHubPlugin(CONFIG, ops).create_pr(ctx)

        assert ops.prs == [
            {"title": "chore(release): core", "body": "body", "head": "release/1", "base": "main"}
        ]
        assert ctx.pull_requests[0].number == 1


class TestRollback:
    def test_deletes_recorded_releases(self, tmp_path: Path, packages: list[Package]) -> None:
        ops = FakeGitHubOperations()
        base = make_version_context(tmp_path, packages, {}).base
        actions = (
            ActionEntry(plugin="git", action="tag", data={"tags": ["core@1.1.0"]}),
            ActionEntry(
                plugin="github",
                action="release",
                data={"tag": "core@1.1.0", "id": 100, "owner": "acme", "repo": "tools"},
            ),
        )
        ctx = RollbackContext(base=base, actions=actions)

        GitHubPlugin(CONFIG, ops).rollback(ctx)
        report = compensate(ctx)

        assert ops.deleted == [100]
        assert report.results == [Undone(actions[1], "delete GitHub release core@1.1.0")]

    def test_missing_token_is_a_warning(
        self, tmp_path: Path, packages: list[Package], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("GITHUB_TOKEN")
        ops = FakeGitHubOperations()
        base = make_version_context(tmp_path, packages, {}).base
        actions = (
            ActionEntry(
                plugin="github",
                action="release",
                data={"tag": "core@1.1.0", "id": 100, "owner": "acme", "repo": "tools"},
            ),
        )
        ctx = RollbackContext(base=base, actions=actions)

        GitHubPlugin(CONFIG, ops).rollback(ctx)
        report = compensate(ctx)

        assert ops.deleted == []
        assert "GITHUB_TOKEN not found" in report.warnings[0].message
