"""Configuration loading.

Settings live in ``bonvoy.toml`` at the workspace root or in the
``[tool.bonvoy]`` table of the root pyproject.toml. Keys are kebab-case, as
in other ``[tool.*]`` tables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from tomlkit.exceptions import TOMLKitError

from .errors import ConfigError
from .models import BumpType
from .toml import get_tool_table, load_pyproject

CONFIG_FILE = "bonvoy.toml"

DEFAULT_SECTIONS = {
    "breaking": "💥 Breaking Changes",
    "feat": "✨ Features",
    "fix": "🐛 Bug Fixes",
    "perf": "⚡ Performance",
    "docs": "📚 Documentation",
    "style": "🎨 Styles",
    "refactor": "♻️ Code Refactoring",
    "test": "✅ Tests",
    "build": "👷 Build System",
    "ci": "🔧 Continuous Integration",
    "chore": "🔨 Chores",
    "revert": "⏪ Reverts",
}


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class _Section(BaseModel):
    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="forbid"
    )


class ChangelogConfig(_Section):
    global_: bool = Field(default=False, alias="global")
    sections: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_SECTIONS))
    include_commit_hash: bool = False

    @field_validator("sections", mode="after")
    @classmethod
    def _merge_default_sections(cls, value: dict[str, str]) -> dict[str, str]:
        # User sections override the defaults, they don't replace them
        return {**DEFAULT_SECTIONS, **value}


class ConventionalConfig(_Section):
    preset: Literal["angular", "conventional", "custom"] = "angular"
    types: dict[str, BumpType] | None = None


class GitConfig(_Section):
    commit_message: str | None = None
    tag_format: str | None = None
    push: bool = True


class PypiConfig(_Section):
    publish_url: str | None = None
    index_url: str | None = None
    skip_existing: bool = True


class GitHubConfig(_Section):
    token: str | None = None
    owner: str | None = None
    repo: str | None = None
    draft: bool = False
    prerelease: bool | None = None


class BonvoyConfig(_Section):
    """Validated bonvoy settings with defaults for everything."""

    versioning: Literal["independent", "fixed"] = "independent"
    commit_message: str = "chore(release): {packages} [skip ci]"
    tag_format: str = "{name}@{version}"
    workflow: Literal["direct", "pr"] = "direct"
    base_branch: str = "main"
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    conventional: ConventionalConfig = Field(default_factory=ConventionalConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    pypi: PypiConfig = Field(default_factory=PypiConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)

    def format_tag(self, name: str, version: str) -> str:
        """Tag for one package release; ``git.tag-format`` overrides ``tag-format``."""
        template = self.git.tag_format or self.tag_format
        return template.replace("{name}", name).replace("{version}", version)

    def format_commit_message(self, packages: str) -> str:
        """Release commit message; ``git.commit-message`` overrides ``commit-message``."""
        template = self.git.commit_message or self.commit_message
        return template.replace("{packages}", packages)

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready copy for the release log, without credentials."""
        return self.model_dump(
            mode="json", by_alias=True, exclude={"github": {"token"}}
        )


def load_config(root: Path) -> BonvoyConfig:
    """Load configuration for the workspace at ``root``.

    ``bonvoy.toml`` wins over ``[tool.bonvoy]``; with neither present the
    defaults are returned.

    Raises:
        ConfigError: If the file cannot be parsed or fails validation.
    """
    config_file = root / CONFIG_FILE
    pyproject = root / "pyproject.toml"
    raw: dict[str, Any] | None = None
    source = config_file

    try:
        if config_file.exists():
            raw = tomlkit.parse(config_file.read_text()).unwrap()
        elif pyproject.exists():
            source = pyproject
            raw = get_tool_table(load_pyproject(pyproject), "bonvoy")
    except TOMLKitError as exc:
        raise ConfigError(f"Cannot parse {source.name}: {exc}") from exc

    try:
        return BonvoyConfig.model_validate(raw or {})
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration in {source.name}:\n{exc}") from exc
