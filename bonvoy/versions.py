"""Version parsing, bumping and per-package version resolution.

Severities are applied with standard semver increment rules: there is no
special handling for 0.x versions, so a major bump of 0.5.0 gives 1.0.0.
Explicit target versions must be valid semver; a malformed current version
is tolerated and left as it is.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import reduce

import semver

from .commits import BUMP_ORDER, is_explicit_version, max_bump
from .context import VersionContext
from .errors import InvalidVersionError
from .hooks import Bonvoy
from .workspace import commits_for_package

SEVERITIES = ("major", "minor", "patch", "prerelease")
DEFAULT_PREID = "rc"


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-rc.1" → "1.2.3-rc.1"

    Raises:
        ValueError: If the string is not a version at all.
    """
    return semver.Version.parse(version_str, optional_minor_and_patch=True)


def validate_version(version_str: str) -> str:
    """Return ``version_str`` if it is a full semantic version.

    Raises:
        InvalidVersionError: For anything semver rejects. Explicit targets
                             are never coerced.
    """
    if not semver.Version.is_valid(version_str):
        raise InvalidVersionError(f"Invalid version: '{version_str}'")
    return version_str


def bump_version(current: str, bump: str, preid: str | None = None) -> str:
    """Compute the next version for a bump severity or explicit version.

    Examples:
        bump_version("1.5.3", "major") → "2.0.0"
        bump_version("0.5.0", "major") → "1.0.0"
        bump_version("1.0.0", "prerelease", "beta") → "1.0.1-beta.1"
        bump_version("1.0.0", "3.0.0") → "3.0.0"
        bump_version("invalid", "minor") → "invalid"

    Raises:
        InvalidVersionError: If ``bump`` is neither a severity nor valid semver.
    """
    if bump in SEVERITIES:
        try:
            version = parse_version(current)
        except ValueError:
            return current
        return str(version.next_version(bump, prerelease_token=preid or DEFAULT_PREID))
    return validate_version(bump)


def resolve_versions(
    pipeline: Bonvoy,
    ctx: VersionContext,
    *,
    force_bump: str | None = None,
    preid: str | None = None,
    only: Iterable[str] | None = None,
) -> None:
    """Run the getVersion hook for every package and fill ``ctx``.

    Packages are processed one at a time in workspace order. For each one,
    the commits attributed to it go through the getVersion waterfall; a
    ``force_bump`` replaces whatever the hook returned. Packages ending up
    with no bump or "none" are left out of the release.

    Populates ``ctx.versions``, ``ctx.bumps`` and ``ctx.changed_packages``.
    With fixed versioning, the highest bump found is applied to every
    package.

    Raises:
        InvalidVersionError: If an explicit version is not valid semver.
    """
    if force_bump is not None and force_bump not in BUMP_ORDER:
        validate_version(force_bump)

    selected = set(only) if only else None
    candidates = [p for p in ctx.packages if selected is None or p.name in selected]
    logger = ctx.logger

    for pkg in candidates:
        pkg_ctx = ctx.base.for_package(pkg, commits_for_package(ctx.commits, pkg.name))
        bump = pipeline.waterfall("getVersion", None, pkg_ctx)
        if force_bump is not None:
            bump = force_bump
        if not bump or bump == "none":
            logger.debug(f"  {pkg.name}: no release-worthy commits")
            continue

        ctx.versions[pkg.name] = bump_version(pkg.version, bump, preid)
        ctx.bumps[pkg.name] = bump
        ctx.changed_packages.append(pkg)

    if pipeline.config is not None and pipeline.config.versioning == "fixed" and ctx.bumps:
        top = reduce(max_bump, ctx.bumps.values())
        ctx.changed_packages.clear()
        for pkg in candidates:
            if is_explicit_version(top):
                ctx.versions[pkg.name] = top
            else:
                ctx.versions[pkg.name] = bump_version(pkg.version, top, preid)
            ctx.bumps[pkg.name] = top
            ctx.changed_packages.append(pkg)

    for pkg in ctx.changed_packages:
        logger.info(
            f"  {pkg.name}: {pkg.version} → {ctx.versions[pkg.name]} ({ctx.bumps[pkg.name]})"
        )
