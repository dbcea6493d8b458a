"""Git collaborator: the only code that shells out to git."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from ..models import CommitInfo
from ..shell import git

# Record and field separators for `git log`, so multi-line bodies survive
_RS = "\x1e"
_FS = "\x1f"
_LOG_FORMAT = "--pretty=format:%x1e%H%x1f%an%x1f%aI%x1f%B%x1f"


class GitOperations(Protocol):
    """Everything the pipeline needs from version control."""

    def add(self, files: str, cwd: Path) -> None: ...

    def commit(self, message: str, cwd: Path) -> None: ...

    def tag(self, name: str, cwd: Path) -> None: ...

    def push(self, cwd: Path, branch: str | None = None) -> None: ...

    def push_tags(self, tags: list[str], cwd: Path) -> None: ...

    def checkout(self, branch: str, cwd: Path, create: bool = False) -> None: ...

    def get_current_branch(self, cwd: Path) -> str: ...

    def tag_exists(self, name: str, cwd: Path) -> bool: ...

    def get_commits_since_tag(self, tag: str | None, cwd: Path) -> list[CommitInfo]: ...

    def get_last_tag(self, cwd: Path) -> str | None: ...

    def get_head_sha(self, cwd: Path) -> str: ...

    def reset_hard(self, sha: str, cwd: Path) -> None: ...

    def delete_tag(self, name: str, cwd: Path) -> None: ...

    def delete_remote_tags(self, tags: list[str], cwd: Path) -> None: ...

    def force_push(self, cwd: Path, branch: str, sha: str) -> None: ...


def parse_git_log(output: str) -> list[CommitInfo]:
    """Parse ``git log`` output written with the separators of _LOG_FORMAT.

    Each record is ``hash, author, date, body`` followed by the
    ``--name-only`` file list. Records without a hash are ignored.
    """
    commits: list[CommitInfo] = []
    for record in output.split(_RS):
        if not record.strip():
            continue
        # Pad so a record cut short (no files, trailing separator stripped) still unpacks
        hash_, author, date, body, names = (record.split(_FS) + [""] * 4)[:5]
        hash_ = hash_.strip()
        if not hash_:
            continue
        files = [line.strip() for line in names.splitlines() if line.strip()]
        commits.append(
            CommitInfo(
                hash=hash_,
                message=body.strip(),
                author=author.strip(),
                date=date.strip() or None,
                files=files,
            )
        )
    return commits


class SubprocessGitOperations:
    """GitOperations backed by the git binary."""

    def add(self, files: str, cwd: Path) -> None:
        git("add", files, cwd=cwd)

    def commit(self, message: str, cwd: Path) -> None:
        git("commit", "-m", message, cwd=cwd)

    def tag(self, name: str, cwd: Path) -> None:
        git("tag", name, cwd=cwd)

    def push(self, cwd: Path, branch: str | None = None) -> None:
        if branch:
            git("push", "--set-upstream", "origin", branch, cwd=cwd)
        else:
            git("push", cwd=cwd)

    def push_tags(self, tags: list[str], cwd: Path) -> None:
        git("push", "origin", *tags, cwd=cwd)

    def checkout(self, branch: str, cwd: Path, create: bool = False) -> None:
        if create:
            git("checkout", "-b", branch, cwd=cwd)
        else:
            git("checkout", branch, cwd=cwd)

    def get_current_branch(self, cwd: Path) -> str:
        return git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)

    def tag_exists(self, name: str, cwd: Path) -> bool:
        return bool(git("tag", "--list", name, cwd=cwd, check=False))

    def get_commits_since_tag(self, tag: str | None, cwd: Path) -> list[CommitInfo]:
        """Commits reachable from HEAD but not from ``tag``, newest first.

        With no tag, the whole history is returned.
        """
        rev_range = f"{tag}..HEAD" if tag else "HEAD"
        output = git("log", _LOG_FORMAT, "--name-only", rev_range, cwd=cwd, check=False)
        return parse_git_log(output) if output else []

    def get_last_tag(self, cwd: Path) -> str | None:
        return git("describe", "--tags", "--abbrev=0", cwd=cwd, check=False) or None

    def get_head_sha(self, cwd: Path) -> str:
        return git("rev-parse", "HEAD", cwd=cwd)

    def reset_hard(self, sha: str, cwd: Path) -> None:
        git("reset", "--hard", sha, cwd=cwd)

    def delete_tag(self, name: str, cwd: Path) -> None:
        git("tag", "-d", name, cwd=cwd)

    def delete_remote_tags(self, tags: list[str], cwd: Path) -> None:
        git("push", "origin", "--delete", *(f"refs/tags/{t}" for t in tags), cwd=cwd)

    def force_push(self, cwd: Path, branch: str, sha: str) -> None:
        # Point the remote branch back at sha without touching the local checkout
        git("push", "--force", "origin", f"{sha}:refs/heads/{branch}", cwd=cwd)
