"""Parse ``owner/repo[/path]@ref`` action references."""

from __future__ import annotations

from dataclasses import dataclass

from github_ci.actions.version import is_commit_hash, is_major_version_only, normalize
from github_ci.exceptions import InvalidFormatError


@dataclass(frozen=True)
class Reference:
    """A parsed action reference.

    ``path`` is set for actions living in a repository subdirectory, e.g.
    ``github/codeql-action/upload-sarif@v3`` has repo ``codeql-action`` and
    path ``upload-sarif``.
    """

    owner: str
    repo: str
    ref: str
    path: str = ""

    @property
    def name(self) -> str:
        """``owner/repo`` or ``owner/repo/path``; stable across refs."""
        if self.path:
            return f"{self.owner}/{self.repo}/{self.path}"
        return f"{self.owner}/{self.repo}"

    @property
    def uses(self) -> str:
        return self.format_uses(self.ref)

    def format_uses(self, ref: str) -> str:
        return f"{self.name}@{ref}"

    @property
    def is_commit_hash(self) -> bool:
        return is_commit_hash(self.ref)

    @property
    def is_major_only(self) -> bool:
        return is_major_version_only(self.ref)

    def is_at_latest(self, latest_tag: str, latest_hash: str) -> bool:
        """Whether this ref already points at ``latest_tag`` / ``latest_hash``.

        A major-only ref (``v4`` or ``4``) counts as current when the latest
        tag lives under the same major.
        """
        if self.is_commit_hash:
            return self.ref.lower() == latest_hash.lower()
        if self.ref == latest_tag:
            return True
        if self.is_major_only:
            major_tag = "v" + normalize(self.ref)
            return latest_tag == major_tag or latest_tag.startswith(major_tag + ".")
        return False

    def needs_format_change(self, desired_format: str) -> bool:
        """Whether the ref's representation differs from *desired_format*."""
        if desired_format == "hash":
            return not self.is_commit_hash
        if desired_format == "major":
            return self.is_commit_hash or not self.is_major_only
        return self.is_commit_hash


def parse_uses(uses: str) -> Reference:
    """Parse a ``uses`` value.

    The ref follows the last ``@``; the owner ends at the first ``/`` and the
    repo at the next one, anything after that being the path.
    """
    action_path, sep, ref = uses.rpartition("@")
    if not sep:
        raise InvalidFormatError(f"invalid action format: {uses}")

    owner, sep, rest = action_path.partition("/")
    if not sep:
        raise InvalidFormatError(f"invalid action path: {action_path}")

    repo, _, path = rest.partition("/")
    return Reference(owner=owner, repo=repo, ref=ref, path=path)


def normalize_action_name(uses: str) -> str:
    """Config key for a ``uses`` value, or ``""`` when it cannot be parsed."""
    try:
        return parse_uses(uses).name
    except InvalidFormatError:
        return ""
