"""Data models for action resolution and its cache."""

from __future__ import annotations

from dataclasses import dataclass

from github_ci.exceptions import ResolutionError


@dataclass(frozen=True)
class TagInfo:
    """A tag name and the commit it points at."""

    name: str
    sha: str


@dataclass(frozen=True)
class VersionKey:
    """Cache key for a version lookup.

    Unconstrained keys leave ``current_version`` and ``pattern`` empty.
    """

    owner: str
    repo: str
    current_version: str = ""
    pattern: str = ""

    @classmethod
    def constrained(cls, owner: str, repo: str, current_version: str, pattern: str) -> VersionKey:
        return cls(owner, repo, current_version, pattern)

    @classmethod
    def unconstrained(cls, owner: str, repo: str) -> VersionKey:
        return cls(owner, repo)

    @property
    def is_constrained(self) -> bool:
        return self.current_version != "" or self.pattern != ""

    def __str__(self) -> str:
        if not self.is_constrained:
            return f"{self.owner}/{self.repo}"
        return f"{self.owner}/{self.repo}:{self.current_version}:{self.pattern}"


@dataclass(frozen=True)
class VersionResult:
    """Outcome of a version lookup: a ``(tag, hash)`` pair or an error."""

    tag: str = ""
    hash: str = ""
    error: ResolutionError | None = None

    @classmethod
    def ok(cls, tag: str, hash: str) -> VersionResult:
        return cls(tag=tag, hash=hash)

    @classmethod
    def failed(cls, error: ResolutionError) -> VersionResult:
        return cls(error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def cacheable(self) -> bool:
        """Successes and definitive negatives are cacheable; transport errors are not."""
        return self.error is None or self.error.cacheable

    def unwrap(self) -> tuple[str, str]:
        """Return ``(tag, hash)`` or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.tag, self.hash


@dataclass(frozen=True)
class CacheStats:
    hits: int = 0
    misses: int = 0

    @property
    def total(self) -> int:
        return self.hits + self.misses
