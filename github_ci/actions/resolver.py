"""Resolve action refs to tags and commit hashes via the GitHub API."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog

from github_ci.actions.cache import ResultCache
from github_ci.actions.github_client import GitHubClient
from github_ci.actions.models import CacheStats, TagInfo, VersionKey, VersionResult
from github_ci.actions.version import (
    compare,
    is_commit_hash,
    is_major_version_only,
    matches_constraint,
    normalize,
)
from github_ci.exceptions import (
    GitHubAPIError,
    NoMatchingTagsError,
    NoTagsForMajorError,
    NoTagsFoundError,
    RefNotFoundError,
    ResolutionError,
)

log = structlog.get_logger("github_ci.resolver")


@runtime_checkable
class Resolver(Protocol):
    """Interface the upgrade engine needs from a resolver."""

    async def get_commit_hash(self, owner: str, repo: str, ref: str) -> str: ...

    async def get_latest_version(
        self, owner: str, repo: str, current_version: str, pattern: str
    ) -> tuple[str, str]: ...

    async def get_latest_version_unconstrained(self, owner: str, repo: str) -> tuple[str, str]: ...

    async def get_tag_for_commit(self, owner: str, repo: str, commit_hash: str) -> str: ...

    async def get_latest_minor_version(
        self, owner: str, repo: str, major_version: str
    ) -> tuple[str, str]: ...

    def cache_stats(self) -> CacheStats: ...


def _latest(tags: list[TagInfo]) -> TagInfo | None:
    """Highest tag by :func:`compare`; the first one wins on ties."""
    best: TagInfo | None = None
    for tag in tags:
        if best is None or compare(tag.name, best.name) > 0:
            best = tag
    return best


class ActionResolver:
    """Resolves action references against GitHub, memoizing version lookups.

    The :class:`GitHubClient` is owned by the caller and injected; several
    resolvers may share one client and one :class:`ResultCache`.
    """

    def __init__(self, client: GitHubClient, cache: ResultCache | None = None) -> None:
        self._client = client
        self._cache = cache if cache is not None else ResultCache()

    # ── cache ──────────────────────────────────────────────────────────────

    def cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_commit_hash(self, owner: str, repo: str, ref: str) -> str:
        """Resolve *ref* to a commit SHA.

        A major-only ref such as ``v3`` resolves to the newest release under
        that major rather than to a literal ``v3`` tag or branch.
        """
        if is_commit_hash(ref):
            return ref

        ref = ref.removeprefix("refs/")

        if is_major_version_only(ref):
            try:
                _, sha = await self.get_latest_minor_version(owner, repo, ref)
                return sha
            except ResolutionError as exc:
                log.debug(
                    "resolver.major_fallback", action=f"{owner}/{repo}", ref=ref, error=str(exc)
                )

        try:
            sha = await self._client.get_ref_sha(owner, repo, f"refs/tags/{ref}")
        except GitHubAPIError as exc:
            # A failed tag lookup still leaves the branch to try.
            log.debug(
                "resolver.tag_ref_failed", action=f"{owner}/{repo}", ref=ref, error=str(exc)
            )
            sha = None
        if sha:
            return sha

        sha = await self._client.get_ref_sha(owner, repo, f"refs/heads/{ref}")
        if sha:
            return sha

        raise RefNotFoundError(f"ref not found: {owner}/{repo}@{ref}")

    async def get_latest_version(
        self, owner: str, repo: str, current_version: str, pattern: str
    ) -> tuple[str, str]:
        """Latest tag matching *pattern*, as ``(tag, sha)``."""
        key = VersionKey.constrained(owner, repo, current_version, pattern)

        cached = self._cache.get_constrained(key)
        if cached is not None:
            return cached.unwrap()

        try:
            tags = [t async for t in self._client.list_tags(owner, repo)]
            matching = [t for t in tags if matches_constraint(t.name, pattern)]
            best = _latest(matching)
            if best is None:
                raise NoMatchingTagsError(
                    f"no compatible tags found for {owner}/{repo} with pattern {pattern!r}"
                )
        except ResolutionError as exc:
            self._cache.set_constrained(key, VersionResult.failed(exc))
            raise

        log.debug("resolver.latest", key=str(key), tag=best.name, scanned=len(tags))
        self._cache.set_constrained(key, VersionResult.ok(best.name, best.sha))
        return best.name, best.sha

    async def get_latest_version_unconstrained(self, owner: str, repo: str) -> tuple[str, str]:
        """Latest version overall, as ``(tag, sha)``.

        Tries the latest-release endpoint first (one call) and falls back to
        scanning every tag for repositories without releases.
        """
        key = VersionKey.unconstrained(owner, repo)

        cached = self._cache.get_unconstrained(key)
        if cached is not None:
            return cached.unwrap()

        release = await self._try_latest_release(owner, repo)
        if release is not None:
            self._cache.set_unconstrained(key, VersionResult.ok(*release))
            return release

        try:
            tags = [t async for t in self._client.list_tags(owner, repo)]
            best = _latest(tags)
            if best is None:
                raise NoTagsFoundError(f"no tags found for {owner}/{repo}")
        except ResolutionError as exc:
            self._cache.set_unconstrained(key, VersionResult.failed(exc))
            raise

        log.debug("resolver.latest", key=str(key), tag=best.name, scanned=len(tags))
        self._cache.set_unconstrained(key, VersionResult.ok(best.name, best.sha))
        return best.name, best.sha

    async def get_tag_for_commit(self, owner: str, repo: str, commit_hash: str) -> str:
        """First tag pointing at *commit_hash*, or ``""`` if none does."""
        wanted = commit_hash.lower()
        async for tag in self._client.list_tags(owner, repo):
            if tag.sha.lower() == wanted:
                return tag.name
        return ""

    async def get_latest_minor_version(
        self, owner: str, repo: str, major_version: str
    ) -> tuple[str, str]:
        """Newest ``vN`` / ``vN.*`` tag for a major version, e.g. ``v3`` -> ``v3.5.2``."""
        major = normalize(major_version)
        exact = f"v{major}"
        prefix = f"{exact}."

        matching = [
            t
            async for t in self._client.list_tags(owner, repo)
            if t.name == exact or t.name.startswith(prefix)
        ]
        best = _latest(matching)
        if best is None:
            raise NoTagsForMajorError(f"no tags found for major version v{major} in {owner}/{repo}")
        return best.name, best.sha

    # ── internal ───────────────────────────────────────────────────────────

    async def _try_latest_release(self, owner: str, repo: str) -> tuple[str, str] | None:
        try:
            tag = await self._client.get_latest_release_tag(owner, repo)
            if not tag:
                return None
            sha = await self.get_commit_hash(owner, repo, tag)
        except ResolutionError as exc:
            log.debug("resolver.release_lookup_failed", action=f"{owner}/{repo}", error=str(exc))
            return None
        return tag, sha
