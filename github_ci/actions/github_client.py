"""Async GitHub API client with Link-header pagination and rate-limit detection."""

from __future__ import annotations

import os
import re
import time
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from github_ci.actions.models import TagInfo
from github_ci.exceptions import GitHubAPIError, RateLimitError

log = structlog.get_logger("github_ci.github")

GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_PAGE_SIZE = 100
_REQUEST_TIMEOUT = 10.0  # seconds, per call


class GitHubClient:
    """Thin async wrapper around the GitHub REST API.

    Calls are never retried: a failed request surfaces as
    :class:`GitHubAPIError` and it is up to the caller to run again.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = "https://api.github.com",
        timeout: float = _REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_token = token or os.environ.get(GITHUB_TOKEN_ENV_VAR)
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"token {resolved_token}"
        self.authenticated = bool(resolved_token)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── repository API ─────────────────────────────────────────────────────

    async def list_tags(self, owner: str, repo: str) -> AsyncGenerator[TagInfo, None]:
        """Yield every tag of *owner/repo* with the commit it points at."""
        async for item in self.get_paginated(f"/repos/{owner}/{repo}/tags"):
            yield TagInfo(name=item["name"], sha=(item.get("commit") or {}).get("sha", ""))

    async def get_latest_release_tag(self, owner: str, repo: str) -> str | None:
        """Tag name of the latest published release, ``None`` if there is none."""
        data = await self.get_optional(f"/repos/{owner}/{repo}/releases/latest")
        if not data:
            return None
        return data.get("tag_name") or None

    async def get_ref_sha(self, owner: str, repo: str, ref: str) -> str | None:
        """Commit SHA for a fully qualified ref (``refs/tags/x``, ``refs/heads/x``).

        Annotated tags point at a tag object; those are followed to the commit.
        Returns ``None`` when the ref does not exist.
        """
        short = ref.removeprefix("refs/")
        data = await self.get_optional(f"/repos/{owner}/{repo}/git/ref/{quote(short)}")
        if not data or not isinstance(data, dict):
            return None
        obj = data.get("object") or {}
        sha = obj.get("sha")
        if not sha:
            return None
        if obj.get("type") == "tag":
            tag_obj = await self.get_optional(f"/repos/{owner}/{repo}/git/tags/{sha}")
            if tag_obj:
                return (tag_obj.get("object") or {}).get("sha") or sha
        return sha

    # ── generic ────────────────────────────────────────────────────────────

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield JSON items from a paginated GitHub API endpoint.

        Follows ``Link: <...>; rel="next"`` headers until there is no next
        page.  An error on any page propagates; callers must not use the
        items already seen.
        """
        url: str | None = path
        params = dict(params or {})
        params.setdefault("per_page", _PAGE_SIZE)
        page = 0

        while url:
            response = await self._request(url, params if page == 0 else None)
            data = self._decode(response, url)
            if isinstance(data, list):
                for item in data:
                    yield item
            else:
                yield data

            url = self._parse_next_link(response.headers.get("Link", ""))
            page += 1

        log.debug("github.paginated", path=path, pages=page)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Single-resource GET, returns parsed JSON."""
        response = await self._request(path, params)
        return self._decode(response, path)

    async def get_optional(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Like :meth:`get` but returns ``None`` on 404."""
        try:
            return await self.get(path, params)
        except GitHubAPIError as exc:
            if exc.status_code == 404:
                return None
            raise

    # ── internal ───────────────────────────────────────────────────────────

    async def _request(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """One GET; every failure is wrapped in :class:`GitHubAPIError`."""
        try:
            resp = await self._client.get(url, params=params)
        except httpx.TimeoutException as exc:
            log.warning("github.timeout", url=url)
            raise GitHubAPIError(f"request to {url} timed out") from exc
        except httpx.HTTPError as exc:
            log.warning("github.request_failed", url=url, error=str(exc))
            raise GitHubAPIError(f"request to {url} failed: {exc}") from exc

        if resp.status_code == 403 and self._is_rate_limited(resp):
            wait = self._get_rate_limit_wait(resp)
            log.warning("github.rate_limit", url=url, retry_after=wait)
            raise RateLimitError(wait)

        if resp.status_code >= 400:
            if resp.status_code != 404:
                log.warning("github.http_error", url=url, status=resp.status_code)
            raise GitHubAPIError(
                f"GET {url}: HTTP {resp.status_code}", status_code=resp.status_code
            )
        return resp

    @staticmethod
    def _decode(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            log.warning("github.invalid_json", url=url, status=response.status_code)
            raise GitHubAPIError(
                f"GET {url}: invalid JSON response", status_code=response.status_code
            ) from exc

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for secondary rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Seconds until the rate limit resets, from the response headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
