"""Custom exceptions for github-ci."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from github_ci.upgrader.models import UpdateDecision


class GitHubCIError(Exception):
    """Base exception for all github-ci errors."""


class ConfigError(GitHubCIError):
    """Raised when the configuration file cannot be read, parsed or written."""


class WorkflowError(GitHubCIError):
    """Raised when a workflow file cannot be loaded, edited or saved."""


class InvalidFormatError(GitHubCIError, ValueError):
    """Raised when a ``uses`` string is not ``owner/repo[/path]@ref``."""


class ResolutionError(GitHubCIError):
    """Base for failures while resolving an action to a version.

    ``cacheable`` tells the result cache whether the failure is a definitive
    statement about remote state (safe to memoize) or possibly transient.
    """

    cacheable: ClassVar[bool] = False


class RefNotFoundError(ResolutionError):
    """Raised when a ref resolves neither as a tag nor as a branch."""


class NoMatchingTagsError(ResolutionError):
    """Raised when no tag satisfies a version constraint."""

    cacheable = True


class NoTagsFoundError(ResolutionError):
    """Raised when a repository has no tags at all."""

    cacheable = True


class NoTagsForMajorError(ResolutionError):
    """Raised when no tag exists under a given major version."""

    cacheable = True


class GitHubAPIError(ResolutionError):
    """Wrapped transport or provider error from the GitHub REST API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """Raised when the GitHub rate limit is exhausted."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s", status_code=403)


class UpgradeError(GitHubCIError):
    """Raised when a scan or apply pass aborts.

    ``partial`` holds the decisions computed before the failure.
    """

    def __init__(self, message: str, partial: list[UpdateDecision] | None = None) -> None:
        self.partial = list(partial or [])
        super().__init__(message)
