"""Action reference parsing, version algebra and GitHub resolution."""

from github_ci.actions.cache import ResultCache
from github_ci.actions.github_client import GitHubClient
from github_ci.actions.models import CacheStats, TagInfo, VersionKey, VersionResult
from github_ci.actions.parser import Reference, normalize_action_name, parse_uses
from github_ci.actions.resolver import ActionResolver, Resolver

__all__ = [
    "ActionResolver",
    "CacheStats",
    "GitHubClient",
    "Reference",
    "Resolver",
    "ResultCache",
    "TagInfo",
    "VersionKey",
    "VersionResult",
    "normalize_action_name",
    "parse_uses",
]
