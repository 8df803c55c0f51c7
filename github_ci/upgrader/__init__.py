"""Upgrade engine: decision logic plus apply / dry-run entry points."""

from github_ci.upgrader.models import UpdateDecision
from github_ci.upgrader.report import format_cache_stats, format_report, format_update
from github_ci.upgrader.upgrader import Upgrader, should_update

__all__ = [
    "UpdateDecision",
    "Upgrader",
    "format_cache_stats",
    "format_report",
    "format_update",
    "should_update",
]
