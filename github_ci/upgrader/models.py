"""Data models for the upgrade engine."""

from __future__ import annotations

from dataclasses import dataclass

from github_ci.actions.parser import Reference
from github_ci.actions.version import to_major_tag
from github_ci.core.config import VersionFormat
from github_ci.workflow.workflow import Action, Workflow


@dataclass
class UpdateDecision:
    """A pending rewrite of one ``uses:`` reference.

    Built during a scan and consumed right away, either applied to the
    workflow or rendered in a dry-run report.
    """

    workflow: Workflow
    action: Action
    reference: Reference
    current_tag: str
    new_tag: str
    new_hash: str
    target_format: VersionFormat
    warning: str = ""

    def replacement(self) -> tuple[str, str]:
        """``(new_ref, comment)`` for the target format."""
        if self.target_format == "hash":
            return self.new_hash, self.new_tag
        if self.target_format == "major":
            return to_major_tag(self.new_tag), self.new_tag
        return self.new_tag, ""

    @property
    def new_uses(self) -> str:
        new_ref, _ = self.replacement()
        return self.reference.format_uses(new_ref)
