"""Decide, per action reference, whether and how to rewrite it."""

from __future__ import annotations

import structlog

from github_ci.actions.models import CacheStats
from github_ci.actions.parser import Reference, normalize_action_name, parse_uses
from github_ci.actions.resolver import Resolver
from github_ci.actions.version import compare, is_commit_hash, matches_constraint
from github_ci.core.config import Config
from github_ci.exceptions import (
    InvalidFormatError,
    ResolutionError,
    UpgradeError,
    WorkflowError,
)
from github_ci.upgrader.models import UpdateDecision
from github_ci.workflow.workflow import Action, Workflow

log = structlog.get_logger("github_ci.upgrader")

_HASH_PREVIEW_LEN = 12


def should_update(current_version: str, latest_tag: str, pattern: str) -> bool:
    """Whether *latest_tag* is a different version than *current_version*.

    Note that "different" includes going backwards: a ``^1.0.0`` constraint
    can move ``v3`` to ``v1.9.0`` if that is what the constraint selects.
    """
    if not latest_tag or current_version == latest_tag:
        return False
    if not is_commit_hash(current_version) and compare(current_version, latest_tag) == 0:
        return False
    if pattern and not matches_constraint(latest_tag, pattern):
        return False
    return True


class Upgrader:
    """Scans workflows for action references and upgrades them.

    The resolver is injected so tests can substitute a fake; one upgrader
    serves one command run.
    """

    def __init__(self, workflows: list[Workflow], config: Config, resolver: Resolver) -> None:
        self.workflows = workflows
        self.config = config
        self._resolver = resolver

    def cache_stats(self) -> CacheStats:
        return self._resolver.cache_stats()

    # ── public ─────────────────────────────────────────────────────────────

    async def find_updates(self) -> list[UpdateDecision]:
        """Check every reference in every workflow, one at a time.

        The first resolution failure aborts the scan; the decisions computed
        so far travel on the raised :class:`UpgradeError` as ``partial``.
        """
        updates: list[UpdateDecision] = []
        for wf in self.workflows:
            for action in wf.find_actions():
                try:
                    decision = await self.check_for_update(wf, action)
                except ResolutionError as exc:
                    name = normalize_action_name(action.uses)
                    raise UpgradeError(f"failed to check {name}: {exc}", partial=updates) from exc
                if decision is not None:
                    updates.append(decision)
        log.info("upgrader.scan_complete", workflows=len(self.workflows), updates=len(updates))
        return updates

    async def dry_run(self) -> list[UpdateDecision]:
        """Decisions only; nothing is written."""
        return await self.find_updates()

    async def upgrade(self) -> list[UpdateDecision]:
        """Apply every decision, then tidy comment spacing and save touched files."""
        updates = await self.find_updates()

        touched: dict[int, Workflow] = {}
        for upd in updates:
            _, comment = upd.replacement()
            try:
                upd.workflow.update_action_uses(upd.action.uses, upd.new_uses, comment)
            except WorkflowError as exc:
                raise UpgradeError(
                    f"failed to update action in {upd.workflow.file}: {exc}", partial=updates
                ) from exc
            touched[id(upd.workflow)] = upd.workflow
            log.info(
                "upgrader.applied",
                file=str(upd.workflow.file),
                line=upd.action.line,
                old=upd.action.uses,
                new=upd.new_uses,
            )

        for wf in touched.values():
            wf.normalize_comment_spacing()
            try:
                wf.save()
            except WorkflowError as exc:
                raise UpgradeError(str(exc), partial=updates) from exc

        return updates

    async def check_for_update(self, workflow: Workflow, action: Action) -> UpdateDecision | None:
        """Decision for one reference, or ``None`` when it is already as desired."""
        try:
            ref = parse_uses(action.uses)
        except InvalidFormatError:
            log.debug("upgrader.skip_unparseable", uses=action.uses, file=str(workflow.file))
            return None

        constraint = self.config.action_constraint(ref.name)
        current_version, warning = await self._resolve_current_version(ref)

        if constraint is None:
            latest_tag, latest_hash = await self._resolver.get_latest_version_unconstrained(
                ref.owner, ref.repo
            )
        else:
            latest_tag, latest_hash = await self._resolver.get_latest_version(
                ref.owner, ref.repo, current_version, constraint
            )

        target_format = self.config.version_format
        format_needs_update = ref.needs_format_change(target_format)

        # Pinned to exactly the latest commit and already in the right shape.
        if (
            ref.is_commit_hash
            and ref.is_at_latest(latest_tag, latest_hash)
            and not format_needs_update
        ):
            return None

        version_needs_update = should_update(current_version, latest_tag, constraint or "")
        if (
            target_format == "major"
            and ref.is_major_only
            and ref.is_at_latest(latest_tag, latest_hash)
        ):
            version_needs_update = False

        if not version_needs_update and not format_needs_update:
            return None

        return UpdateDecision(
            workflow=workflow,
            action=action,
            reference=ref,
            current_tag=current_version,
            new_tag=latest_tag,
            new_hash=latest_hash,
            target_format=target_format,
            warning=warning,
        )

    # ── internal ───────────────────────────────────────────────────────────

    async def _resolve_current_version(self, ref: Reference) -> tuple[str, str]:
        """The ref's version, looking up the tag behind a pinned hash.

        An unresolvable hash is not fatal: the hash itself stands in for the
        version and a warning is returned alongside.
        """
        if not ref.is_commit_hash:
            return ref.ref, ""

        try:
            tag = await self._resolver.get_tag_for_commit(ref.owner, ref.repo, ref.ref)
        except ResolutionError as exc:
            log.debug("upgrader.reverse_lookup_failed", action=ref.name, error=str(exc))
            tag = ""

        if not tag:
            preview = ref.ref[:_HASH_PREVIEW_LEN]
            return ref.ref, f"cannot resolve hash {preview} to a tag (may be unreleased commit)"
        return tag, ""
