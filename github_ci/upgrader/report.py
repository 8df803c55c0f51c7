"""Plain-text dry-run report."""

from __future__ import annotations

from github_ci.upgrader.models import UpdateDecision


def format_update(upd: UpdateDecision) -> str:
    """Render one pending change as an indented block."""
    new_ref, comment = upd.replacement()
    target = f"{upd.reference.name}@{new_ref}"
    lines = [
        f"  {upd.workflow.file}:{upd.action.line}",
        f"    {upd.action.uses}",
        f"    → {target} ({comment})" if comment else f"    → {target}",
    ]
    if upd.warning:
        lines.append(f"    ⚠ Warning: {upd.warning}")
    return "\n".join(lines)


def format_report(updates: list[UpdateDecision]) -> str:
    if not updates:
        return "✓ No updates available"
    blocks = [f"Would update {len(updates)} action(s):", ""]
    for upd in updates:
        blocks.append(format_update(upd))
        blocks.append("")
    return "\n".join(blocks).rstrip("\n")


def format_cache_stats(hits: int, misses: int) -> str | None:
    """One-line API usage summary, or ``None`` when no lookups happened."""
    if hits + misses == 0:
        return None
    return f"GitHub API: {misses} call(s), {hits} from cache"
