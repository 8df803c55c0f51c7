"""Workflow files: discover ``uses:`` references and rewrite them in place.

Edits are line-based so that comments, quoting and indentation survive; the
YAML parser is only used to reject files that are not valid YAML.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import structlog
import yaml

from github_ci.exceptions import WorkflowError

log = structlog.get_logger("github_ci.workflow")

# "- uses: owner/repo@ref  # comment", quoted or bare
_USES_RE = re.compile(
    r"""^(?P<prefix>\s*(?:-\s+)?uses:\s*)"""
    r"""(?P<quote>["']?)(?P<value>[^\s"'#]+)(?P=quote)"""
    r"""(?P<spacing>\s*)(?P<comment>\#.*)?$"""
)

# Comments written by a previous upgrade, e.g. "# v4.1.0"
_VERSION_COMMENT_RE = re.compile(r"^#\s*v?\d+(?:\.\d+)*\s*$")

_LOCAL_PREFIXES = ("./", "docker://")
_WORKFLOW_GLOBS = ("*.yml", "*.yaml")


@dataclass(frozen=True)
class Action:
    """A ``uses:`` value found in a workflow, with its 1-based line number."""

    uses: str
    line: int


class Workflow:
    """One workflow file held in memory until :meth:`save`."""

    def __init__(self, file: str | Path, content: str) -> None:
        self.file = Path(file)
        self._lines = content.splitlines(keepends=True)
        self._dirty = False

    @classmethod
    def load(cls, path: str | Path) -> Workflow:
        path = Path(path)
        try:
            with path.open(encoding="utf-8", newline="") as f:
                content = f.read()
        except OSError as exc:
            raise WorkflowError(f"failed to read workflow {path}: {exc}") from exc
        try:
            yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise WorkflowError(f"invalid YAML in {path}: {exc}") from exc
        return cls(path, content)

    @property
    def content(self) -> str:
        return "".join(self._lines)

    @property
    def dirty(self) -> bool:
        return self._dirty

    # ── discovery ──────────────────────────────────────────────────────────

    def find_actions(self) -> list[Action]:
        """Remote action references in file order; local and docker refs are skipped."""
        actions: list[Action] = []
        for lineno, line in enumerate(self._lines, start=1):
            m = _USES_RE.match(_strip_eol(line))
            if not m:
                continue
            value = m.group("value")
            if value.startswith(_LOCAL_PREFIXES):
                continue
            actions.append(Action(uses=value, line=lineno))
        return actions

    # ── editing ────────────────────────────────────────────────────────────

    def update_action_uses(self, old_uses: str, new_uses: str, comment: str = "") -> int:
        """Replace every ``uses: old_uses`` with ``new_uses``.

        With *comment*, the line ends in ``# comment``; without one, a stale
        version comment is dropped and any other comment is kept.  Calling
        again with the same arguments is a no-op.  Returns the number of
        lines changed.
        """
        changed = 0
        seen_new = False
        for i, line in enumerate(self._lines):
            body = _strip_eol(line)
            m = _USES_RE.match(body)
            if not m:
                continue
            value = m.group("value")
            if value == new_uses:
                seen_new = True
            if value != old_uses:
                continue

            existing = m.group("comment")
            if comment:
                new_comment: str | None = f"# {comment}"
            elif existing and _VERSION_COMMENT_RE.match(existing):
                new_comment = None
            else:
                new_comment = existing

            quote = m.group("quote")
            rebuilt = f"{m.group('prefix')}{quote}{new_uses}{quote}"
            if new_comment:
                rebuilt += (m.group("spacing") or " ") + new_comment
            new_line = rebuilt + line[len(body):]
            if new_line != line:
                self._lines[i] = new_line
                changed += 1
            seen_new = True

        if changed:
            self._dirty = True
            log.debug("workflow.updated", file=str(self.file), old=old_uses, new=new_uses)
        elif not seen_new:
            raise WorkflowError(f"action {old_uses} not found in {self.file}")
        return changed

    def normalize_comment_spacing(self) -> bool:
        """Make ``uses:`` lines end in ``value # comment``; return True if anything changed."""
        changed = False
        for i, line in enumerate(self._lines):
            body = _strip_eol(line)
            m = _USES_RE.match(body)
            if not m or not m.group("comment"):
                continue
            text = m.group("comment")[1:].strip()
            quote = m.group("quote")
            rebuilt = f"{m.group('prefix')}{quote}{m.group('value')}{quote} # {text}".rstrip()
            if rebuilt != body:
                self._lines[i] = rebuilt + line[len(body):]
                changed = True
        if changed:
            self._dirty = True
        return changed

    def save(self) -> bool:
        """Write pending changes to disk; returns False when there was nothing to write."""
        if not self._dirty:
            return False
        try:
            with self.file.open("w", encoding="utf-8", newline="") as f:
                f.write(self.content)
        except OSError as exc:
            raise WorkflowError(f"failed to write workflow {self.file}: {exc}") from exc
        self._dirty = False
        log.debug("workflow.saved", file=str(self.file))
        return True


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def load_workflow(path: str | Path) -> Workflow:
    return Workflow.load(path)


def load_workflows(directory: str | Path) -> list[Workflow]:
    """Load every ``*.yml`` / ``*.yaml`` file directly under *directory*."""
    directory = Path(directory)
    if not directory.is_dir():
        raise WorkflowError(f"workflow directory not found: {directory}")
    files = sorted(p for pattern in _WORKFLOW_GLOBS for p in directory.glob(pattern) if p.is_file())
    return [Workflow.load(p) for p in files]


def load_path(path: str | Path) -> list[Workflow]:
    """Load a workflow directory or a single workflow file."""
    path = Path(path)
    if path.is_dir():
        return load_workflows(path)
    if path.is_file():
        return [Workflow.load(path)]
    raise WorkflowError(f"failed to access path {path}")
