"""Workflow documents: discovery and in-place editing of ``uses:`` lines."""

from github_ci.workflow.workflow import (
    Action,
    Workflow,
    load_path,
    load_workflow,
    load_workflows,
)

__all__ = ["Action", "Workflow", "load_path", "load_workflow", "load_workflows"]
