"""CLI entry point: github-ci.

Subcommands:
    github-ci upgrade [PATH] [--dry-run]    # Upgrade actions in workflows
    github-ci init [--update] [--defaults]  # Create or extend .github-ci.yaml
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import NoReturn

import click

from github_ci.actions.github_client import GitHubClient
from github_ci.actions.models import CacheStats
from github_ci.actions.parser import normalize_action_name
from github_ci.actions.resolver import ActionResolver
from github_ci.core.config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_WORKFLOWS_PATH,
    Config,
    load_config,
    save_config,
)
from github_ci.core.logging import setup_logging
from github_ci.exceptions import ConfigError, UpgradeError, WorkflowError
from github_ci.upgrader import Upgrader, format_cache_stats, format_report
from github_ci.upgrader.models import UpdateDecision
from github_ci.workflow.workflow import Workflow, load_path


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


async def _run_upgrade(
    workflows: list[Workflow], cfg: Config, dry_run: bool
) -> tuple[list[UpdateDecision], CacheStats]:
    async with GitHubClient() as client:
        upgrader = Upgrader(workflows, cfg, ActionResolver(client))
        run = upgrader.dry_run() if dry_run else upgrader.upgrade()
        try:
            updates = await asyncio.wait_for(run, timeout=cfg.timeout)
        finally:
            stats = upgrader.cache_stats()
        return updates, stats


def _print_cache_stats(stats: CacheStats) -> None:
    line = format_cache_stats(stats.hits, stats.misses)
    if line:
        click.echo(f"\n{line}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """github-ci: keep GitHub Actions references in workflows up to date."""
    setup_logging(verbose)


@main.command("upgrade")
@click.argument("path", required=False)
@click.option(
    "-p",
    "--path",
    "path_opt",
    default=DEFAULT_WORKFLOWS_PATH,
    help="Path to workflow directory or file",
)
@click.option(
    "-c", "--config", "config_file", default=DEFAULT_CONFIG_FILE, help="Path to configuration file"
)
@click.option("--dry-run", is_flag=True, help="Show what would be updated without making changes")
def upgrade(path: str | None, path_opt: str, config_file: str, dry_run: bool) -> None:
    """Check for newer versions of actions in all workflows and update them.

    PATH can be a workflow directory or a single workflow file; it defaults
    to .github/workflows.
    """
    workflows_path = path or path_opt
    try:
        workflows = load_path(workflows_path)
    except WorkflowError as e:
        _fail(f"failed to load workflows: {e}")

    try:
        cfg = load_config(config_file)
    except ConfigError as e:
        _fail(f"failed to load config: {e}")

    verb = "check for upgrades" if dry_run else "upgrade workflows"
    try:
        updates, stats = asyncio.run(_run_upgrade(workflows, cfg, dry_run))
    except UpgradeError as e:
        if dry_run and e.partial:
            click.echo(format_report(e.partial))
        _fail(f"failed to {verb}: {e}")
    except asyncio.TimeoutError:
        _fail(f"failed to {verb}: timed out after {cfg.timeout:g}s")

    if dry_run:
        click.echo(format_report(updates))
    else:
        click.echo("✓ Upgrade completed successfully")
    _print_cache_stats(stats)


@main.command("init")
@click.option(
    "-p",
    "--path",
    "path_opt",
    default=DEFAULT_WORKFLOWS_PATH,
    help="Path to workflow directory or file",
)
@click.option(
    "-c", "--config", "config_file", default=DEFAULT_CONFIG_FILE, help="Path to configuration file"
)
@click.option(
    "-u", "--update", is_flag=True, help="Update existing config with new actions from workflows"
)
@click.option(
    "-d", "--defaults", is_flag=True, help="Discover workflow actions with default constraints"
)
def init(path_opt: str, config_file: str, update: bool, defaults: bool) -> None:
    """Create a .github-ci.yaml configuration file.

    An existing file is only touched with --update, which adds any actions
    found in workflows that the config does not list yet.
    """
    config_exists = Path(config_file).is_file()
    if config_exists and not update:
        _fail(f"config file {config_file} already exists (use --update to add new actions)")

    cfg = Config()
    if config_exists:
        try:
            cfg = load_config(config_file)
        except ConfigError as e:
            _fail(f"failed to load existing config: {e}")

    new_actions: list[str] = []
    if update or defaults:
        try:
            workflows = load_path(path_opt)
        except WorkflowError as e:
            if config_exists:
                _fail(f"failed to load workflows: {e}")
            workflows = []
        new_actions = discover_actions(cfg, workflows)

    try:
        save_config(cfg, config_file)
    except ConfigError as e:
        _fail(f"failed to save config: {e}")

    if config_exists and new_actions:
        click.echo(f"✓ Updated {config_file} with {len(new_actions)} new action(s):")
        for name in new_actions:
            click.echo(f"  - {name}")
    elif config_exists:
        click.echo("✓ No new actions found in workflows")
    elif new_actions:
        click.echo(f"✓ Created {config_file} with {len(new_actions)} action(s)")
    else:
        click.echo(f"✓ Created {config_file}")


def discover_actions(cfg: Config, workflows: list[Workflow]) -> list[str]:
    """Add unlisted actions to *cfg* with the default constraint; return their names."""
    new_actions: list[str] = []
    for wf in workflows:
        for action in wf.find_actions():
            name = normalize_action_name(action.uses)
            if not name or cfg.action_constraint(name) is not None:
                continue
            cfg.set_action_constraint(name)
            new_actions.append(name)
    return new_actions
