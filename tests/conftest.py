"""Shared pytest fixtures for github-ci tests."""

from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def write_workflow(tmp_path):
    """Write a workflow file under ``tmp_path`` and return its path."""

    def _write(content: str, name: str = "test.yml") -> Path:
        path = tmp_path / name
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def write_config(tmp_path):
    """Write ``.github-ci.yaml`` under ``tmp_path`` and return its path."""

    def _write(content: str) -> Path:
        path = tmp_path / ".github-ci.yaml"
        path.write_text(content)
        return path

    return _write
