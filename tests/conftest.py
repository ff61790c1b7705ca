"""Shared fixtures for the report generator tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON value (or raw text) into the `results` directory."""
    results = tmp_path / "results"
    results.mkdir()

    def _write(name: str, value=None, raw: str | None = None) -> Path:
        path = results / name
        path.write_text(raw if raw is not None else json.dumps(value), encoding="utf-8")
        return path

    _write.dir = results
    return _write


@pytest.fixture
def template_dir(tmp_path):
    path = tmp_path / "templates"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def restore_root_logging():
    # the CLI callback replaces the root handlers
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
