"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides
common fixtures and configuration for all test files.
"""
from __future__ import annotations
import logging
import pytest
from pathlib import Path
from rich.logging import RichHandler


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root):
    """Return path to the default watcher configuration."""
    return project_root / "configs" / "watcher.yaml"


@pytest.fixture
def log_file(tmp_path):
    """Return path to an empty log file in a fresh temporary directory."""
    path = tmp_path / "x.log"
    path.write_bytes(b"")
    return path


@pytest.fixture(autouse=True)
def isolated_logging():
    """Drop the RichHandler the CLI installs on the root logger and restore the root level."""
    previous_root_level = logging.root.level

    try:
        yield
    finally:
        for handler in list(logging.root.handlers):
            if isinstance(handler, RichHandler):
                logging.root.removeHandler(handler)
                handler.close()
        logging.root.setLevel(previous_root_level)
