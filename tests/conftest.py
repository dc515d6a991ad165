"""Pytest configuration and fixtures for simplebackup tests."""

import logging
from pathlib import Path

import pytest
from hypothesis import settings, Phase

from simplebackup.config import Configuration, LockConfig, LoggingConfig
from simplebackup.logger import LOGGER_NAME

# Configure hypothesis to use fewer examples for faster test runs
# Disable shrinking phase to speed up tests further
settings.register_profile(
    "fast", 
    max_examples=2, 
    deadline=10000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate]
)
settings.register_profile("ci", max_examples=50, deadline=10000)
settings.register_profile("dev", max_examples=2, deadline=10000)

# Use the fast profile by default
settings.load_profile("fast")


@pytest.fixture
def workspace(tmp_path):
    """
    A projects directory holding the app directory and two source folders.

    Layout:
        projects/
            app/            backups live here
            projectA/       a.txt, sub/b.txt
            projectB/       c.txt
    """
    projects = tmp_path / "projects"
    app = projects / "app"
    app.mkdir(parents=True)

    project_a = projects / "projectA"
    (project_a / "sub").mkdir(parents=True)
    (project_a / "a.txt").write_text("alpha")
    (project_a / "sub" / "b.txt").write_text("beta")

    project_b = projects / "projectB"
    project_b.mkdir()
    (project_b / "c.txt").write_text("gamma")

    return projects


@pytest.fixture
def app_config(workspace, tmp_path):
    """Configuration rooted at workspace/app with locks and logs in tmp_path."""
    return Configuration(
        app_directory=workspace / "app",
        lock=LockConfig(lock_directory=tmp_path / "locks", timeout_seconds=1),
        logging=LoggingConfig(
            level="DEBUG",
            log_file=tmp_path / "logs" / "simplebackup.log",
            error_log_file=tmp_path / "logs" / "simplebackup.err",
        ),
    )


@pytest.fixture
def cleanup_logger():
    """Clean up logger handlers after each test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
