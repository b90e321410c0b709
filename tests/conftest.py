"""Shared test fixtures for opscribe.

Provides reusable fixtures for the fixture API projects, in-memory file
registries, isolated config environments, output state, and running CLI
commands. These fixtures are automatically discovered by pytest and available
to all test modules without explicit imports.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from opscribe.models import ProjectIndex
from opscribe.output import OutputFormat, OutputManager, reset_output, set_output
from opscribe.store import FileRegistry


FIXTURES_DIR = Path(__file__).parent / "fixtures"
APIS_DIR = FIXTURES_DIR / "apis"


class MemoryHandle:
    """Content handle serving a fixed string; counts its reads."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.reads = 0

    async def read(self) -> str:
        self.reads += 1
        return self.text


def make_registry(files: dict[str, str]) -> FileRegistry:
    """Build a registry of :class:`MemoryHandle` from ``path -> text``."""
    return FileRegistry({path: MemoryHandle(text) for path, text in files.items()})


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager and the opscribe logger after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  The CLI callback also installs a
    RichHandler bound to those streams, which must not leak into the
    ``caplog`` assertions of later tests.
    """
    yield
    reset_output()
    logger = logging.getLogger("opscribe")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Project fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def apis_dir() -> Path:
    """Directory holding the ``Main`` and ``Legacy`` fixture projects."""
    return APIS_DIR


@pytest.fixture
async def main_index() -> ProjectIndex:
    """The ``Main`` fixture project indexed from disk."""
    from opscribe.indexer import index_local_project

    return await index_local_project(APIS_DIR, "Main/openapi.yaml")


@pytest.fixture
def memory_registry() -> Callable[[dict[str, str]], FileRegistry]:
    """Factory for in-memory registries, for tests that need odd layouts."""
    return make_registry


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config. Clears all OPSCRIBE_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("opscribe.config._is_xdg_platform", lambda: True)

    for var in [
        "OPSCRIBE_MAX_DEPTH",
        "OPSCRIBE_MAX_FILES",
        "OPSCRIBE_CONCURRENCY",
        "OPSCRIBE_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
