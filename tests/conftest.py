"""Shared fixtures: shell scripts standing in for ffmpeg, global state resets."""

import logging
import os
from pathlib import Path

import pytest

from quickff.config import set_default_executable_path


def _write_tool(directory: Path, name: str, body: str) -> str:
    path = directory / name
    path.write_text("#!/bin/sh\n" + body)
    os.chmod(path, 0o755)
    return str(path)


@pytest.fixture
def cat_tool(tmp_path):
    """Copies stdin to stdout, ignoring its arguments."""
    return _write_tool(tmp_path, "cat-tool", "exec cat\n")


@pytest.fixture
def args_tool(tmp_path):
    """Consumes stdin, then prints each argument on its own line."""
    return _write_tool(
        tmp_path,
        "args-tool",
        'cat > /dev/null\nfor arg in "$@"; do printf "%s\\n" "$arg"; done\n',
    )


@pytest.fixture
def noisy_tool(tmp_path):
    """Writes two progress lines to stderr, then copies stdin to stdout."""
    return _write_tool(
        tmp_path,
        "noisy-tool",
        'echo "frame=1" >&2\necho "frame=2" >&2\nexec cat\n',
    )


@pytest.fixture
def failing_tool(tmp_path):
    """Consumes stdin and exits with code 3."""
    return _write_tool(
        tmp_path, "failing-tool", "cat > /dev/null\necho boom >&2\nexit 3\n"
    )


@pytest.fixture
def early_exit_tool(tmp_path):
    """Exits without reading stdin."""
    return _write_tool(tmp_path, "early-exit-tool", "exit 0\n")


@pytest.fixture(autouse=True)
def reset_default_executable():
    """Restore the process-wide default executable after each test."""
    yield
    set_default_executable_path(None)


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handlers installed by setup_logging during a test."""
    logger = logging.getLogger("quickff")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
