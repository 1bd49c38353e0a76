"""Shared fixtures for CLI command tests."""

import json
import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config files and CONTEXTFIT_* variables out of CLI runs.

    Logging is raised to ERROR so degraded-build warnings stay off the
    captured output.
    """
    monkeypatch.chdir(tmp_path)
    with patch.object(Path, "home", return_value=tmp_path):
        with patch.dict(os.environ, {"CONTEXTFIT_LOG_LEVEL": "ERROR"}, clear=True):
            yield
    # setup_logging() attaches a handler to the runner's stderr on each invoke
    logging.getLogger("contextfit").handlers.clear()


@pytest.fixture
def request_file(tmp_path):
    """Write a build request and return its path.

    With the default heuristic (4 characters per token) the default request
    is 50 + 10 x 60 + 40 = 690 tokens.
    """

    def factory(**overrides) -> str:
        request = {
            "system_prompt": "s" * 200,
            "knowledge": [],
            "history": [
                {"role": "user" if i % 2 == 0 else "assistant", "text": "h" * 240}
                for i in range(10)
            ],
            "current_message": "c" * 160,
        }
        request.update(overrides)
        path = tmp_path / "request.json"
        path.write_text(json.dumps(request))
        return str(path)

    return factory
