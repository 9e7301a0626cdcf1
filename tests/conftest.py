import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Set
from unittest.mock import MagicMock

import httpx
import pytest
from typer.testing import CliRunner

from namesweep.domain.interfaces.user_interface import UserInterface
from namesweep.domain.models.run_config import RunConfig
from namesweep.infrastructure.config.settings import clear_test_config, reset_configuration


class FakeLookupService:
    """In-memory stand-in for the remote lookup service, served through httpx.MockTransport.

    Keys in ``taken`` are reported as taken, everything else as available.
    ``statuses`` maps a key to a list of status codes returned (in order) for
    single lookups of that key before it starts answering normally.
    """

    def __init__(
        self,
        taken: Optional[Set[str]] = None,
        statuses: Optional[Dict[str, List[int]]] = None,
        batch_status: int = 200,
        batch_body: Optional[object] = None,
    ):
        self.taken = set(taken or ())
        self.statuses = {k: list(v) for k, v in (statuses or {}).items()}
        self.batch_status = batch_status
        self.batch_body = batch_body
        self.single_calls: List[str] = []
        self.batch_calls: List[List[str]] = []
        self.headers_seen: List[httpx.Headers] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.headers_seen.append(request.headers)
        path = request.url.path
        if request.method == "POST" and path == "/check/batch":
            keys = json.loads(request.content)["keys"]
            self.batch_calls.append(keys)
            if self.batch_body is not None:
                return httpx.Response(self.batch_status, json=self.batch_body)
            # Keys with scripted failures are left out so they fall back to single lookups
            results = [{"key": k, "available": k not in self.taken} for k in keys if not self.statuses.get(k)]
            return httpx.Response(self.batch_status, json={"results": results})

        if request.method == "GET" and path.startswith("/check/"):
            key = path[len("/check/"):]
            self.single_calls.append(key)
            pending = self.statuses.get(key)
            if pending:
                status = pending.pop(0)
                return httpx.Response(status, json={"error": "nope"})
            return httpx.Response(200, json={"available": key not in self.taken})

        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def fast_config(**overrides) -> RunConfig:
    """RunConfig with shaping off and zero backoff so tests never really sleep."""
    values = dict(
        workers=2,
        concurrency=4,
        shaping_enabled=False,
        rate_limit_backoff=0.0,
        retry_backoff=0.0,
        backoff_jitter=0.0,
        base_url="http://lookup.test",
    )
    values.update(overrides)
    return RunConfig(**values)


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def lookup_service():
    return FakeLookupService()


@pytest.fixture
def work_dir(tmp_path: Path, monkeypatch):
    """Runs the test from an empty temporary working directory."""
    base = tmp_path / "run"
    base.mkdir()
    monkeypatch.chdir(base)
    return base


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path):
    """Keeps the user's ~/.namesweep config and NAMESWEEP_* variables out of tests."""
    monkeypatch.setattr(
        "namesweep.infrastructure.config.settings.DEFAULT_CONFIG_FILE", tmp_path / "no-config.yaml"
    )
    for name in list(os.environ):
        if name.startswith("NAMESWEEP_"):
            monkeypatch.delenv(name)
    reset_configuration()
    yield
    clear_test_config()
    reset_configuration()


@pytest.fixture
def restore_root_logger():
    """Undoes setup_logging() so handlers do not leak between tests."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
