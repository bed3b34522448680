"""
Shared fixtures. Nothing here touches the real host: external commands go
through FakeRunner and HTTP requests through FakeHttp.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import pytest
import requests

from lemp_setup.commands import CommandResult, CommandStatus
from lemp_setup.config import Config
from lemp_setup.report import RunReport

Responder = Union[CommandResult, Callable[[List[str], Optional[str]], CommandResult]]


def result(
    stdout: str = "",
    returncode: int = 0,
    stderr: str = "",
    status: Optional[CommandStatus] = None,
    args: Optional[List[str]] = None,
) -> CommandResult:
    if status is None:
        status = CommandStatus.SUCCEEDED if returncode == 0 else CommandStatus.FAILED
    return CommandResult(args or [], status, returncode, stdout, stderr)


class FakeRunner:
    """Records every command and answers from rules matched by argv prefix."""

    def __init__(self, missing: Iterable[str] = ()):
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self.env: Dict[str, str] = {}
        self.envs: List[Dict[str, str]] = []
        self.missing = set(missing)
        self._rules: List[Tuple[List[str], Responder]] = []

    def on(self, prefix: List[str], response: Responder) -> "FakeRunner":
        """Register a response; later rules win over earlier ones."""
        self._rules.append((list(prefix), response))
        return self

    def on_sequence(self, prefix: List[str], responses: List[CommandResult]) -> "FakeRunner":
        """Answer successive matching calls in order, repeating the last one."""
        queue = list(responses)

        def respond(cmd: List[str], input: Optional[str]) -> CommandResult:
            return queue.pop(0) if len(queue) > 1 else queue[0]

        return self.on(prefix, respond)

    def run(self, cmd: List[str], input: Optional[str] = None) -> CommandResult:
        self.calls.append(list(cmd))
        self.inputs.append(input)
        self.envs.append(dict(self.env))
        if cmd[0] in self.missing:
            return CommandResult(cmd, CommandStatus.MISSING)
        for prefix, response in reversed(self._rules):
            if cmd[: len(prefix)] == prefix:
                return response(cmd, input) if callable(response) else response
        return CommandResult(cmd, CommandStatus.SUCCEEDED, 0, "", "")

    def exists(self, name: str) -> bool:
        return name not in self.missing

    def called(self, prefix: List[str]) -> List[List[str]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]


class FakeHttp:
    """Stands in for requests.get; unknown URLs fail to connect."""

    def __init__(self, routes: Optional[Dict[str, Union[str, Callable[[], str]]]] = None):
        self.routes = dict(routes or {})
        self.requested: List[str] = []

    def __call__(self, url: str, timeout: Optional[float] = None) -> SimpleNamespace:
        self.requested.append(url)
        if url not in self.routes:
            raise requests.ConnectionError(f"connection refused: {url}")
        body = self.routes[url]
        return SimpleNamespace(text=body() if callable(body) else body)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def report() -> RunReport:
    return RunReport(logging.getLogger("lemp_setup.tests"))


@pytest.fixture
def http() -> FakeHttp:
    return FakeHttp()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    conf_dir = tmp_path / "conf.d"
    web_root = tmp_path / "html"
    run_dir = tmp_path / "run"
    for d in (conf_dir, web_root, run_dir):
        d.mkdir()
    return Config(
        php_version="8.1",
        log_file=tmp_path / "lemp_install.log",
        nginx_conf_dir=conf_dir,
        web_root=web_root,
        fpm_socket_dir=run_dir,
        web_user=None,
    )
