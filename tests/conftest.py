"""Pytest fixtures for stackctl tests."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Generator
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from stackctl.clients.compose import ComposeClient
from stackctl.config import StackConfig, StackSettings
from stackctl.core.shell import CommandResult, CommandRunner
from stackctl.deploy.sequencer import DeploySequencer

GIB = 1024**3

VALID_ENV = {
    "DB_USER": "app",
    "DB_PASSWORD": "app-secret",
    "DB_ROOT_PASSWORD": "root-secret",
    "DB_MONITOR_PASSWORD": "monitor-secret",
    "DB_NAME": "highload",
    "REDIS_PASSWORD": "redis-secret",
    "GRAFANA_PASSWORD": "grafana-secret",
    "ENABLE_MONITORING": "false",
}


class FakeClock:
    """Clock that records sleeps instead of waiting."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    @property
    def waited(self) -> float:
        return sum(self.sleeps)


@dataclass
class _Rule:
    tokens: tuple[str, ...]
    returncodes: list[int]
    stdout: str = ""
    stderr: str = ""
    calls: int = field(default=0)


class FakeRunner(CommandRunner):
    """Command runner with scripted results.

    A rule matches when every token appears in the command. Rules added later
    win. A rule with several return codes hands them out in order and then
    repeats the last one.
    """

    def __init__(self, tools: set[str] | None = None) -> None:
        super().__init__()
        self.calls: list[tuple[str, ...]] = []
        self.secrets: list[tuple[str, ...]] = []
        self.tools = {"docker", "docker-compose"} if tools is None else set(tools)
        self._rules: list[_Rule] = []

    def on(
        self,
        *tokens: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        sequence: list[int] | None = None,
    ) -> None:
        codes = list(sequence) if sequence else [returncode]
        self._rules.insert(0, _Rule(tokens, codes, stdout, stderr))

    def run(
        self,
        args: list[str],
        timeout: int | None = None,
        secrets: list[str] | None = None,
    ) -> CommandResult:
        argv = tuple(args)
        hidden = tuple(s for s in (secrets or []) if s)
        self.calls.append(argv)
        self.secrets.append(hidden)

        for rule in self._rules:
            if all(token in argv for token in rule.tokens):
                index = min(rule.calls, len(rule.returncodes) - 1)
                rule.calls += 1
                return CommandResult(argv, rule.returncodes[index], rule.stdout, rule.stderr, secrets=hidden)

        return CommandResult(argv, 0, secrets=hidden)

    def which(self, tool: str) -> str | None:
        return f"/usr/bin/{tool}" if tool in self.tools else None

    def count(self, *tokens: str) -> int:
        """Number of commands containing every token."""
        return sum(1 for argv in self.calls if all(token in argv for token in tokens))


def make_stack_config(**overrides: str) -> StackConfig:
    values = {**VALID_ENV, **overrides}
    return StackConfig.model_validate({**values, "raw": values})


def write_env_file(directory: Path, values: dict[str, str] | None = None, name: str = ".env") -> Path:
    values = VALID_ENV if values is None else values
    path = directory / name
    path.write_text("".join(f"{key}={value}\n" for key, value in values.items()))
    return path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def stack_config() -> StackConfig:
    return make_stack_config()


@pytest.fixture
def settings() -> StackSettings:
    return StackSettings()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_runner() -> FakeRunner:
    runner = FakeRunner()
    runner.on("redis-cli", stdout="PONG\n")
    runner.on("ps", stdout="NAME    STATUS\nmysql   Up\n")
    return runner


@pytest.fixture
def http_check() -> MagicMock:
    return MagicMock(return_value={"healthy": True, "message": "HTTP 200"})


@pytest.fixture
def grafana() -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    return client


@pytest.fixture
def make_sequencer(
    stack_config: StackConfig,
    settings: StackSettings,
    fake_runner: FakeRunner,
    fake_clock: FakeClock,
    http_check: MagicMock,
    grafana: MagicMock,
) -> Callable[..., DeploySequencer]:
    """Factory for a sequencer wired to fakes."""

    def factory(**overrides: Any) -> DeploySequencer:
        config = overrides.pop("config", stack_config)
        stack_settings = overrides.pop("settings", settings)
        kwargs: dict[str, Any] = {
            "compose": ComposeClient(fake_runner, compose_command=stack_settings.compose_command),
            "runner": fake_runner,
            "clock": fake_clock,
            "disk_free": lambda path: 50 * GIB,
            "http_check": http_check,
            "grafana_factory": lambda: grafana,
        }
        kwargs.update(overrides)
        return DeploySequencer(config, stack_settings, **kwargs)

    return factory


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate each test from the caller's environment and settings files."""
    for var in ("STACKCTL_CONFIG", "STACKCTL_ENV_FILE"):
        monkeypatch.delenv(var, raising=False)

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))

    # The CLI replaces root handlers with ones bound to the runner's streams
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level

    yield

    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Empty project directory used as the working directory."""
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    return project
