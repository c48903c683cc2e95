"""Container engine client driving docker and docker-compose."""

from stackctl.core.logging import get_logger
from stackctl.core.shell import CommandResult, CommandRunner

logger = get_logger(__name__)


class ComposeClient:
    """Thin wrapper over the container engine CLI.

    Every method returns the ``CommandResult``; deciding whether a failure is
    fatal belongs to the caller.
    """

    def __init__(
        self,
        runner: CommandRunner,
        compose_command: list[str] | None = None,
        compose_file: str | None = None,
        docker_command: str = "docker",
        build_timeout: int | None = None,
    ):
        self._runner = runner
        self._compose = list(compose_command or ["docker-compose"])
        self._compose_file = compose_file
        self._docker = docker_command
        self._build_timeout = build_timeout

    def _compose_args(self, compose_file: str | None = None) -> list[str]:
        args = list(self._compose)
        file = compose_file or self._compose_file
        if file:
            args.extend(["-f", file])
        return args

    def build(
        self,
        tag: str,
        context: str,
        build_args: dict[str, str] | None = None,
    ) -> CommandResult:
        """Build an image with ``docker build``."""
        args = [self._docker, "build", "-t", tag]
        for key, value in (build_args or {}).items():
            args.extend(["--build-arg", f"{key}={value}"])
        args.append(context)
        return self._runner.run(args, timeout=self._build_timeout)

    def up(self, services: list[str] | None = None, compose_file: str | None = None) -> CommandResult:
        """Start services detached."""
        args = self._compose_args(compose_file) + ["up", "-d"]
        args.extend(services or [])
        return self._runner.run(args)

    def down(self, remove_orphans: bool = True, compose_file: str | None = None) -> CommandResult:
        """Stop and remove the stack."""
        args = self._compose_args(compose_file) + ["down"]
        if remove_orphans:
            args.append("--remove-orphans")
        return self._runner.run(args)

    def exec(
        self,
        service: str,
        command: list[str],
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run a command inside a running service container.

        Values in ``env`` are set in the container with ``-e`` and masked
        wherever the command line is logged or reported.
        """
        env = env or {}
        args = self._compose_args() + ["exec", "-T"]
        for key, value in env.items():
            args.extend(["-e", f"{key}={value}"])
        args.append(service)
        args.extend(command)
        return self._runner.run(args, secrets=list(env.values()))

    def ps(self, compose_file: str | None = None) -> CommandResult:
        """List the stack's containers."""
        return self._runner.run(self._compose_args(compose_file) + ["ps"])
