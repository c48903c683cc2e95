"""Click context object for sharing state across commands."""

from __future__ import annotations

from pathlib import Path

import click

from stackctl.config import StackConfig, StackSettings, get_default_settings, load_stack_config
from stackctl.core.logging import LogLevel, StructuredLogger, setup_logging
from stackctl.core.output import OutputFormat, OutputFormatter


class StackCtlContext:
    """Shared context object for stackctl commands.

    This object is passed through Click's context mechanism and provides
    access to settings, output and the stack configuration.
    """

    def __init__(
        self,
        settings: StackSettings | None = None,
        env_file: str | None = None,
        output_format: OutputFormat = OutputFormat.TABLE,
        verbose: int = 0,
        quiet: bool = False,
        dry_run: bool = False,
        color: bool = True,
    ):
        self._settings = settings or get_default_settings()
        self._env_file = env_file
        self._quiet = quiet
        self._dry_run = dry_run
        self._color = color

        # Determine log level from verbosity
        if verbose >= 1:
            log_level = LogLevel.DEBUG
        elif quiet:
            log_level = LogLevel.ERROR
        else:
            log_level = self._settings.verbosity

        setup_logging(log_level, rich_output=color)
        self._logger = StructuredLogger("context")

        self._output = OutputFormatter(format=output_format, color=color, quiet=quiet)
        self._stack_config: StackConfig | None = None

    @property
    def settings(self) -> StackSettings:
        """Get the tool settings."""
        return self._settings

    @property
    def env_file(self) -> Path:
        """Path of the stack configuration file."""
        if self._env_file:
            return Path(self._env_file)
        return self._settings.resolve(self._settings.env_file)

    @property
    def stack_config(self) -> StackConfig:
        """Load the stack configuration on first use.

        Raises:
            ConfigError: If the env file is missing or invalid
        """
        if self._stack_config is None:
            env_path = self.env_file
            template = env_path.with_name(Path(self._settings.env_template).name)
            self._stack_config = load_stack_config(env_path, template)
            self._logger.debug("Loaded stack configuration", path=env_path)
        return self._stack_config

    @property
    def output(self) -> OutputFormatter:
        """Get the output formatter."""
        return self._output

    @property
    def dry_run(self) -> bool:
        """Check if dry-run mode is enabled."""
        return self._dry_run

    @property
    def quiet(self) -> bool:
        """Check if quiet mode is enabled."""
        return self._quiet


# Click decorator for passing context
pass_context = click.make_pass_decorator(StackCtlContext, ensure=True)
