"""Main CLI entry point for stackctl."""

import sys
from typing import Any

import click
from rich.console import Console

from stackctl import __version__
from stackctl.config import load_settings
from stackctl.core.context import StackCtlContext
from stackctl.core.exceptions import ConfigError, StackCtlError
from stackctl.core.output import OutputFormat, OutputFormatter


CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


class OutputFormatType(click.ParamType):
    """Custom Click parameter type for output format."""

    name = "format"

    def convert(
        self,
        value: Any,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> OutputFormat:
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat(value.lower())
        except ValueError:
            self.fail(
                f"Invalid format '{value}'. Choose from: table, json, yaml, raw",
                param,
                ctx,
            )


OUTPUT_FORMAT = OutputFormatType()


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console = Console()
    console.print(f"stackctl version {__version__}")
    ctx.exit()


@click.group(context_settings=CONTEXT_SETTINGS, invoke_without_command=True)
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    metavar="FILE",
    envvar="STACKCTL_CONFIG",
    help="Path to settings file",
)
@click.option(
    "-e",
    "--env-file",
    type=click.Path(dir_okay=False),
    metavar="FILE",
    envvar="STACKCTL_ENV_FILE",
    help="Path to the stack configuration (default: .env)",
)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=OUTPUT_FORMAT,
    default="table",
    metavar="FORMAT",
    help="Output format: table, json, yaml, raw",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Show debug output, including the commands being run",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Only show errors",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show the steps that would run without running them",
)
@click.option(
    "--no-color",
    is_flag=True,
    help="Disable colored output",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: str | None,
    env_file: str | None,
    output_format: OutputFormat,
    verbose: int,
    quiet: bool,
    dry_run: bool,
    no_color: bool,
) -> None:
    """stackctl - deploy the containerized web application stack.

    Without a command, runs the full deploy.

    \b
    Examples:
        stackctl
        stackctl --dry-run
        stackctl check
        stackctl status

    \b
    Configuration:
        ./.env                       Stack configuration (credentials, flags)
        ~/.stackctl/config.yaml      User settings
        ./stackctl.yaml              Project settings
    """
    try:
        settings = load_settings(config_file)
    except ConfigError as e:
        OutputFormatter(color=not no_color).print_error(f"Configuration error: {e}")
        sys.exit(1)

    ctx.obj = StackCtlContext(
        settings=settings,
        env_file=env_file,
        output_format=output_format,
        verbose=verbose,
        quiet=quiet,
        dry_run=dry_run,
        color=not no_color,
    )

    if ctx.invoked_subcommand is None:
        from stackctl.commands.deploy import deploy

        ctx.invoke(deploy)


def register_commands() -> None:
    """Register all commands."""
    from stackctl.commands.deploy import check, deploy, status

    cli.add_command(deploy)
    cli.add_command(check)
    cli.add_command(status)


register_commands()


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show the effective settings and stack configuration."""
    stack_ctx: StackCtlContext = ctx.obj
    stack_ctx.output.print_data(
        stack_ctx.settings.model_dump(mode="json"),
        title="Settings",
    )

    try:
        stack_config = stack_ctx.stack_config
    except ConfigError as e:
        stack_ctx.output.print_warning(str(e))
        return

    stack_ctx.output.print_data(stack_config.masked(), title=f"Stack configuration ({stack_ctx.env_file})")


def main() -> None:
    """Main entry point."""
    try:
        exit_code = cli(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except StackCtlError as e:
        OutputFormatter().print_error(str(e))
        sys.exit(1)
    except (click.Abort, KeyboardInterrupt):
        console = Console(stderr=True)
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)

    if isinstance(exit_code, int) and exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
