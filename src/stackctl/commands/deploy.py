"""Deploy, preflight and status commands."""

import sys

import click

from stackctl.core.context import StackCtlContext, pass_context
from stackctl.core.exceptions import ConfigError, DeployError
from stackctl.core.logging import get_logger
from stackctl.core.output import format_duration
from stackctl.deploy.models import DeployResult, StepStatus
from stackctl.deploy.sequencer import DeploySequencer, create_compose, create_sequencer

logger = get_logger(__name__)


def _load_sequencer(ctx: StackCtlContext) -> DeploySequencer:
    """Load the stack configuration and build the sequencer, or exit 1."""
    try:
        config = ctx.stack_config
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)
    return create_sequencer(config, ctx.settings)


@click.command("deploy")
@pass_context
def deploy(ctx: StackCtlContext) -> None:
    """Build images and bring up the whole stack.

    \b
    Steps:
        1. check dependencies      5. optimize database
        2. build images            6. set up monitoring (ENABLE_MONITORING=true)
        3. stop old services       7. health check
        4. start core services     8. start load balancer
    """
    sequencer = _load_sequencer(ctx)
    result = sequencer.run(dry_run=ctx.dry_run)

    if ctx.dry_run:
        _print_plan(ctx, result)
    elif result.success:
        _print_summary(ctx, sequencer, result)

    sys.exit(result.exit_code)


def _print_plan(ctx: StackCtlContext, result: DeployResult) -> None:
    rows = [
        {"step": step.name, "action": "run" if step.status == StepStatus.DRY_RUN else step.status.value}
        for step in result.steps
    ]
    ctx.output.print_data(rows, title="Deploy plan")


def _print_summary(ctx: StackCtlContext, sequencer: DeploySequencer, result: DeployResult) -> None:
    duration = result.duration_seconds or 0.0
    ctx.output.print_success(f"Deploy finished in {format_duration(duration)}")

    for step in result.warnings:
        ctx.output.print_warning(f"{step.name}: {step.error}")

    ctx.output.print_data(
        sequencer.endpoints(),
        headers=["name", "url", "credentials"],
        title="Available services",
    )

    status = sequencer.status()
    ctx.output.print("\n[bold]Service status:[/bold]")
    if status.success:
        ctx.output.print_plain(status.stdout.rstrip())
    else:
        ctx.output.print_warning(f"Could not read service status: {status.error_summary()}")


@click.command("check")
@pass_context
def check(ctx: StackCtlContext) -> None:
    """Run the preflight checks only (tools and free disk space)."""
    sequencer = _load_sequencer(ctx)
    try:
        sequencer.check_dependencies()
    except DeployError as e:
        logger.error(str(e))
        sys.exit(1)
    ctx.output.print_success("All dependencies satisfied")


@click.command("status")
@pass_context
def status(ctx: StackCtlContext) -> None:
    """Show the status of the stack's services."""
    result = create_compose(ctx.settings).ps()
    if not result.success:
        logger.error(f"Could not read service status: {result.error_summary()}")
        sys.exit(1)
    ctx.output.print_plain(result.stdout.rstrip())
