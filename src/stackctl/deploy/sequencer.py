"""Deploy sequencer for the application stack.

The deploy is a flat, ordered pipeline:

1. check_dependencies   - tools on PATH, free disk space
2. build_images         - application and proxy images
3. stop_old_services    - best-effort teardown of the previous stack
4. start_core_services  - database and cache, then application and proxy,
                          each group followed by a readiness poll
5. optimize_database    - monitoring account and runtime tuning
6. setup_monitoring     - only with ENABLE_MONITORING=true, never fatal
7. health_check         - proxy endpoint, application self-check, cache ping
8. start_load_balancer
"""

import shutil
from string import Template
from typing import Any, Callable

import httpx

from stackctl.clients.compose import ComposeClient
from stackctl.clients.grafana import GrafanaClient
from stackctl.config import ServiceNames, StackConfig, StackSettings
from stackctl.core.clock import Clock, SystemClock
from stackctl.core.exceptions import (
    BuildError,
    CommandError,
    GrafanaError,
    HealthCheckError,
    MonitoringError,
    PreconditionError,
)
from stackctl.core.logging import get_logger
from stackctl.core.output import format_bytes
from stackctl.core.shell import CommandResult, CommandRunner
from stackctl.deploy.health import check_http
from stackctl.deploy.models import DeployResult, FailurePolicy, Step
from stackctl.deploy.pipeline import Pipeline
from stackctl.deploy.polling import RetryPolicy, poll_until_ready

logger = get_logger(__name__)

HTTP_CONFLICT = 409


def _disk_free(path: str) -> int:
    return shutil.disk_usage(path).free


def _sql_literal(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class DeploySequencer:
    """Runs the deploy pipeline against the container engine.

    All collaborators are injectable; the defaults talk to the real system.
    """

    def __init__(
        self,
        config: StackConfig,
        settings: StackSettings,
        compose: ComposeClient,
        runner: CommandRunner,
        clock: Clock | None = None,
        disk_free: Callable[[str], int] = _disk_free,
        http_check: Callable[[str, float], dict[str, Any]] = check_http,
        grafana_factory: Callable[[], GrafanaClient] | None = None,
    ):
        self.config = config
        self.settings = settings
        self._compose = compose
        self._runner = runner
        self._clock = clock or SystemClock()
        self._disk_free = disk_free
        self._http_check = http_check
        self._grafana_factory = grafana_factory or (
            lambda: GrafanaClient(settings.grafana, config.grafana_password)
        )
        self.readiness = RetryPolicy(
            max_attempts=settings.readiness.max_attempts,
            interval=settings.readiness.interval,
        )

    @property
    def services(self) -> ServiceNames:
        return self.settings.services

    def steps(self) -> list[Step]:
        """The deploy pipeline, in execution order."""
        return [
            Step("check_dependencies", self.check_dependencies, "Checking dependencies"),
            Step("build_images", self.build_images, "Building images"),
            Step(
                "stop_old_services",
                self.stop_old_services,
                "Stopping old services",
                policy=FailurePolicy.WARN,
            ),
            Step("start_core_services", self.start_core_services, "Starting services"),
            Step("optimize_database", self.optimize_database, "Optimizing database"),
            Step(
                "setup_monitoring",
                self.setup_monitoring,
                "Setting up monitoring",
                policy=FailurePolicy.WARN,
                condition=lambda: self.config.enable_monitoring,
            ),
            Step("health_check", self.health_check, "Checking service health"),
            Step("start_load_balancer", self.start_load_balancer, "Starting load balancer"),
        ]

    def run(self, dry_run: bool = False) -> DeployResult:
        """Run the whole pipeline, stopping at the first fatal failure."""
        logger.info("Starting deploy")
        result = Pipeline(self.steps(), clock=self._clock).run(dry_run=dry_run)

        if result.success:
            if dry_run:
                logger.info("Dry run complete, nothing was changed")
            else:
                logger.info("Deploy completed successfully")
        else:
            logger.error(f"Deploy failed at step '{result.failed_step}'")
        return result

    # Step 1
    def check_dependencies(self) -> None:
        """Verify required tools and free disk space."""
        missing = [tool for tool in self.settings.required_tools if not self._runner.which(tool)]
        if missing:
            raise PreconditionError(
                f"Required tools not installed: {', '.join(missing)}",
                details={"missing": missing},
            )

        path = self.settings.disk_path
        try:
            free = self._disk_free(path)
        except OSError as e:
            raise PreconditionError(f"Cannot read free disk space on {path}: {e}")

        required = self.settings.min_free_disk_bytes
        # Exactly the threshold is not enough
        if free <= required:
            raise PreconditionError(
                f"Not enough free disk space on {path}: {format_bytes(free)} free, "
                f"more than {format_bytes(required)} required"
            )
        logger.debug(f"Free disk space on {path}: {format_bytes(free)}")

    # Step 2
    def build_images(self) -> None:
        """Build the application and proxy images."""
        for image in self.settings.images:
            logger.info(f"Building {image.name} image {image.tag}")
            result = self._compose.build(image.tag, image.context, image.build_args)
            if not result.success:
                raise BuildError(
                    f"Failed to build {image.name} image {image.tag}: {result.error_summary()}",
                    image=image.tag,
                )

    # Step 3
    def stop_old_services(self) -> None:
        """Tear down any previous stack. Failure is reported but not fatal."""
        result = self._compose.down(remove_orphans=True)
        if not result.success:
            raise self._command_error("Failed to stop old services", result)

    # Step 4
    def start_core_services(self) -> None:
        """Start the stack in dependency order with readiness polls."""
        self._up([self.services.database, self.services.cache], "database and cache")

        logger.info(f"Waiting for {self.services.database} to become ready")
        attempts = poll_until_ready(
            self.database_ready, self.readiness, self._clock, service=self.services.database
        )
        logger.info(f"{self.services.database} is ready ({attempts} attempt(s))")

        self._up([self.services.app, self.services.proxy], "application and proxy")

        logger.info(f"Waiting for {self.services.app} to become ready")
        attempts = poll_until_ready(self.app_ready, self.readiness, self._clock, service=self.services.app)
        logger.info(f"{self.services.app} is ready ({attempts} attempt(s))")

    def database_ready(self) -> bool:
        """Ping the database as the application user."""
        result = self._compose.exec(
            self.services.database,
            ["mysqladmin", "ping", "-h", "localhost", "-u", self.config.db_user, "--silent"],
            env={"MYSQL_PWD": self.config.db_password},
        )
        return result.success

    def app_ready(self) -> bool:
        """Run the application runtime's self-check."""
        return self._compose.exec(self.services.app, self.settings.app_check_command).success

    # Step 5
    def optimize_database(self) -> None:
        """Create the monitoring account and tune runtime parameters."""
        db = self.settings.database
        account = f"{_sql_literal(db.monitor_user)}@'%'"
        self._mysql(
            [
                f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY {_sql_literal(self.config.db_monitor_password)};",
                f"GRANT {', '.join(db.monitor_grants)} ON *.* TO {account};",
                "FLUSH PRIVILEGES;",
            ],
            "Failed to create monitoring user",
        )
        self._mysql(
            [f"SET GLOBAL {name} = {int(value)};" for name, value in db.tuning.items()],
            "Failed to tune database",
            database=self.config.db_name,
        )

    def _mysql(self, statements: list[str], failure: str, database: str | None = None) -> None:
        command = ["mysql", "-u", "root"]
        if database:
            command.append(database)
        command.extend(["-e", "\n".join(statements)])

        result = self._compose.exec(
            self.services.database,
            command,
            env={"MYSQL_PWD": self.config.db_root_password},
        )
        if not result.success:
            raise self._command_error(failure, result)

    # Step 6
    def setup_monitoring(self) -> None:
        """Start the monitoring stack and register the metrics datasource."""
        result = self._compose.up(compose_file=self.settings.monitoring_compose_file)
        if not result.success:
            raise MonitoringError(f"Failed to start monitoring stack: {result.error_summary()}")

        logger.info(f"Waiting {self.settings.settle_delay:g}s for Grafana to start")
        self._clock.sleep(self.settings.settle_delay)

        datasource = self.settings.grafana.datasource
        try:
            with self._grafana_factory() as grafana:
                grafana.create_datasource(datasource)
        except GrafanaError as e:
            if e.status_code == HTTP_CONFLICT:
                logger.info(f"Grafana datasource '{datasource.name}' already exists")
                return
            raise MonitoringError(f"Failed to create Grafana datasource '{datasource.name}': {e}")
        except httpx.HTTPError as e:
            raise MonitoringError(f"Failed to reach Grafana at {self.settings.grafana.url}: {e}")

        logger.info(f"Registered Grafana datasource '{datasource.name}'")

    # Step 7
    def health_check(self) -> None:
        """Verify proxy, application runtime and cache."""
        url = self.settings.health_url
        probe = self._http_check(url, self.settings.http_timeout)
        if not probe["healthy"]:
            raise HealthCheckError(
                f"{self.services.proxy} is not responding at {url}: {probe['message']}",
                check="proxy",
            )

        if not self.app_ready():
            raise HealthCheckError(f"{self.services.app} is not responding", check="app")

        result = self._compose.exec(
            self.services.cache,
            ["redis-cli", "ping"],
            env={"REDISCLI_AUTH": self.config.redis_password},
        )
        if not result.success or "PONG" not in result.stdout:
            raise HealthCheckError(f"{self.services.cache} is not responding", check="cache")

        logger.info("All services are healthy")

    # Step 8
    def start_load_balancer(self) -> None:
        """Start the load balancer."""
        self._up([self.services.load_balancer], "load balancer")

    def _up(self, services: list[str], label: str) -> None:
        result = self._compose.up(services)
        if not result.success:
            raise self._command_error(f"Failed to start {label}", result)

    def _command_error(self, message: str, result: CommandResult) -> CommandError:
        return CommandError(
            f"{message}: {result.error_summary()}",
            command=result.command_line,
            returncode=result.returncode,
            stderr=result.stderr,
        )

    def endpoints(self) -> list[dict[str, str]]:
        """Reachable endpoints for the summary."""
        rows = []
        for endpoint in self.settings.endpoints:
            row = {"name": endpoint.name, "url": endpoint.url}
            if endpoint.credentials:
                row["credentials"] = Template(endpoint.credentials).safe_substitute(self.config.raw)
            rows.append(row)
        return rows

    def status(self) -> CommandResult:
        """Current service status."""
        return self._compose.ps()


def create_compose(settings: StackSettings, runner: CommandRunner | None = None) -> ComposeClient:
    """Build a compose client from settings."""
    runner = runner or CommandRunner(cwd=settings.project_dir, default_timeout=settings.command_timeout)
    return ComposeClient(
        runner,
        compose_command=settings.compose_command,
        compose_file=settings.compose_file,
        build_timeout=settings.build_timeout,
    )


def create_sequencer(config: StackConfig, settings: StackSettings) -> DeploySequencer:
    """Build a sequencer wired to the real container engine."""
    runner = CommandRunner(cwd=settings.project_dir, default_timeout=settings.command_timeout)
    return DeploySequencer(config, settings, create_compose(settings, runner), runner)
