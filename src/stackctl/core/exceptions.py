"""Custom exceptions for stackctl."""

from typing import Any


class StackCtlError(Exception):
    """Base exception for all stackctl errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(StackCtlError):
    """Configuration-related errors."""

    pass


class GrafanaError(StackCtlError):
    """Grafana API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class DeployError(StackCtlError):
    """A deploy step failed."""

    def __init__(
        self,
        message: str,
        step: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.step = step


class PreconditionError(DeployError):
    """Required tools or resources are missing."""

    pass


class BuildError(DeployError):
    """A container image failed to build."""

    def __init__(
        self,
        message: str,
        image: str | None = None,
        step: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, step, details)
        self.image = image


class ReadinessTimeoutError(DeployError):
    """A service did not become ready within its retry budget."""

    def __init__(
        self,
        message: str,
        service: str | None = None,
        attempts: int = 0,
        step: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, step, details)
        self.service = service
        self.attempts = attempts


class CommandError(DeployError):
    """An external command exited unsuccessfully."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
        step: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, step, details)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class HealthCheckError(DeployError):
    """A post-deploy health check failed."""

    def __init__(
        self,
        message: str,
        check: str | None = None,
        step: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, step, details)
        self.check = check


class MonitoringError(DeployError):
    """Monitoring stack setup failed."""

    pass
