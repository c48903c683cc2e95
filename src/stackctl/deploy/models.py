"""Deploy pipeline data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from stackctl.core.exceptions import DeployError


class FailurePolicy(str, Enum):
    """What a step failure does to the run."""

    FATAL = "fatal"
    WARN = "warn"


class StepStatus(str, Enum):
    """Step outcome."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    WARNED = "warned"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"


class DeployStatus(str, Enum):
    """Deploy run status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Step:
    """A named unit of work in the deploy pipeline."""

    name: str
    action: Callable[[], Any]
    description: str = ""
    policy: FailurePolicy = FailurePolicy.FATAL
    condition: Callable[[], bool] | None = None

    @property
    def fatal(self) -> bool:
        return self.policy == FailurePolicy.FATAL

    def should_run(self) -> bool:
        """Evaluate the step's gate."""
        return self.condition is None or bool(self.condition())


@dataclass
class StepResult:
    """Result from a single step execution."""

    name: str
    status: StepStatus
    error: str | None = None
    duration: float = 0.0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "error": self.error,
            "duration": round(self.duration, 3),
        }


@dataclass
class DeployResult:
    """Outcome of a deploy run."""

    status: DeployStatus = DeployStatus.PENDING
    steps: list[StepResult] = field(default_factory=list)
    failed_step: str | None = None
    error: DeployError | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        return self.status == DeployStatus.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    @property
    def warnings(self) -> list[StepResult]:
        return [s for s in self.steps if s.status == StepStatus.WARNED]

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at:
            end = self.completed_at or utcnow()
            return (end - self.started_at).total_seconds()
        return None

    def step(self, name: str) -> StepResult | None:
        """Find the result for a step by name."""
        for result in self.steps:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "failed_step": self.failed_step,
            "error": str(self.error) if self.error else None,
            "duration_seconds": self.duration_seconds,
            "steps": [s.to_dict() for s in self.steps],
        }
