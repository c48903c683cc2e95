"""Deploy orchestration module."""

from stackctl.deploy.models import (
    DeployResult,
    DeployStatus,
    FailurePolicy,
    Step,
    StepResult,
    StepStatus,
)
from stackctl.deploy.pipeline import Pipeline
from stackctl.deploy.polling import RetryPolicy, poll_until_ready
from stackctl.deploy.sequencer import DeploySequencer, create_sequencer

__all__ = [
    "DeployResult",
    "DeployStatus",
    "DeploySequencer",
    "FailurePolicy",
    "Pipeline",
    "RetryPolicy",
    "Step",
    "StepResult",
    "StepStatus",
    "create_sequencer",
    "poll_until_ready",
]
