"""Sequential step executor."""

from stackctl.core.clock import Clock, SystemClock
from stackctl.core.exceptions import DeployError
from stackctl.core.logging import get_logger
from stackctl.deploy.models import (
    DeployResult,
    DeployStatus,
    Step,
    StepResult,
    StepStatus,
    utcnow,
)

logger = get_logger(__name__)


class Pipeline:
    """Runs steps strictly in order.

    A ``DeployError`` from a fatal step stops the run; from a warn step it is
    logged and the run continues. Any other exception propagates.
    """

    def __init__(self, steps: list[Step], clock: Clock | None = None):
        names = [step.name for step in steps]
        if len(set(names)) != len(names):
            raise ValueError("step names must be unique")
        self.steps = list(steps)
        self._clock = clock or SystemClock()

    def run(self, dry_run: bool = False) -> DeployResult:
        """Execute the pipeline.

        Args:
            dry_run: If True, list the steps without running them

        Returns:
            Deploy result
        """
        result = DeployResult(status=DeployStatus.IN_PROGRESS, started_at=utcnow())
        total = len(self.steps)

        for index, step in enumerate(self.steps, start=1):
            label = f"[{index}/{total}] {step.description or step.name}"
            step_result, error = self._execute_step(step, label, dry_run)
            result.steps.append(step_result)

            if step_result.status == StepStatus.FAILED:
                result.status = DeployStatus.FAILED
                result.failed_step = step.name
                result.error = error
                break

        if result.status == DeployStatus.IN_PROGRESS:
            result.status = DeployStatus.SUCCEEDED

        result.completed_at = utcnow()
        return result

    def _execute_step(
        self,
        step: Step,
        label: str,
        dry_run: bool,
    ) -> tuple[StepResult, DeployError | None]:
        """Execute a single step.

        Returns:
            Step result and the error it raised, if any
        """
        if not step.should_run():
            logger.info(f"{label}: skipped")
            return StepResult(name=step.name, status=StepStatus.SKIPPED), None

        if dry_run:
            logger.info(f"{label}: would run")
            return StepResult(name=step.name, status=StepStatus.DRY_RUN), None

        logger.info(label)
        started_at = utcnow()
        start = self._clock.monotonic()
        error: DeployError | None = None
        status = StepStatus.SUCCEEDED

        try:
            step.action()
        except DeployError as e:
            if e.step is None:
                e.step = step.name
            error = e
            if step.fatal:
                status = StepStatus.FAILED
                logger.error(f"Step '{step.name}' failed: {e}")
            else:
                status = StepStatus.WARNED
                logger.warning(f"Step '{step.name}' failed, continuing: {e}")

        step_result = StepResult(
            name=step.name,
            status=status,
            error=str(error) if error else None,
            duration=self._clock.monotonic() - start,
            started_at=started_at,
            completed_at=utcnow(),
        )
        return step_result, error
