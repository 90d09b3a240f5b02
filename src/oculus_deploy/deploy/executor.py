"""Deploy executor: dependency install, bounded synthesis retry, single deploy."""

import time
from typing import Callable, Dict, List, Optional

from oculus_deploy.deploy.backend import DeployBackend, ToolResult
from oculus_deploy.utils.errors import (
    ErrorContext,
    SynthesisError,
    ToolExecutionError,
)
from oculus_deploy.utils.logging import get_logger
from oculus_deploy.utils.retry import RetryStrategy

logger = get_logger(__name__)


class _SynthesisAttemptFailed(Exception):
    """One failed synthesis attempt; carries the tool result."""

    def __init__(self, result: ToolResult):
        super().__init__(f"{result.command_line} exited with {result.returncode}")
        self.result = result


class DeployExecutor:
    """Drives a DeployBackend through one deploy or destroy run.

    Synthesis is retried a bounded number of times with a fixed delay.
    Deploy and destroy run at most once and are never retried.
    """

    def __init__(
        self,
        backend: DeployBackend,
        synth_attempts: int = 3,
        synth_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize deploy executor.

        Args:
            backend: Infrastructure tool backend
            synth_attempts: Total synthesis attempts
            synth_delay: Fixed delay between synthesis attempts, in seconds
            sleep: Function used to wait between attempts
        """
        self.backend = backend
        self.synth_attempts = synth_attempts
        self.synth_delay = synth_delay
        self.sleep = sleep
        self.history: List[ToolResult] = []

    def prepare(self) -> ToolResult:
        """Install the backend's dependencies.

        Uses a clean lockfile install when possible and falls back to a
        regular install.

        Raises:
            ToolExecutionError: If no install variant succeeds
        """
        if self.backend.has_lockfile():
            result = self._record(self.backend.prepare(clean=True))
            if result.success:
                return result
            logger.warning("Clean install failed; attempting a regular install")

        result = self._record(self.backend.prepare(clean=False))
        if not result.success:
            raise ToolExecutionError(
                "Dependency install failed",
                context=ErrorContext(operation='prepare'),
                output=result.output,
                suggestions=['Run npm install in the CDK directory to see the full error'],
            )
        return result

    def synthesize(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        """Synthesize templates, retrying transient failures.

        Raises:
            SynthesisError: If every attempt fails
        """
        strategy = RetryStrategy(
            max_attempts=self.synth_attempts,
            delay=self.synth_delay,
            backoff=1.0,
            retry_on=(_SynthesisAttemptFailed,),
            sleep=self.sleep,
        )

        def attempt() -> ToolResult:
            logger.info(f"cdk synth (attempt {strategy.attempts_made}/{self.synth_attempts})",
                        extra={'attempt': strategy.attempts_made})
            result = self._record(self.backend.synthesize(context))
            if not result.success:
                raise _SynthesisAttemptFailed(result)
            return result

        try:
            return strategy.execute_with_retry(attempt, description='cdk synth')
        except _SynthesisAttemptFailed as e:
            raise SynthesisError(
                f"Synthesis failed after {strategy.attempts_made} attempts",
                context=ErrorContext(operation='synthesize'),
                cause=e,
                output=e.result.output,
            )

    def deploy(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        """Deploy once.

        Raises:
            ToolExecutionError: With the tool's output if the deploy fails
        """
        result = self._record(self.backend.deploy(context))
        if not result.success:
            raise ToolExecutionError(
                f"Deployment failed (exit code {result.returncode})",
                context=ErrorContext(operation='deploy'),
                output=result.output,
            )
        return result

    def destroy(self, context: Optional[Dict[str, str]] = None) -> ToolResult:
        """Destroy once.

        Raises:
            ToolExecutionError: With the tool's output if the destroy fails
        """
        result = self._record(self.backend.destroy(context))
        if not result.success:
            raise ToolExecutionError(
                f"Destroy failed (exit code {result.returncode})",
                context=ErrorContext(operation='destroy'),
                output=result.output,
                suggestions=['Some resources may need manual cleanup in the AWS console'],
            )
        return result

    def stack_exists(self, stack_name: str) -> bool:
        """Whether the app declares ``stack_name``; a failed listing means no."""
        result = self._record(self.backend.list_stacks())
        if not result.success:
            logger.warning(f"Could not list stacks: {result.tail(5)}")
            return False
        return stack_name in {line.strip() for line in result.output.splitlines()}

    def _record(self, result: ToolResult) -> ToolResult:
        self.history.append(result)
        return result
