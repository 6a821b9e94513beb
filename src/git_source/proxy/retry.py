"""Bounded retry for network-sensitive git operations."""
import logging
from typing import Callable, Tuple, Type, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from git_source.core.errors import (
    DestinationCollisionError,
    OperationNotPermittedError,
    PreconditionError,
    ToolNotInstalledError,
)
from git_source.core.redaction import filter_credentials

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 2

# Retrying cannot change the outcome of these.
NEVER_RETRY: Tuple[Type[BaseException], ...] = (
    OperationNotPermittedError,
    ToolNotInstalledError,
    PreconditionError,
    DestinationCollisionError,
)


class RetryPolicy:
    """Run an operation once, then retry it up to ``attempts`` more times.

    Example:
        policy = RetryPolicy(attempts=2)
        policy.run("git fetch origin", lambda: runner.run("fetch origin"))
    """

    def __init__(
        self,
        attempts: int = DEFAULT_ATTEMPTS,
        wait_seconds: float = 0.0,
        never_retry: Tuple[Type[BaseException], ...] = NEVER_RETRY,
    ):
        if attempts < 0:
            raise ValueError(f"attempts must be >= 0; got {attempts}")
        self.attempts = attempts
        self.wait_seconds = wait_seconds
        self.never_retry = never_retry

    @property
    def total_runs(self) -> int:
        return self.attempts + 1

    def run(self, name: str, operation: Callable[[], T]) -> T:
        """Invoke operation, retrying on failure.

        Raises:
            The last exception raised by operation once attempts are exhausted,
            or immediately for exception types listed in ``never_retry``.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.total_runs),
            wait=wait_fixed(self.wait_seconds),
            retry=retry_if_not_exception_type(self.never_retry),
            before_sleep=self._log_retry(name),
            reraise=True,
        )
        return retrying(operation)

    def _log_retry(self, name: str) -> Callable[[RetryCallState], None]:
        def _log(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            logger.warning(
                f"Retrying {filter_credentials(name)} due to error "
                f"({retry_state.attempt_number + 1}/{self.total_runs}): "
                f"{type(error).__name__} {error}"
            )

        return _log
