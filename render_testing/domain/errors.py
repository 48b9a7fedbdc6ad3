"""Domain error taxonomy for the render testing core.

- InvariantViolationError: a schema or business rule is broken at
  construction or mutation time (caller/programmer error).
- InvalidTransitionError: a lifecycle method was called from a state that
  forbids it.
- RetryExhaustedError: a screenshot retry was requested with no budget left.

External failures (worker crashes, analyzer timeouts) are not exceptions
here; they are recorded on the entities through ``fail(message)``.
"""

from typing import Iterable, Optional


class RenderTestingError(Exception):
    """Base class for all render testing domain errors."""


class InvariantViolationError(RenderTestingError):
    """Raised when an entity would violate a schema or business invariant."""

    def __init__(self, entity: str, message: str):
        self.entity = entity
        self.message = message
        super().__init__(f"{entity}: {message}")


class InvalidTransitionError(RenderTestingError):
    """Raised when a lifecycle transition is not allowed from the current state."""

    def __init__(
        self,
        entity: str,
        action: str,
        current: str,
        allowed: Iterable[str] = (),
        message: Optional[str] = None,
    ):
        self.entity = entity
        self.action = action
        self.current = current
        self.allowed = tuple(allowed)
        self.error_code = f"{entity}_{action}_from_{current}_not_allowed"
        if message is None:
            required = " or ".join(self.allowed) if self.allowed else "none"
            message = (
                f"Cannot {action} {entity} in '{current}' status "
                f"(requires: {required})"
            )
        self.message = message
        super().__init__(message)


class RetryExhaustedError(InvalidTransitionError):
    """Raised when retry() is called after the retry budget is spent."""

    def __init__(self, entity: str, retry_count: int, max_retries: int):
        self.retry_count = retry_count
        self.max_retries = max_retries
        super().__init__(
            entity=entity,
            action="retry",
            current="failed",
            allowed=("failed",),
            message=(
                f"Maximum retries exceeded for {entity} "
                f"({retry_count}/{max_retries})"
            ),
        )
        self.error_code = f"{entity}_retry_budget_exhausted"
