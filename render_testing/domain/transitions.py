"""Lifecycle transition tables for render jobs, screenshots and test results.

Each table maps an action to the set of states it may be invoked from.
Entities call ``require()`` before mutating, so an invalid call raises
``InvalidTransitionError`` naming the current and required states.

RenderJob:
- queue: pending
- start: queued
- update_progress / complete: processing
- fail / cancel: pending, queued, processing
- update: pending, queued

Screenshot:
- start_capture: pending
- mark_captured: capturing
- start_processing: captured
- mark_ready: processing
- fail: any state except ready and archived
- retry: failed (budget checked separately)
- archive / add_comparison_result: ready
- update_capture_config: pending

TestResult:
- start: pending
- add_client_result / complete: running
- fail: any state
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Mapping, TypeVar

from render_testing.domain.errors import InvalidTransitionError
from render_testing.domain.types import RenderJobStatus, ScreenshotStatus, TestStatus

StateT = TypeVar("StateT", bound=Enum)


@dataclass(frozen=True)
class TransitionTable(Generic[StateT]):
    """Allowed source states per lifecycle action."""

    entity: str
    allowed: Mapping[str, frozenset[StateT]] = field(default_factory=dict)

    def sources(self, action: str) -> frozenset[StateT]:
        """States the action may be invoked from (empty if unknown)."""
        return self.allowed.get(action, frozenset())

    def can(self, action: str, current: StateT) -> bool:
        return current in self.sources(action)

    def require(self, action: str, current: StateT) -> None:
        """Raise InvalidTransitionError unless ``action`` is allowed from ``current``."""
        if not self.can(action, current):
            raise InvalidTransitionError(
                entity=self.entity,
                action=action,
                current=current.value,
                allowed=sorted(s.value for s in self.sources(action)),
            )

    def allowed_actions(self, current: StateT) -> list[str]:
        """Actions that may be invoked from ``current``."""
        return sorted(a for a, states in self.allowed.items() if current in states)


_JOB_OPEN = frozenset(
    {RenderJobStatus.PENDING, RenderJobStatus.QUEUED, RenderJobStatus.PROCESSING}
)

RENDER_JOB_TRANSITIONS: TransitionTable[RenderJobStatus] = TransitionTable(
    entity="render_job",
    allowed={
        "queue": frozenset({RenderJobStatus.PENDING}),
        "start": frozenset({RenderJobStatus.QUEUED}),
        "update_progress": frozenset({RenderJobStatus.PROCESSING}),
        "complete": frozenset({RenderJobStatus.PROCESSING}),
        "fail": _JOB_OPEN,
        "cancel": _JOB_OPEN,
        "update": frozenset({RenderJobStatus.PENDING, RenderJobStatus.QUEUED}),
    },
)

SCREENSHOT_TRANSITIONS: TransitionTable[ScreenshotStatus] = TransitionTable(
    entity="screenshot",
    allowed={
        "start_capture": frozenset({ScreenshotStatus.PENDING}),
        "mark_captured": frozenset({ScreenshotStatus.CAPTURING}),
        "start_processing": frozenset({ScreenshotStatus.CAPTURED}),
        "mark_ready": frozenset({ScreenshotStatus.PROCESSING}),
        "fail": frozenset(
            {
                ScreenshotStatus.PENDING,
                ScreenshotStatus.CAPTURING,
                ScreenshotStatus.CAPTURED,
                ScreenshotStatus.PROCESSING,
                ScreenshotStatus.FAILED,
            }
        ),
        "retry": frozenset({ScreenshotStatus.FAILED}),
        "exhaust_retries": frozenset({ScreenshotStatus.FAILED}),
        "archive": frozenset({ScreenshotStatus.READY}),
        "add_comparison_result": frozenset({ScreenshotStatus.READY}),
        "update_capture_config": frozenset({ScreenshotStatus.PENDING}),
    },
)

TEST_RESULT_TRANSITIONS: TransitionTable[TestStatus] = TransitionTable(
    entity="test_result",
    allowed={
        "start": frozenset({TestStatus.PENDING}),
        "add_client_result": frozenset({TestStatus.RUNNING}),
        "complete": frozenset({TestStatus.RUNNING}),
        "fail": frozenset(
            {
                TestStatus.PENDING,
                TestStatus.RUNNING,
                TestStatus.PASSED,
                TestStatus.FAILED,
                TestStatus.ERROR,
            }
        ),
    },
)
