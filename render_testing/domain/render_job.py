"""Render job entity: the unit of work a caller submits."""

from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import Field, field_validator

from render_testing.domain.base import DomainEntity, DomainModel
from render_testing.domain.clock import IdFactory, default_id_factory, elapsed_seconds, utcnow
from render_testing.domain.transitions import RENDER_JOB_TRANSITIONS
from render_testing.domain.types import RenderJobStatus, ScreenshotFormat
from render_testing.domain.values import JobPriority, Progress, Viewport, default_viewports


class RenderJobConfig(DomainModel):
    """Which clients and viewports to render, and which analyses to run."""

    clients: list[str] = Field(..., min_length=1, description="Email client IDs")
    viewports: list[Viewport] = Field(default_factory=default_viewports, min_length=1)
    dark_mode_enabled: bool = False
    accessibility_testing: bool = True
    performance_analysis: bool = True
    spam_analysis: bool = True
    screenshot_format: ScreenshotFormat = ScreenshotFormat.PNG
    screenshot_quality: int = Field(default=90, ge=60, le=100)

    @field_validator("clients")
    @classmethod
    def clients_not_blank(cls, v: list[str]) -> list[str]:
        if any(not c.strip() for c in v):
            raise ValueError("client IDs must not be blank")
        return v

    def requested_analyses(self) -> list[str]:
        """Names of the side analyses this job asks for."""
        flags = {
            "accessibility": self.accessibility_testing,
            "performance": self.performance_analysis,
            "spam": self.spam_analysis,
        }
        return [name for name, enabled in flags.items() if enabled]


# Fields update() may touch
_UPDATABLE_FIELDS = frozenset(
    {"html_content", "subject", "preheader", "template_id", "config", "priority"}
)


class RenderJob(DomainEntity):
    """A submitted render test.

    Lifecycle: pending -> queued -> processing -> completed, with fail and
    cancel allowed from any non-terminal state.
    """

    entity_name = "render_job"

    id: UUID
    user_id: str = Field(..., min_length=1)
    template_id: Optional[UUID] = None
    html_content: str
    subject: Optional[str] = Field(default=None, max_length=255)
    preheader: Optional[str] = Field(default=None, max_length=255)
    config: RenderJobConfig
    status: RenderJobStatus = RenderJobStatus.PENDING
    priority: JobPriority = JobPriority.NORMAL
    progress: int = Field(default=0, ge=0, le=100)
    estimated_duration: Optional[int] = Field(default=None, ge=0, description="Seconds")
    actual_duration: Optional[int] = Field(default=None, ge=0, description="Seconds")
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    queued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("html_content")
    @classmethod
    def html_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("HTML content cannot be empty")
        return v

    @classmethod
    def create(
        cls,
        user_id: str,
        html_content: str,
        config: Union[RenderJobConfig, dict[str, Any]],
        subject: Optional[str] = None,
        preheader: Optional[str] = None,
        template_id: Optional[UUID] = None,
        priority: Union[JobPriority, int] = JobPriority.NORMAL,
        id_factory: IdFactory = default_id_factory,
    ) -> "RenderJob":
        """Create a pending job.

        Raises:
            InvariantViolationError: If the content or config is invalid
        """
        now = utcnow()
        return cls.from_data(
            {
                "id": id_factory(),
                "user_id": user_id,
                "template_id": template_id,
                "html_content": html_content,
                "subject": subject,
                "preheader": preheader,
                "config": config,
                "priority": priority,
                "created_at": now,
                "updated_at": now,
            }
        )

    def validate_invariants(self) -> None:
        if self.status == RenderJobStatus.COMPLETED:
            self._invariant(
                self.completed_at is not None, "Completed jobs must have completed_at"
            )
        if self.status == RenderJobStatus.PROCESSING:
            self._invariant(
                self.started_at is not None, "Processing jobs must have started_at"
            )
        if self.progress > 0:
            self._invariant(
                self.status != RenderJobStatus.PENDING,
                "Pending jobs cannot have progress",
            )
        self._invariant(
            len(self.config.clients) > 0, "At least one client must be selected"
        )
        if self.started_at and self.completed_at:
            self._invariant(
                self.completed_at >= self.started_at,
                "completed_at cannot precede started_at",
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_total_tasks(self) -> int:
        """One task per client x viewport pair."""
        return len(self.config.clients) * len(self.config.viewports)

    def is_active(self) -> bool:
        return self.status.is_active

    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def can(self, action: str) -> bool:
        return RENDER_JOB_TRANSITIONS.can(action, self.status)

    def get_progress(self) -> Progress:
        """Progress value object for display."""
        if self.status == RenderJobStatus.COMPLETED:
            return Progress.completed()
        remaining = None
        if self.estimated_duration is not None and self.status.is_active:
            remaining = self.estimated_duration * (100 - self.progress) / 100
        total = self.get_total_tasks()
        return Progress(
            percentage=self.progress,
            current_step=self.status.display_name,
            total_steps=total,
            completed_steps=min(total, self.progress * total // 100),
            estimated_time_remaining=remaining,
            details=self.error_message,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(self, action: str, **changes: Any) -> "RenderJob":
        RENDER_JOB_TRANSITIONS.require(action, self.status)
        return self._apply_changes({**changes, "updated_at": utcnow()})

    def _duration_until(self, end: datetime) -> Optional[int]:
        if self.started_at is None:
            return None
        return elapsed_seconds(self.started_at, end)

    def queue(self) -> "RenderJob":
        return self._transition("queue", status=RenderJobStatus.QUEUED, queued_at=utcnow())

    def start(self) -> "RenderJob":
        return self._transition(
            "start", status=RenderJobStatus.PROCESSING, started_at=utcnow()
        )

    def update_progress(self, progress: int) -> "RenderJob":
        """Set progress (0-100) while processing."""
        return self._transition("update_progress", progress=progress)

    def complete(self) -> "RenderJob":
        now = utcnow()
        return self._transition(
            "complete",
            status=RenderJobStatus.COMPLETED,
            progress=100,
            completed_at=now,
            actual_duration=self._duration_until(now),
        )

    def fail(self, error_message: str) -> "RenderJob":
        now = utcnow()
        return self._transition(
            "fail",
            status=RenderJobStatus.FAILED,
            error_message=error_message,
            completed_at=now,
            actual_duration=self._duration_until(now),
        )

    def cancel(self) -> "RenderJob":
        now = utcnow()
        return self._transition(
            "cancel",
            status=RenderJobStatus.CANCELLED,
            cancelled_at=now,
            actual_duration=self._duration_until(now),
        )

    def update(self, **changes: Any) -> "RenderJob":
        """Change content, config or priority before processing starts.

        Raises:
            InvalidTransitionError: If the job is already processing or finished
            InvariantViolationError: If a field is not updatable or invalid
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            self._invariant(False, f"Fields cannot be updated: {sorted(unknown)}")
        return self._transition("update", **changes)

    def set_estimated_duration(self, seconds: int) -> "RenderJob":
        """Advisory estimate; allowed in any state."""
        return self._apply_changes(
            {"estimated_duration": seconds, "updated_at": utcnow()}
        )
