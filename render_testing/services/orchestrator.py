"""Render orchestration service.

Coordinates the lifecycle of a render job: submission, screenshot fan-out
to capture workers, worker callbacks, analysis results and finalization.

Worker callbacks for one job may arrive concurrently. Every mutation of a
job's RenderJob, TestResult and Screenshots runs under that job's
``asyncio.Lock``, so the entities themselves never see interleaved updates.
"""

import asyncio
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from render_testing.config import Settings, get_settings
from render_testing.domain.base import coerce_model
from render_testing.domain.clock import IdFactory, default_id_factory
from render_testing.domain.email_client import EmailClient
from render_testing.domain.errors import InvalidTransitionError, RenderTestingError
from render_testing.domain.render_job import RenderJob, RenderJobConfig
from render_testing.domain.scoring import round_half_up
from render_testing.domain.screenshot import ComparisonResult, ImageMetadata, Screenshot, StorageInfo
from render_testing.domain.test_result import (
    AccessibilityResult,
    ClientTestResult,
    PerformanceResult,
    ScreenshotRef,
    SpamResult,
    TestResult,
)
from render_testing.domain.types import RenderJobStatus
from render_testing.domain.values import JobPriority, Progress
from render_testing.services.dispatch import CaptureTask, build_capture_task

logger = structlog.get_logger(__name__)


# =============================================================================
# Errors
# =============================================================================


class RenderJobNotFoundError(RenderTestingError):
    """Raised when a render job is not found."""


class TestResultNotFoundError(RenderTestingError):
    """Raised when a job has no test result."""

    __test__ = False


class ScreenshotNotFoundError(RenderTestingError):
    """Raised when a screenshot is not found."""


class NoActiveClientsError(RenderTestingError):
    """Raised when none of the requested clients can be tested."""

    def __init__(self, requested: list[str]):
        self.requested = list(requested)
        super().__init__(
            "No active email clients found for the specified configuration: "
            + ", ".join(self.requested)
        )


class JobOwnershipError(RenderTestingError):
    """Raised when a user acts on a job they do not own."""

    def __init__(self, job_id: UUID, user_id: str):
        self.job_id = job_id
        self.user_id = user_id
        super().__init__(f"User {user_id} does not own render job {job_id}")


# =============================================================================
# Repositories and collaborators
# =============================================================================


class RenderJobRepository(Protocol):
    """Persistence for render jobs."""

    async def save(self, job: RenderJob) -> None:
        ...

    async def get(self, job_id: UUID) -> Optional[RenderJob]:
        ...

    async def list_by_user(self, user_id: str) -> list[RenderJob]:
        ...


class TestResultRepository(Protocol):
    """Persistence for test results (one per job)."""

    async def save(self, result: TestResult) -> None:
        ...

    async def get_by_job(self, job_id: UUID) -> Optional[TestResult]:
        ...


class EmailClientRepository(Protocol):
    """Read access to the email client catalogue."""

    async def get(self, client_id: str) -> Optional[EmailClient]:
        ...

    async def get_many(self, client_ids: list[str]) -> list[EmailClient]:
        """Return the clients that exist, in the order requested."""
        ...

    async def list_active(self) -> list[EmailClient]:
        ...


class ScreenshotRepository(Protocol):
    """Persistence for screenshots."""

    async def save(self, screenshot: Screenshot) -> None:
        ...

    async def get(self, screenshot_id: UUID) -> Optional[Screenshot]:
        ...

    async def list_by_job(self, job_id: UUID) -> list[Screenshot]:
        ...


class JobNotifier(Protocol):
    """Delivers job lifecycle notifications to the job owner."""

    async def notify_job_completed(self, job_id: UUID, user_id: str) -> None:
        ...

    async def notify_job_failed(self, job_id: UUID, user_id: str, error: str) -> None:
        ...

    async def notify_job_progress(self, job_id: UUID, user_id: str, progress: Progress) -> None:
        ...


# =============================================================================
# Request / response types
# =============================================================================


class CreateRenderJobRequest(BaseModel):
    """Inbound job submission."""

    user_id: str = Field(..., min_length=1)
    html_content: str
    config: RenderJobConfig
    subject: Optional[str] = None
    preheader: Optional[str] = None
    template_id: Optional[UUID] = None
    priority: JobPriority = JobPriority.NORMAL


@dataclass
class RenderJobWithResults:
    job: RenderJob
    result: Optional[TestResult]
    screenshots: list[Screenshot] = field(default_factory=list)


@dataclass
class RenderJobSummary:
    """Listing entry for a user's jobs."""

    id: UUID
    status: RenderJobStatus
    progress: Progress
    overall_score: int
    client_count: int
    screenshot_count: int
    created_at: datetime


# Progress percentages that trigger an owner notification
PROGRESS_MILESTONES = frozenset({25, 50, 75})


class RenderOrchestrator:
    """Drives render jobs through their lifecycle.

    Args:
        job_repo: Render job persistence
        result_repo: Test result persistence
        client_repo: Email client catalogue
        screenshot_repo: Screenshot persistence
        settings: Settings (defaults to get_settings())
        notifier: Optional owner notifications
        id_factory: ID generator for new entities
    """

    def __init__(
        self,
        job_repo: RenderJobRepository,
        result_repo: TestResultRepository,
        client_repo: EmailClientRepository,
        screenshot_repo: ScreenshotRepository,
        settings: Optional[Settings] = None,
        notifier: Optional[JobNotifier] = None,
        id_factory: IdFactory = default_id_factory,
    ):
        self._jobs = job_repo
        self._results = result_repo
        self._clients = client_repo
        self._screenshots = screenshot_repo
        self._settings = settings or get_settings()
        self._notifier = notifier
        self._id_factory = id_factory
        # Entries vanish once no coroutine holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, job_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(job_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[job_id] = lock
        return lock

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _require_job(self, job_id: UUID) -> RenderJob:
        job = await self._jobs.get(job_id)
        if job is None:
            raise RenderJobNotFoundError(f"Render job {job_id} not found")
        return job

    async def _require_result(self, job_id: UUID) -> TestResult:
        result = await self._results.get_by_job(job_id)
        if result is None:
            raise TestResultNotFoundError(f"No test result for render job {job_id}")
        return result

    async def _require_screenshot(self, screenshot_id: UUID) -> Screenshot:
        screenshot = await self._screenshots.get(screenshot_id)
        if screenshot is None:
            raise ScreenshotNotFoundError(f"Screenshot {screenshot_id} not found")
        return screenshot

    @staticmethod
    def _require_owner(job: RenderJob, user_id: str) -> None:
        if job.user_id != user_id:
            raise JobOwnershipError(job.id, user_id)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def estimate_duration(self, clients: list[EmailClient]) -> int:
        """Estimated job duration in seconds, including fixed overhead."""
        total_ms = sum(client.get_estimated_test_duration() for client in clients)
        return round_half_up(total_ms / 1000) + self._settings.job_overhead_seconds

    async def create_render_job(
        self, request: Union[CreateRenderJobRequest, dict]
    ) -> RenderJob:
        """Validate, persist and queue a new render job.

        The job's client list is narrowed to the requested clients that are
        active and enabled for testing.

        Raises:
            InvariantViolationError: If the HTML or config is invalid
            NoActiveClientsError: If no requested client can be tested
        """
        request = coerce_model(CreateRenderJobRequest, request, RenderJob.entity_name)
        log = logger.bind(user_id=request.user_id)

        clients = await self._clients.get_many(request.config.clients)
        testable = [c for c in clients if c.is_testable()]
        if not testable:
            log.warning("render_job_rejected", reason="no_active_clients")
            raise NoActiveClientsError(request.config.clients)

        config = request.config.model_copy(update={"clients": [c.id for c in testable]})
        job = RenderJob.create(
            user_id=request.user_id,
            html_content=request.html_content,
            config=config,
            subject=request.subject,
            preheader=request.preheader,
            template_id=request.template_id,
            priority=request.priority,
            id_factory=self._id_factory,
        )
        job.set_estimated_duration(self.estimate_duration(testable))

        result = TestResult.create(
            job_id=job.id,
            user_id=job.user_id,
            total_clients=job.get_total_tasks(),
            test_environment=self._settings.test_environment,
            test_version=self._settings.test_version,
            id_factory=self._id_factory,
        )
        job.queue()
        await self._jobs.save(job)
        await self._results.save(result)

        skipped = sorted(set(request.config.clients) - set(config.clients))
        log.info(
            "render_job_created",
            job_id=str(job.id),
            clients=config.clients,
            skipped_clients=skipped,
            total_tasks=job.get_total_tasks(),
            estimated_duration=job.estimated_duration,
        )
        return job

    async def start_render_job(self, job_id: UUID) -> list[CaptureTask]:
        """Move a queued job to processing and fan out one capture per
        client x viewport x theme.

        Returns:
            Capture tasks for the workers, in client/viewport order
        """
        log = logger.bind(job_id=str(job_id))
        async with self._lock_for(job_id):
            job = await self._require_job(job_id)
            result = await self._require_result(job_id)
            clients = await self._clients.get_many(job.config.clients)
            if not clients:
                raise NoActiveClientsError(job.config.clients)

            job.start()
            result.start()

            tasks = []
            for client in clients:
                cfg = client.test_config
                themes = [False]
                if job.config.dark_mode_enabled and client.supports_dark_mode():
                    themes.append(True)
                for viewport in job.config.viewports:
                    for dark_mode in themes:
                        screenshot = Screenshot.create(
                            job_id=job.id,
                            client_id=client.id,
                            client_name=client.display_name,
                            viewport=viewport,
                            dark_mode=dark_mode,
                            capture_config={"delay": cfg.screenshot_delay},
                            max_retries=min(cfg.retries, self._settings.screenshot_max_retries),
                            id_factory=self._id_factory,
                        )
                        await self._screenshots.save(screenshot)
                        tasks.append(build_capture_task(job, client, screenshot))

            await self._jobs.save(job)
            await self._results.save(result)

        log.info("render_job_started", clients=len(clients), capture_tasks=len(tasks))
        return tasks

    # ------------------------------------------------------------------
    # Worker callbacks
    # ------------------------------------------------------------------

    async def handle_capture_started(self, screenshot_id: UUID) -> Screenshot:
        screenshot = await self._require_screenshot(screenshot_id)
        async with self._lock_for(screenshot.job_id):
            screenshot = await self._require_screenshot(screenshot_id)
            screenshot.start_capture()
            await self._screenshots.save(screenshot)
        logger.debug(
            "capture_started",
            job_id=str(screenshot.job_id),
            screenshot_id=str(screenshot_id),
            client_id=screenshot.client_id,
        )
        return screenshot

    async def handle_screenshot_captured(
        self,
        screenshot_id: UUID,
        image_metadata: Union[ImageMetadata, dict],
        processing_time: Optional[float] = None,
    ) -> Screenshot:
        """Record the captured image and move it on to processing."""
        screenshot = await self._require_screenshot(screenshot_id)
        async with self._lock_for(screenshot.job_id):
            screenshot = await self._require_screenshot(screenshot_id)
            screenshot.mark_captured(image_metadata, processing_time)
            screenshot.start_processing()
            await self._screenshots.save(screenshot)
        logger.debug(
            "screenshot_captured",
            job_id=str(screenshot.job_id),
            screenshot_id=str(screenshot_id),
            file_size=screenshot.get_file_size(),
        )
        return screenshot

    async def handle_screenshot_stored(
        self, screenshot_id: UUID, storage_info: Union[StorageInfo, dict]
    ) -> Screenshot:
        """Mark a processed screenshot ready and advance job progress."""
        screenshot = await self._require_screenshot(screenshot_id)
        async with self._lock_for(screenshot.job_id):
            screenshot = await self._require_screenshot(screenshot_id)
            screenshot.mark_ready(storage_info)
            await self._screenshots.save(screenshot)
            await self._refresh_progress(screenshot.job_id)
        logger.info(
            "screenshot_ready",
            job_id=str(screenshot.job_id),
            screenshot_id=str(screenshot_id),
            client_id=screenshot.client_id,
        )
        return screenshot

    async def handle_screenshot_failed(
        self, screenshot_id: UUID, error_message: str
    ) -> Optional[CaptureTask]:
        """Record a capture failure and re-issue the capture if budget remains.

        Returns:
            A new CaptureTask for the retry, or None when the retry budget is
            spent or the job is no longer running
        """
        screenshot = await self._require_screenshot(screenshot_id)
        log = logger.bind(
            job_id=str(screenshot.job_id),
            screenshot_id=str(screenshot_id),
            client_id=screenshot.client_id,
        )
        async with self._lock_for(screenshot.job_id):
            screenshot = await self._require_screenshot(screenshot_id)
            job = await self._require_job(screenshot.job_id)
            screenshot.fail(error_message)

            task = None
            if job.status == RenderJobStatus.PROCESSING and screenshot.can_retry():
                client = await self._clients.get(screenshot.client_id)
                if client is None:
                    log.warning("screenshot_client_missing", retry_count=screenshot.retry_count)
                    screenshot.exhaust_retries()
                else:
                    screenshot.retry()
                    task = build_capture_task(job, client, screenshot)

            await self._screenshots.save(screenshot)
            if task is None:
                await self._refresh_progress(screenshot.job_id)

        if task is not None:
            log.warning(
                "screenshot_retry_scheduled",
                error=error_message,
                retry_count=screenshot.retry_count,
                max_retries=screenshot.max_retries,
            )
        else:
            log.error("screenshot_failed", error=error_message, retry_count=screenshot.retry_count)
        return task

    async def record_comparison(
        self, screenshot_id: UUID, comparison: Union[ComparisonResult, dict]
    ) -> Screenshot:
        """Attach a baseline comparison (latest per baseline wins)."""
        comparison = coerce_model(ComparisonResult, comparison, Screenshot.entity_name)
        screenshot = await self._require_screenshot(screenshot_id)
        async with self._lock_for(screenshot.job_id):
            screenshot = await self._require_screenshot(screenshot_id)
            screenshot.add_comparison_result(comparison)
            await self._screenshots.save(screenshot)
        logger.info(
            "comparison_recorded",
            job_id=str(screenshot.job_id),
            screenshot_id=str(screenshot_id),
            baseline_id=str(comparison.baseline_screenshot_id),
            similarity=comparison.similarity_score,
            matches_baseline=screenshot.has_high_similarity(
                comparison.baseline_screenshot_id,
                threshold=self._settings.high_similarity_threshold,
            ),
        )
        return screenshot

    async def _refresh_progress(self, job_id: UUID) -> None:
        """Recompute job progress from resolved screenshots (lock held)."""
        job = await self._require_job(job_id)
        if job.status != RenderJobStatus.PROCESSING:
            return
        screenshots = await self._screenshots.list_by_job(job_id)
        if not screenshots:
            return
        resolved = sum(1 for s in screenshots if s.is_terminal())
        percentage = min(
            resolved * 100 // len(screenshots), self._settings.progress_ceiling
        )
        if percentage == job.progress:
            return
        job.update_progress(percentage)
        await self._jobs.save(job)
        logger.debug(
            "job_progress_updated",
            job_id=str(job_id),
            progress=percentage,
            resolved=resolved,
            total=len(screenshots),
        )
        if self._notifier and percentage in PROGRESS_MILESTONES:
            await self._notifier.notify_job_progress(job_id, job.user_id, job.get_progress())

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def screenshot_refs(
        self, job_id: UUID, client_id: str, viewport_name: str
    ) -> list[ScreenshotRef]:
        """References to the ready screenshots of one client/viewport."""
        screenshots = await self._screenshots.list_by_job(job_id)
        return [
            ScreenshotRef.from_screenshot(s)
            for s in screenshots
            if s.client_id == client_id and s.viewport.name == viewport_name and s.is_ready()
        ]

    async def record_client_result(
        self, job_id: UUID, client_result: Union[ClientTestResult, dict]
    ) -> TestResult:
        async with self._lock_for(job_id):
            result = await self._require_result(job_id)
            result.add_client_result(client_result)
            await self._results.save(result)
        logger.info(
            "client_result_recorded",
            job_id=str(job_id),
            passed=result.summary.passed_clients,
            failed=result.summary.failed_clients,
            overall_score=result.overall_score,
        )
        return result

    async def attach_analysis(
        self,
        job_id: UUID,
        accessibility: Optional[Union[AccessibilityResult, dict]] = None,
        performance: Optional[Union[PerformanceResult, dict]] = None,
        spam: Optional[Union[SpamResult, dict]] = None,
    ) -> TestResult:
        """Attach whichever analyzer results are supplied."""
        async with self._lock_for(job_id):
            result = await self._require_result(job_id)
            if accessibility is not None:
                result.set_accessibility_result(accessibility)
            if performance is not None:
                result.set_performance_result(performance)
            if spam is not None:
                result.set_spam_result(spam)
            await self._results.save(result)
        logger.info("analysis_attached", job_id=str(job_id), overall_score=result.overall_score)
        return result

    # ------------------------------------------------------------------
    # Completion / cancellation
    # ------------------------------------------------------------------

    async def finalize_job(self, job_id: UUID) -> TestResult:
        """Complete the test result, then the job."""
        async with self._lock_for(job_id):
            job = await self._require_job(job_id)
            result = await self._require_result(job_id)
            result.complete()
            job.complete()
            await self._results.save(result)
            await self._jobs.save(job)

        logger.info(
            "render_job_completed",
            job_id=str(job_id),
            overall_status=result.overall_status.value,
            overall_score=result.overall_score,
            duration=job.actual_duration,
        )
        if self._notifier:
            await self._notifier.notify_job_completed(job_id, job.user_id)
        return result

    async def fail_job(self, job_id: UUID, error_message: str) -> RenderJob:
        async with self._lock_for(job_id):
            job = await self._require_job(job_id)
            job.fail(error_message)
            result = await self._results.get_by_job(job_id)
            if result is not None:
                result.fail(error_message)
                await self._results.save(result)
            await self._jobs.save(job)

        logger.error("render_job_failed", job_id=str(job_id), error=error_message)
        if self._notifier:
            await self._notifier.notify_job_failed(job_id, job.user_id, error_message)
        return job

    async def cancel_render_job(self, job_id: UUID, user_id: str) -> RenderJob:
        """Cancel a job on behalf of its owner.

        Raises:
            RenderJobNotFoundError: If the job doesn't exist
            JobOwnershipError: If ``user_id`` does not own the job
            InvalidTransitionError: If the job already finished
        """
        message = "Job cancelled by user"
        async with self._lock_for(job_id):
            job = await self._require_job(job_id)
            self._require_owner(job, user_id)
            job.cancel()
            result = await self._results.get_by_job(job_id)
            if result is not None and not result.is_complete():
                result.fail(message)
                await self._results.save(result)
            await self._jobs.save(job)

        logger.info("render_job_cancelled", job_id=str(job_id), user_id=user_id)
        if self._notifier:
            await self._notifier.notify_job_failed(job_id, user_id, message)
        return job

    async def retry_render_job(self, job_id: UUID, user_id: str) -> RenderJob:
        """Resubmit a failed job's content and config as a new job."""
        job = await self._require_job(job_id)
        self._require_owner(job, user_id)
        if job.status != RenderJobStatus.FAILED:
            raise InvalidTransitionError(
                entity=job.entity_name,
                action="retry",
                current=job.status.value,
                allowed=(RenderJobStatus.FAILED.value,),
                message="Can only retry failed jobs",
            )
        new_job = await self.create_render_job(
            CreateRenderJobRequest(
                user_id=job.user_id,
                html_content=job.html_content,
                config=job.config,
                subject=job.subject,
                preheader=job.preheader,
                template_id=job.template_id,
                priority=job.priority,
            )
        )
        logger.info("render_job_retried", job_id=str(job_id), new_job_id=str(new_job.id))
        return new_job

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_render_job(self, job_id: UUID) -> Optional[RenderJob]:
        return await self._jobs.get(job_id)

    async def get_render_job_with_results(self, job_id: UUID) -> Optional[RenderJobWithResults]:
        job = await self._jobs.get(job_id)
        if job is None:
            return None
        result, screenshots = await asyncio.gather(
            self._results.get_by_job(job_id), self._screenshots.list_by_job(job_id)
        )
        return RenderJobWithResults(job=job, result=result, screenshots=screenshots)

    async def get_user_render_jobs(self, user_id: str) -> list[RenderJobSummary]:
        """The user's jobs, newest first."""
        summaries = []
        for job in await self._jobs.list_by_user(user_id):
            result = await self._results.get_by_job(job.id)
            screenshots = await self._screenshots.list_by_job(job.id)
            summaries.append(
                RenderJobSummary(
                    id=job.id,
                    status=job.status,
                    progress=job.get_progress(),
                    overall_score=result.overall_score if result else 0,
                    client_count=len(job.config.clients),
                    screenshot_count=len(screenshots),
                    created_at=job.created_at,
                )
            )
        return sorted(summaries, key=lambda s: s.created_at, reverse=True)

    async def get_active_email_clients(self) -> list[EmailClient]:
        return await self._clients.list_active()

    async def get_job_progress(self, job_id: UUID) -> Progress:
        job = await self._require_job(job_id)
        if job.status == RenderJobStatus.PENDING:
            return Progress.empty()
        return job.get_progress()
