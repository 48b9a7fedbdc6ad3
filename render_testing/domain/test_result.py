"""Test result aggregate: per-client outcomes, analyzer results and scoring.

One ``TestResult`` belongs to one render job. Client results are upserted
by (client_id, viewport name) while the result is running; every change
recomputes the summary counters and the weighted overall score.
"""

from datetime import datetime
from typing import Any, Literal, Optional, Union
from uuid import UUID

from pydantic import Field, model_validator

from render_testing import __version__
from render_testing.domain.base import DomainEntity, DomainModel, UrlStr, coerce_model
from render_testing.domain.clock import IdFactory, default_id_factory, elapsed_seconds, utcnow
from render_testing.domain.scoring import (
    ACCESSIBILITY_WEIGHT,
    COMPATIBILITY_WEIGHT,
    DELIVERABILITY_WEIGHT,
    PERFORMANCE_WEIGHT,
    ScoreAccumulator,
    compatibility_level_for,
)
from render_testing.domain.screenshot import Screenshot
from render_testing.domain.transitions import TEST_RESULT_TRANSITIONS
from render_testing.domain.types import (
    CompatibilityLevel,
    IssueCategory,
    IssueSeverity,
    TestStatus,
)
from render_testing.domain.values import Viewport


# =============================================================================
# Client results
# =============================================================================


class CompatibilityIssue(DomainModel):
    severity: IssueSeverity
    category: IssueCategory
    description: str
    recommendation: Optional[str] = None
    affected_elements: Optional[list[str]] = None


class CriticalIssue(CompatibilityIssue):
    """A critical issue annotated with the client it was found in."""

    client_name: str


class ScreenshotDimensions(DomainModel):
    width: int
    height: int


class ScreenshotRef(DomainModel):
    """Reference to a stored screenshot embedded in a client result."""

    id: UUID
    url: UrlStr
    thumbnail_url: Optional[UrlStr] = None
    dark_mode: bool
    timestamp: datetime
    file_size: int = Field(..., gt=0)
    dimensions: ScreenshotDimensions

    @classmethod
    def from_screenshot(cls, screenshot: Screenshot) -> "ScreenshotRef":
        """Reference a ready screenshot.

        Raises:
            InvariantViolationError: If the screenshot has no stored image
        """
        storage = screenshot.storage_info
        meta = screenshot.image_metadata
        return coerce_model(
            cls,
            {
                "id": screenshot.id,
                "url": storage.url if storage else None,
                "thumbnail_url": storage.thumbnail_url if storage else None,
                "dark_mode": screenshot.dark_mode,
                "timestamp": screenshot.processed_at or screenshot.updated_at,
                "file_size": meta.file_size if meta else None,
                "dimensions": {"width": meta.width, "height": meta.height} if meta else None,
            },
            "screenshot_ref",
        )


class ClientTestResult(DomainModel):
    """Outcome of testing one client at one viewport."""

    client_id: str = Field(..., min_length=1)
    client_name: str
    viewport: Viewport
    status: TestStatus
    screenshots: list[ScreenshotRef] = Field(default_factory=list)
    compatibility_score: float = Field(..., ge=0, le=100)
    # Always derived from compatibility_score
    compatibility_level: CompatibilityLevel = CompatibilityLevel.POOR
    compatibility_issues: list[CompatibilityIssue] = Field(default_factory=list)
    render_time: float = Field(default=0, ge=0, description="ms")
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def derive_level(self):
        self.compatibility_level = compatibility_level_for(self.compatibility_score)
        return self

    @classmethod
    def create(
        cls,
        client_id: str,
        client_name: str,
        viewport: Union[Viewport, dict[str, Any]],
        status: TestStatus,
        compatibility_score: float,
        screenshots: Optional[list[ScreenshotRef]] = None,
        compatibility_issues: Optional[list[Union[CompatibilityIssue, dict[str, Any]]]] = None,
        render_time: float = 0,
        error_message: Optional[str] = None,
        started_at: Optional[datetime] = None,
    ) -> "ClientTestResult":
        now = utcnow()
        return coerce_model(
            cls,
            {
                "client_id": client_id,
                "client_name": client_name,
                "viewport": viewport,
                "status": status,
                "screenshots": screenshots or [],
                "compatibility_score": compatibility_score,
                "compatibility_issues": compatibility_issues or [],
                "render_time": render_time,
                "error_message": error_message,
                "started_at": started_at or now,
                "completed_at": now,
            },
            "client_test_result",
        )

    @property
    def key(self) -> tuple[str, str]:
        """Upsert key: one result per client and viewport."""
        return (self.client_id, self.viewport.name)

    def issues_with(self, severity: IssueSeverity) -> list[CompatibilityIssue]:
        return [i for i in self.compatibility_issues if i.severity == severity]


# =============================================================================
# Analyzer results (produced externally, consumed as-is)
# =============================================================================


class AccessibilityNode(DomainModel):
    target: str
    html: str
    failure_summary: str


class AccessibilityViolation(DomainModel):
    id: str
    impact: Literal["critical", "serious", "moderate", "minor"]
    description: str
    help: str
    help_url: Optional[UrlStr] = None
    nodes: list[AccessibilityNode] = Field(default_factory=list)


class AccessibilityCheck(DomainModel):
    id: str
    description: str
    help: str


class IncompleteCheck(AccessibilityCheck):
    reason: str


class TestEngine(DomainModel):
    __test__ = False

    name: str
    version: str


class AccessibilityResult(DomainModel):
    """WCAG scan summary (axe-core style)."""

    score: float = Field(..., ge=0, le=100)
    level: Literal["AA", "AAA"]
    violations: list[AccessibilityViolation] = Field(default_factory=list)
    passes: list[AccessibilityCheck] = Field(default_factory=list)
    incomplete: list[IncompleteCheck] = Field(default_factory=list)
    test_engine: TestEngine
    timestamp: datetime


class PerformanceRecommendation(DomainModel):
    type: Literal["size", "compression", "images", "css", "html"]
    priority: Literal["high", "medium", "low"]
    description: str
    potential_savings: Optional[int] = Field(default=None, gt=0, description="Bytes")
    implementation: str


class PerformanceMetrics(DomainModel):
    first_contentful_paint: Optional[float] = Field(default=None, gt=0)
    largest_contentful_paint: Optional[float] = Field(default=None, gt=0)
    cumulative_layout_shift: Optional[float] = Field(default=None, ge=0)
    total_blocking_time: Optional[float] = Field(default=None, gt=0)


class PerformanceResult(DomainModel):
    """Email weight and load metrics."""

    total_size: int = Field(..., gt=0, description="Bytes")
    html_size: int = Field(..., gt=0)
    css_size: int = Field(..., gt=0)
    image_size: int = Field(..., gt=0)
    load_time: float = Field(..., gt=0, description="ms")
    render_time: float = Field(..., gt=0, description="ms")
    compression_ratio: float = Field(..., ge=0, le=1)
    optimization_score: float = Field(..., ge=0, le=100)
    recommendations: list[PerformanceRecommendation] = Field(default_factory=list)
    metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    timestamp: datetime


class SpamRule(DomainModel):
    name: str
    score: float
    description: str
    category: Literal["content", "headers", "uri", "body", "meta"]


class AuthenticationChecks(DomainModel):
    spf: Optional[Literal["pass", "fail", "neutral", "none"]] = None
    dkim: Optional[Literal["pass", "fail", "none"]] = None
    dmarc: Optional[Literal["pass", "fail", "none"]] = None


class SpamRecommendation(DomainModel):
    priority: Literal["critical", "high", "medium", "low"]
    category: Literal["content", "headers", "authentication", "reputation"]
    description: str
    solution: str


class SpamResult(DomainModel):
    """SpamAssassin-style analysis; ``score`` is lower-is-better."""

    score: float
    status: Literal["ham", "spam", "uncertain"]
    threshold: float
    rules: list[SpamRule] = Field(default_factory=list)
    deliverability_score: float = Field(..., ge=0, le=100)
    authentication_checks: AuthenticationChecks = Field(default_factory=AuthenticationChecks)
    recommendations: list[SpamRecommendation] = Field(default_factory=list)
    timestamp: datetime


# =============================================================================
# Aggregate
# =============================================================================


class TestSummary(DomainModel):
    __test__ = False

    total_clients: int = Field(..., gt=0)
    passed_clients: int = Field(default=0, ge=0)
    failed_clients: int = Field(default=0, ge=0)
    average_compatibility_score: float = Field(default=0.0, ge=0, le=100)
    total_render_time: float = Field(default=0, ge=0, description="ms")
    total_screenshots: int = Field(default=0, ge=0)
    critical_issues: int = Field(default=0, ge=0)
    major_issues: int = Field(default=0, ge=0)
    minor_issues: int = Field(default=0, ge=0)

    @classmethod
    def from_client_results(
        cls, total_clients: int, results: list[ClientTestResult]
    ) -> "TestSummary":
        """Recount the summary from scratch."""
        resolved = [r for r in results if r.status.is_resolved]
        average = (
            sum(r.compatibility_score for r in resolved) / len(resolved) if resolved else 0.0
        )
        issues = [i for r in results for i in r.compatibility_issues]
        return cls(
            total_clients=total_clients,
            passed_clients=sum(1 for r in results if r.status == TestStatus.PASSED),
            failed_clients=sum(
                1 for r in results if r.status in (TestStatus.FAILED, TestStatus.ERROR)
            ),
            average_compatibility_score=average,
            total_render_time=sum(r.render_time for r in results),
            total_screenshots=sum(len(r.screenshots) for r in results),
            critical_issues=sum(1 for i in issues if i.severity == IssueSeverity.CRITICAL),
            major_issues=sum(1 for i in issues if i.severity == IssueSeverity.MAJOR),
            minor_issues=sum(1 for i in issues if i.severity == IssueSeverity.MINOR),
        )


class TestMetadata(DomainModel):
    __test__ = False

    test_duration: int = Field(default=0, ge=0, description="Seconds")
    test_environment: str = "development"
    test_version: str = __version__
    user_agent: Optional[str] = None


class TestResult(DomainEntity):
    """All results for one render job.

    Lifecycle: pending -> running -> passed | failed | error. ``fail()``
    aborts to error from any state.
    """

    __test__ = False

    entity_name = "test_result"

    id: UUID
    job_id: UUID
    user_id: str = Field(..., min_length=1)
    overall_status: TestStatus = TestStatus.PENDING
    overall_score: int = Field(default=0, ge=0, le=100)
    client_results: list[ClientTestResult] = Field(default_factory=list)
    accessibility_result: Optional[AccessibilityResult] = None
    performance_result: Optional[PerformanceResult] = None
    spam_result: Optional[SpamResult] = None
    summary: TestSummary
    metadata: TestMetadata = Field(default_factory=TestMetadata)
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        job_id: UUID,
        user_id: str,
        total_clients: int,
        test_environment: str = "development",
        test_version: str = __version__,
        id_factory: IdFactory = default_id_factory,
    ) -> "TestResult":
        """Create a pending result expecting ``total_clients`` client results."""
        now = utcnow()
        return cls.from_data(
            {
                "id": id_factory(),
                "job_id": job_id,
                "user_id": user_id,
                "summary": {"total_clients": total_clients},
                "metadata": {
                    "test_environment": test_environment,
                    "test_version": test_version,
                },
                "created_at": now,
                "updated_at": now,
            }
        )

    def validate_invariants(self) -> None:
        self._invariant(
            self.overall_status != TestStatus.SKIPPED,
            "Overall status cannot be skipped",
        )
        if self.overall_status == TestStatus.PASSED:
            self._invariant(
                self.summary.failed_clients == 0,
                "Cannot have passed overall status with failed clients",
            )
        self._invariant(
            self.summary.passed_clients + self.summary.failed_clients
            <= self.summary.total_clients,
            "Passed + failed clients cannot exceed total clients",
        )
        self._invariant(
            0 <= self.overall_score <= 100, "Overall score must be between 0 and 100"
        )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def compute_overall_score(
        self,
        summary: Optional[TestSummary] = None,
        client_results: Optional[list[ClientTestResult]] = None,
    ) -> int:
        """Weighted blend of the signals that are present.

        Compatibility counts only once a client produced a pass/fail verdict;
        analyzer scores count once their result is attached.
        """
        summary = summary or self.summary
        results = self.client_results if client_results is None else client_results
        acc = ScoreAccumulator()
        if any(r.status.is_resolved for r in results):
            acc.add(summary.average_compatibility_score, COMPATIBILITY_WEIGHT)
        if self.accessibility_result is not None:
            acc.add(self.accessibility_result.score, ACCESSIBILITY_WEIGHT)
        if self.performance_result is not None:
            acc.add(self.performance_result.optimization_score, PERFORMANCE_WEIGHT)
        if self.spam_result is not None:
            acc.add(self.spam_result.deliverability_score, DELIVERABILITY_WEIGHT)
        return acc.result()

    def update_overall_score(self) -> "TestResult":
        return self._apply_changes(
            {"overall_score": self.compute_overall_score(), "updated_at": utcnow()}
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "TestResult":
        TEST_RESULT_TRANSITIONS.require("start", self.overall_status)
        return self._apply_changes(
            {"overall_status": TestStatus.RUNNING, "updated_at": utcnow()}
        )

    def add_client_result(
        self, result: Union[ClientTestResult, dict[str, Any]]
    ) -> "TestResult":
        """Insert or replace the result for (client_id, viewport name).

        Raises:
            InvalidTransitionError: If the test result is not running
            InvariantViolationError: If the result is malformed or the
                counts would exceed total_clients (nothing is changed)
        """
        TEST_RESULT_TRANSITIONS.require("add_client_result", self.overall_status)
        result = coerce_model(ClientTestResult, result, self.entity_name)
        results = list(self.client_results)
        for i, existing in enumerate(results):
            if existing.key == result.key:
                results[i] = result
                break
        else:
            results.append(result)
        summary = TestSummary.from_client_results(self.summary.total_clients, results)
        return self._apply_changes(
            {
                "client_results": results,
                "summary": summary,
                "overall_score": self.compute_overall_score(summary, results),
                "updated_at": utcnow(),
            }
        )

    def _set_analysis(self, field: str, value: Any) -> "TestResult":
        self._apply_changes({field: value})
        return self.update_overall_score()

    def set_accessibility_result(
        self, result: Union[AccessibilityResult, dict[str, Any]]
    ) -> "TestResult":
        return self._set_analysis("accessibility_result", result)

    def set_performance_result(
        self, result: Union[PerformanceResult, dict[str, Any]]
    ) -> "TestResult":
        return self._set_analysis("performance_result", result)

    def set_spam_result(self, result: Union[SpamResult, dict[str, Any]]) -> "TestResult":
        return self._set_analysis("spam_result", result)

    def complete(self) -> "TestResult":
        """Finish a running test; any error wins over failures, else passed."""
        TEST_RESULT_TRANSITIONS.require("complete", self.overall_status)
        statuses = {r.status for r in self.client_results}
        if TestStatus.ERROR in statuses:
            status = TestStatus.ERROR
        elif TestStatus.FAILED in statuses:
            status = TestStatus.FAILED
        else:
            status = TestStatus.PASSED
        now = utcnow()
        summary = TestSummary.from_client_results(
            self.summary.total_clients, self.client_results
        )
        metadata = self.metadata.model_copy(
            update={"test_duration": elapsed_seconds(self.created_at, now)}
        )
        return self._apply_changes(
            {
                "overall_status": status,
                "summary": summary,
                "overall_score": self.compute_overall_score(summary),
                "metadata": metadata,
                "completed_at": now,
                "updated_at": now,
            }
        )

    def fail(self, error_message: str) -> "TestResult":
        """Abort the test run with an error."""
        TEST_RESULT_TRANSITIONS.require("fail", self.overall_status)
        now = utcnow()
        metadata = self.metadata.model_copy(
            update={"test_duration": elapsed_seconds(self.created_at, now)}
        )
        return self._apply_changes(
            {
                "overall_status": TestStatus.ERROR,
                "error_message": error_message,
                "metadata": metadata,
                "completed_at": now,
                "updated_at": now,
            }
        )

    def update_metadata(self, **changes: Any) -> "TestResult":
        merged = {**self.metadata.model_dump(), **changes}
        metadata = coerce_model(TestMetadata, merged, self.entity_name)
        return self._apply_changes({"metadata": metadata, "updated_at": utcnow()})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_compatibility_level(self) -> CompatibilityLevel:
        return compatibility_level_for(self.overall_score)

    def is_complete(self) -> bool:
        return self.overall_status in (TestStatus.PASSED, TestStatus.FAILED, TestStatus.ERROR)

    def get_failed_clients(self) -> list[ClientTestResult]:
        return [
            r for r in self.client_results if r.status in (TestStatus.FAILED, TestStatus.ERROR)
        ]

    def get_critical_issues(self) -> list[CriticalIssue]:
        return [
            CriticalIssue(**issue.model_dump(), client_name=result.client_name)
            for result in self.client_results
            for issue in result.issues_with(IssueSeverity.CRITICAL)
        ]

    def get_client_result(self, client_id: str, viewport_name: str) -> Optional[ClientTestResult]:
        for result in self.client_results:
            if result.key == (client_id, viewport_name):
                return result
        return None
