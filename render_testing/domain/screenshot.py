"""Screenshot entity: one capture per client x viewport x theme."""

from datetime import datetime
from typing import Any, Literal, Optional, Union
from uuid import UUID

from pydantic import Field

from render_testing.domain.base import (
    DomainEntity,
    DomainModel,
    UrlStr,
    coerce_model,
)
from render_testing.domain.clock import IdFactory, default_id_factory, utcnow
from render_testing.domain.errors import RetryExhaustedError
from render_testing.domain.transitions import SCREENSHOT_TRANSITIONS
from render_testing.domain.types import (
    ComparisonAlgorithm,
    ScreenshotFormat,
    ScreenshotStatus,
    StorageProvider,
)
from render_testing.domain.values import Viewport

DEFAULT_MAX_RETRIES = 3
HIGH_SIMILARITY_THRESHOLD = 95.0

_SIZE_UNITS = ("B", "KB", "MB", "GB")


class ComparisonResult(DomainModel):
    """Outcome of diffing a screenshot against one baseline."""

    baseline_screenshot_id: UUID
    similarity_score: float = Field(..., ge=0, le=100)
    difference_pixels: int = Field(..., ge=0)
    total_pixels: int = Field(..., gt=0)
    difference_percentage: float = Field(..., ge=0, le=100)
    diff_image_url: Optional[UrlStr] = None
    compared_at: datetime
    algorithm: ComparisonAlgorithm = ComparisonAlgorithm.PIXELMATCH
    threshold: float = Field(default=0.1, ge=0, le=1)


class ImageMetadata(DomainModel):
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    format: ScreenshotFormat
    quality: Optional[int] = Field(default=None, ge=1, le=100)
    file_size: int = Field(..., gt=0, description="Bytes")
    compression: Optional[float] = Field(default=None, ge=0, le=1)
    color_depth: Optional[int] = Field(default=None, gt=0)
    has_alpha: Optional[bool] = None
    dpi: Optional[int] = Field(default=None, gt=0)


class StorageInfo(DomainModel):
    """Where the processed image lives."""

    provider: StorageProvider
    bucket: Optional[str] = None
    key: str = Field(..., min_length=1)
    region: Optional[str] = None
    url: UrlStr
    thumbnail_url: Optional[UrlStr] = None
    cdn_url: Optional[UrlStr] = None
    expires_at: Optional[datetime] = None
    is_public: bool = False
    tags: Optional[dict[str, str]] = None


class ClipRect(DomainModel):
    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)


class CaptureConfig(DomainModel):
    """Browser screenshot options handed to the worker."""

    full_page: bool = True
    clip: Optional[ClipRect] = None
    omit_background: bool = False
    encoding: Literal["base64", "binary"] = "binary"
    delay: int = Field(default=0, ge=0, description="ms")
    animations: Literal["disabled", "allow"] = "disabled"
    caret: Literal["hide", "initial"] = "hide"


class Screenshot(DomainEntity):
    """A single capture and its processing/comparison lifecycle.

    pending -> capturing -> captured -> processing -> ready -> archived.
    Anything short of ready may fail; failed goes back to pending through
    retry() until the retry budget is spent.
    """

    entity_name = "screenshot"

    id: UUID
    job_id: UUID
    client_id: str = Field(..., min_length=1)
    client_name: str
    viewport: Viewport
    dark_mode: bool
    status: ScreenshotStatus = ScreenshotStatus.PENDING
    image_metadata: Optional[ImageMetadata] = None
    storage_info: Optional[StorageInfo] = None
    capture_config: CaptureConfig = Field(default_factory=CaptureConfig)
    comparison_results: list[ComparisonResult] = Field(default_factory=list)
    processing_time: Optional[float] = Field(default=None, gt=0, description="ms")
    error_message: Optional[str] = None
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    captured_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(
        cls,
        job_id: UUID,
        client_id: str,
        client_name: str,
        viewport: Union[Viewport, dict[str, Any]],
        dark_mode: bool,
        capture_config: Optional[dict[str, Any]] = None,
        max_retries: Optional[int] = None,
        id_factory: IdFactory = default_id_factory,
    ) -> "Screenshot":
        """Create a pending screenshot.

        ``capture_config`` overrides individual capture defaults. A
        ``max_retries`` of None uses the default budget of 3.
        """
        now = utcnow()
        config = coerce_model(CaptureConfig, capture_config or {}, cls.entity_name)
        return cls.from_data(
            {
                "id": id_factory(),
                "job_id": job_id,
                "client_id": client_id,
                "client_name": client_name,
                "viewport": viewport,
                "dark_mode": dark_mode,
                "capture_config": config,
                "max_retries": DEFAULT_MAX_RETRIES if max_retries is None else max_retries,
                "created_at": now,
                "updated_at": now,
            }
        )

    def validate_invariants(self) -> None:
        if self.status == ScreenshotStatus.READY:
            self._invariant(
                self.storage_info is not None,
                "Ready screenshots must have storage information",
            )
        if self.status == ScreenshotStatus.CAPTURED:
            self._invariant(
                self.captured_at is not None,
                "Captured screenshots must have capture timestamp",
            )
        self._invariant(
            self.retry_count <= self.max_retries,
            "Retry count cannot exceed maximum retries",
        )
        self._invariant(
            all(0 <= r.similarity_score <= 100 for r in self.comparison_results),
            "Similarity scores must be between 0 and 100",
        )
        baselines = [r.baseline_screenshot_id for r in self.comparison_results]
        self._invariant(
            len(baselines) == len(set(baselines)),
            "Only one comparison per baseline is allowed",
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _transition(self, action: str, **changes: Any) -> "Screenshot":
        SCREENSHOT_TRANSITIONS.require(action, self.status)
        return self._apply_changes({**changes, "updated_at": utcnow()})

    def start_capture(self) -> "Screenshot":
        return self._transition("start_capture", status=ScreenshotStatus.CAPTURING)

    def mark_captured(
        self,
        image_metadata: Union[ImageMetadata, dict[str, Any]],
        processing_time: Optional[float] = None,
    ) -> "Screenshot":
        return self._transition(
            "mark_captured",
            status=ScreenshotStatus.CAPTURED,
            image_metadata=image_metadata,
            captured_at=utcnow(),
            processing_time=processing_time,
        )

    def start_processing(self) -> "Screenshot":
        return self._transition("start_processing", status=ScreenshotStatus.PROCESSING)

    def mark_ready(self, storage_info: Union[StorageInfo, dict[str, Any]]) -> "Screenshot":
        return self._transition(
            "mark_ready",
            status=ScreenshotStatus.READY,
            storage_info=storage_info,
            processed_at=utcnow(),
        )

    def fail(self, error_message: str) -> "Screenshot":
        return self._transition(
            "fail", status=ScreenshotStatus.FAILED, error_message=error_message
        )

    def retry(self) -> "Screenshot":
        """Send a failed screenshot back to pending, spending one retry.

        Raises:
            InvalidTransitionError: If the screenshot is not failed
            RetryExhaustedError: If the retry budget is spent
        """
        SCREENSHOT_TRANSITIONS.require("retry", self.status)
        if self.retry_count >= self.max_retries:
            raise RetryExhaustedError(self.entity_name, self.retry_count, self.max_retries)
        return self._transition(
            "retry",
            status=ScreenshotStatus.PENDING,
            retry_count=self.retry_count + 1,
            error_message=None,
        )

    def exhaust_retries(self) -> "Screenshot":
        """Spend the remaining retry budget so the failure becomes final."""
        return self._transition("exhaust_retries", retry_count=self.max_retries)

    def archive(self) -> "Screenshot":
        return self._transition("archive", status=ScreenshotStatus.ARCHIVED)

    def add_comparison_result(
        self, result: Union[ComparisonResult, dict[str, Any]]
    ) -> "Screenshot":
        """Record a comparison, replacing any earlier one for the same baseline."""
        result = coerce_model(ComparisonResult, result, self.entity_name)
        kept = [
            r
            for r in self.comparison_results
            if r.baseline_screenshot_id != result.baseline_screenshot_id
        ]
        return self._transition("add_comparison_result", comparison_results=[*kept, result])

    def update_storage_info(self, **changes: Any) -> "Screenshot":
        if self.storage_info is None:
            self._invariant(
                False,
                "Cannot update storage info for screenshot without existing storage info",
            )
        merged = {**self.storage_info.model_dump(), **changes}
        storage = coerce_model(StorageInfo, merged, self.entity_name)
        return self._apply_changes({"storage_info": storage, "updated_at": utcnow()})

    def update_capture_config(self, **changes: Any) -> "Screenshot":
        """Change capture options; only possible before capture starts."""
        merged = {**self.capture_config.model_dump(), **changes}
        config = coerce_model(CaptureConfig, merged, self.entity_name)
        return self._transition("update_capture_config", capture_config=config)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_ready(self) -> bool:
        return self.status == ScreenshotStatus.READY

    def is_failed(self) -> bool:
        return self.status == ScreenshotStatus.FAILED

    def can_retry(self) -> bool:
        return self.is_failed() and self.retry_count < self.max_retries

    def is_terminal(self) -> bool:
        """Ready, archived, or failed with no retries left."""
        return (
            self.status
            in (ScreenshotStatus.READY, ScreenshotStatus.FAILED, ScreenshotStatus.ARCHIVED)
            and not self.can_retry()
        )

    def get_url(self) -> Optional[str]:
        return self.storage_info.url if self.storage_info else None

    def get_thumbnail_url(self) -> Optional[str]:
        return self.storage_info.thumbnail_url if self.storage_info else None

    def get_cdn_url(self) -> Optional[str]:
        if self.storage_info is None:
            return None
        return self.storage_info.cdn_url or self.storage_info.url

    def get_file_size(self) -> Optional[int]:
        return self.image_metadata.file_size if self.image_metadata else None

    def get_file_size_formatted(self) -> Optional[str]:
        """Human readable size, e.g. ``1.5 MB``."""
        size = self.get_file_size()
        if not size:
            return None
        value = float(size)
        unit = 0
        while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
            value /= 1024
            unit += 1
        return f"{value:.1f} {_SIZE_UNITS[unit]}"

    def get_dimensions(self) -> Optional[dict[str, int]]:
        if self.image_metadata is None:
            return None
        return {"width": self.image_metadata.width, "height": self.image_metadata.height}

    def get_aspect_ratio(self) -> Optional[float]:
        if self.image_metadata is None:
            return None
        return self.image_metadata.width / self.image_metadata.height

    def get_comparison_result(self, baseline_id: UUID) -> Optional[ComparisonResult]:
        for result in self.comparison_results:
            if result.baseline_screenshot_id == baseline_id:
                return result
        return None

    def has_high_similarity(
        self, baseline_id: UUID, threshold: float = HIGH_SIMILARITY_THRESHOLD
    ) -> bool:
        result = self.get_comparison_result(baseline_id)
        return result is not None and result.similarity_score >= threshold

    def get_best_comparison(self) -> Optional[ComparisonResult]:
        """Comparison with the highest similarity (first one wins ties)."""
        if not self.comparison_results:
            return None
        best = self.comparison_results[0]
        for result in self.comparison_results[1:]:
            if result.similarity_score > best.similarity_score:
                best = result
        return best

    def get_viewport_description(self) -> str:
        return self.viewport.describe()

    def get_theme_description(self) -> str:
        return "Dark Mode" if self.dark_mode else "Light Mode"

    def get_description(self) -> str:
        return (
            f"{self.client_name} - {self.get_viewport_description()} - "
            f"{self.get_theme_description()}"
        )
