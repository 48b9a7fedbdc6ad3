"""Render testing domain model."""

from render_testing.domain.types import (
    ClientType,
    CompatibilityLevel,
    Platform,
    RenderJobStatus,
    RenderingEngine,
    ScreenshotStatus,
    TestStatus,
    WorkerType,
)
from render_testing.domain.errors import (
    InvalidTransitionError,
    InvariantViolationError,
    RenderTestingError,
    RetryExhaustedError,
)
from render_testing.domain.values import JobPriority, Progress, Viewport, ViewportPresets
from render_testing.domain.render_job import RenderJob, RenderJobConfig
from render_testing.domain.email_client import (
    BrowserAutomation,
    ClientCapabilities,
    ClientTestConfig,
    DockerAutomation,
    EmailClient,
    VmAutomation,
)
from render_testing.domain.presets import EmailClientFactory
from render_testing.domain.screenshot import (
    CaptureConfig,
    ComparisonResult,
    ImageMetadata,
    Screenshot,
    StorageInfo,
)
from render_testing.domain.test_result import (
    AccessibilityResult,
    ClientTestResult,
    PerformanceResult,
    SpamResult,
    TestResult,
)

__all__ = [
    "ClientType",
    "CompatibilityLevel",
    "Platform",
    "RenderJobStatus",
    "RenderingEngine",
    "ScreenshotStatus",
    "TestStatus",
    "WorkerType",
    "InvalidTransitionError",
    "InvariantViolationError",
    "RenderTestingError",
    "RetryExhaustedError",
    "JobPriority",
    "Progress",
    "Viewport",
    "ViewportPresets",
    "RenderJob",
    "RenderJobConfig",
    "BrowserAutomation",
    "ClientCapabilities",
    "ClientTestConfig",
    "DockerAutomation",
    "EmailClient",
    "VmAutomation",
    "EmailClientFactory",
    "CaptureConfig",
    "ComparisonResult",
    "ImageMetadata",
    "Screenshot",
    "StorageInfo",
    "AccessibilityResult",
    "ClientTestResult",
    "PerformanceResult",
    "SpamResult",
    "TestResult",
]
