"""Render testing type definitions."""

from enum import Enum


class RenderJobStatus(str, Enum):
    """Render job lifecycle statuses."""

    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if this status is terminal (job won't change)."""
        return self in (
            RenderJobStatus.COMPLETED,
            RenderJobStatus.FAILED,
            RenderJobStatus.CANCELLED,
        )

    @property
    def is_active(self) -> bool:
        """Check if the job is waiting for or occupying workers."""
        return self in (RenderJobStatus.QUEUED, RenderJobStatus.PROCESSING)

    @property
    def display_name(self) -> str:
        return _JOB_STATUS_DISPLAY[self]


_JOB_STATUS_DISPLAY = {
    RenderJobStatus.PENDING: "Pending",
    RenderJobStatus.QUEUED: "Queued",
    RenderJobStatus.PROCESSING: "Processing",
    RenderJobStatus.COMPLETED: "Completed",
    RenderJobStatus.FAILED: "Failed",
    RenderJobStatus.CANCELLED: "Cancelled",
}


class ClientType(str, Enum):
    """Email client delivery surface."""

    WEB = "web"
    DESKTOP = "desktop"
    MOBILE = "mobile"


class Platform(str, Enum):
    """Operating platform an email client runs on."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class RenderingEngine(str, Enum):
    """HTML rendering engine used by an email client."""

    WEBKIT = "webkit"
    BLINK = "blink"
    GECKO = "gecko"
    TRIDENT = "trident"
    WORD = "word"  # Outlook desktop renders with Word
    NATIVE = "native"  # Native mobile mail apps


class WorkerType(str, Enum):
    """Automation backend able to exercise a client."""

    DOCKER = "docker"
    VM = "vm"
    BROWSER = "browser"


class BrowserName(str, Enum):
    CHROME = "chrome"
    FIREFOX = "firefox"
    SAFARI = "safari"
    EDGE = "edge"


class ImageFormat(str, Enum):
    """Image formats an email client can display."""

    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"
    SVG = "svg"


class ScreenshotStatus(str, Enum):
    """Screenshot capture/processing lifecycle statuses.

    pending -> capturing -> captured -> processing -> ready -> archived
    Any state except ready/archived may move to failed; failed returns to
    pending through a bounded retry.
    """

    PENDING = "pending"
    CAPTURING = "capturing"
    CAPTURED = "captured"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"
    ARCHIVED = "archived"


class ScreenshotFormat(str, Enum):
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"


class StorageProvider(str, Enum):
    S3 = "s3"
    GCS = "gcs"
    AZURE = "azure"
    LOCAL = "local"
    MINIO = "minio"


class ComparisonAlgorithm(str, Enum):
    PIXELMATCH = "pixelmatch"
    SSIM = "ssim"
    CUSTOM = "custom"


class TestStatus(str, Enum):
    """Status of a client test or of a whole test result.

    SKIPPED only applies to individual client results.
    """

    __test__ = False  # not a pytest test class

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_resolved(self) -> bool:
        """Check if the client test produced a pass/fail verdict."""
        return self in (TestStatus.PASSED, TestStatus.FAILED)


class CompatibilityLevel(str, Enum):
    """Score buckets."""

    EXCELLENT = "excellent"  # 90-100
    GOOD = "good"  # 75-89
    FAIR = "fair"  # 60-74
    POOR = "poor"  # <60


class IssueSeverity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFO = "info"


class IssueCategory(str, Enum):
    CSS = "css"
    HTML = "html"
    IMAGES = "images"
    FONTS = "fonts"
    LAYOUT = "layout"
    INTERACTIVE = "interactive"
