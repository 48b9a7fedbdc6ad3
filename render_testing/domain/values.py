"""Value objects shared across the render testing entities."""

from enum import IntEnum
from typing import Optional

from pydantic import Field, model_validator

from render_testing.domain.base import DomainModel


class Viewport(DomainModel):
    """A width x height x device-pixel-ratio combination a client is tested at."""

    width: int = Field(..., ge=320, le=1920, description="CSS pixel width")
    # 320 admits landscape phones (667x375 and smaller)
    height: int = Field(..., ge=320, le=1080, description="CSS pixel height")
    device_pixel_ratio: float = Field(default=1.0, ge=1.0, le=3.0)
    name: str = Field(..., min_length=1, description="Viewport label (desktop, mobile...)")
    description: Optional[str] = None
    is_default: bool = False

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def is_mobile(self) -> bool:
        return self.width <= 480

    def is_tablet(self) -> bool:
        return 480 < self.width <= 1024

    def is_desktop(self) -> bool:
        return self.width > 1024

    def describe(self) -> str:
        """Human label, e.g. ``mobile (375×667 @2x)``."""
        dpr = f" @{self.device_pixel_ratio:g}x" if self.device_pixel_ratio > 1 else ""
        return f"{self.name} ({self.width}×{self.height}{dpr})"


DESKTOP_VIEWPORT = Viewport(width=600, height=800, device_pixel_ratio=1, name="desktop", is_default=True)
MOBILE_VIEWPORT = Viewport(width=375, height=667, device_pixel_ratio=2, name="mobile")


def default_viewports() -> list[Viewport]:
    """Desktop 600x800 plus mobile 375x667."""
    return [DESKTOP_VIEWPORT.model_copy(), MOBILE_VIEWPORT.model_copy()]


class ViewportPresets:
    """Common device viewports for building client test configs.

    Accessors return copies, so callers may edit what they get back.
    """

    MOBILE_PORTRAIT = Viewport(
        width=375, height=667, device_pixel_ratio=2,
        name="mobile-portrait", description="iPhone 8 Portrait",
    )
    MOBILE_LANDSCAPE = Viewport(
        width=667, height=375, device_pixel_ratio=2,
        name="mobile-landscape", description="iPhone 8 Landscape",
    )
    TABLET_PORTRAIT = Viewport(
        width=768, height=1024, device_pixel_ratio=2,
        name="tablet-portrait", description="iPad Portrait",
    )
    TABLET_LANDSCAPE = Viewport(
        width=1024, height=768, device_pixel_ratio=2,
        name="tablet-landscape", description="iPad Landscape",
    )
    DESKTOP_SMALL = Viewport(
        width=1024, height=768, name="desktop-small", description="Small Desktop"
    )
    DESKTOP_MEDIUM = Viewport(
        width=1366, height=768, name="desktop-medium", description="Medium Desktop"
    )
    DESKTOP_LARGE = Viewport(
        width=1920, height=1080, name="desktop-large", description="Large Desktop"
    )
    EMAIL_STANDARD = Viewport(
        width=600, height=800, name="email-standard", description="Standard Email Width"
    )

    @staticmethod
    def _copies(*viewports: Viewport) -> list[Viewport]:
        return [v.model_copy() for v in viewports]

    @classmethod
    def get_all(cls) -> list[Viewport]:
        return cls._copies(
            cls.MOBILE_PORTRAIT,
            cls.MOBILE_LANDSCAPE,
            cls.TABLET_PORTRAIT,
            cls.TABLET_LANDSCAPE,
            cls.DESKTOP_SMALL,
            cls.DESKTOP_MEDIUM,
            cls.DESKTOP_LARGE,
            cls.EMAIL_STANDARD,
        )

    @classmethod
    def get_mobile(cls) -> list[Viewport]:
        return cls._copies(cls.MOBILE_PORTRAIT, cls.MOBILE_LANDSCAPE)

    @classmethod
    def get_tablet(cls) -> list[Viewport]:
        return cls._copies(cls.TABLET_PORTRAIT, cls.TABLET_LANDSCAPE)

    @classmethod
    def get_desktop(cls) -> list[Viewport]:
        return cls._copies(cls.DESKTOP_SMALL, cls.DESKTOP_MEDIUM, cls.DESKTOP_LARGE)

    @classmethod
    def get_responsive_set(cls) -> list[Viewport]:
        """One viewport per form factor: phone, tablet and desktop."""
        return cls._copies(cls.MOBILE_PORTRAIT, cls.TABLET_PORTRAIT, cls.DESKTOP_MEDIUM)

    @classmethod
    def get_email_set(cls) -> list[Viewport]:
        """Standard 600px email column plus a phone."""
        return cls._copies(cls.EMAIL_STANDARD, cls.MOBILE_PORTRAIT)


class JobPriority(IntEnum):
    """Render job priority (1-4)."""

    LOW = 1
    NORMAL = 2
    HIGH = 3
    URGENT = 4

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def queue_weight(self) -> int:
        """Weight used by priority queues (higher runs first)."""
        return int(self) * 10

    def is_high(self) -> bool:
        return self >= JobPriority.HIGH


class Progress(DomainModel):
    """Snapshot of job progress reported to callers."""

    percentage: int = Field(default=0, ge=0, le=100)
    current_step: str = "Initializing"
    total_steps: int = Field(default=1, gt=0)
    completed_steps: int = Field(default=0, ge=0)
    estimated_time_remaining: Optional[float] = Field(
        default=None, ge=0, description="Seconds"
    )
    details: Optional[str] = None

    @model_validator(mode="after")
    def check_steps(self):
        """Completed steps cannot exceed total steps."""
        if self.completed_steps > self.total_steps:
            raise ValueError("Completed steps cannot exceed total steps")
        return self

    @classmethod
    def empty(cls) -> "Progress":
        return cls()

    @classmethod
    def completed(cls) -> "Progress":
        return cls(percentage=100, current_step="Completed", total_steps=1, completed_steps=1)

    @classmethod
    def from_counts(cls, completed: int, total: int, current_step: str) -> "Progress":
        """Build progress from resolved/total task counts."""
        total = max(total, 1)
        completed = max(0, min(completed, total))
        return cls(
            percentage=round(completed * 100 / total),
            current_step=current_step,
            total_steps=total,
            completed_steps=completed,
        )

    def is_complete(self) -> bool:
        return self.percentage >= 100

    def has_started(self) -> bool:
        return self.percentage > 0

    @property
    def remaining_steps(self) -> int:
        return self.total_steps - self.completed_steps

    def increment(self) -> "Progress":
        """Return progress with one more completed step."""
        return Progress.from_counts(
            self.completed_steps + 1, self.total_steps, self.current_step
        )

    def formatted_time_remaining(self) -> Optional[str]:
        """Format the remaining estimate as ``45s``, ``3m`` or ``1h 5m``."""
        if not self.estimated_time_remaining:
            return None
        seconds = self.estimated_time_remaining
        if seconds < 60:
            return f"{round(seconds)}s"
        if seconds < 3600:
            return f"{round(seconds / 60)}m"
        hours = int(seconds // 3600)
        minutes = round((seconds % 3600) / 60)
        return f"{hours}h {minutes}m"

    def __str__(self) -> str:
        remaining = self.formatted_time_remaining()
        suffix = f" ({remaining} remaining)" if remaining else ""
        return f"{self.percentage}% - {self.current_step}{suffix}"
