"""Render testing services."""

from render_testing.services.dispatch import CaptureTask, build_capture_task
from render_testing.services.orchestrator import (
    CreateRenderJobRequest,
    JobOwnershipError,
    NoActiveClientsError,
    RenderJobNotFoundError,
    RenderOrchestrator,
    ScreenshotNotFoundError,
    TestResultNotFoundError,
)

__all__ = [
    "CaptureTask",
    "build_capture_task",
    "CreateRenderJobRequest",
    "JobOwnershipError",
    "NoActiveClientsError",
    "RenderJobNotFoundError",
    "RenderOrchestrator",
    "ScreenshotNotFoundError",
    "TestResultNotFoundError",
]
