"""Outbound worker contract: what a capture worker needs to take one screenshot."""

from typing import Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from render_testing.domain.email_client import (
    BrowserAutomation,
    DockerAutomation,
    EmailClient,
    VmAutomation,
)
from render_testing.domain.render_job import RenderJob
from render_testing.domain.screenshot import CaptureConfig, Screenshot
from render_testing.domain.types import ScreenshotFormat, WorkerType
from render_testing.domain.values import JobPriority, Viewport


class CaptureTask(BaseModel):
    """One capture unit routed to a docker, VM or browser worker."""

    screenshot_id: UUID
    job_id: UUID
    client_id: str
    worker_type: WorkerType
    priority: JobPriority
    html_content: str
    viewport: Viewport
    dark_mode: bool
    capture_config: CaptureConfig
    automation_config: Union[DockerAutomation, VmAutomation, BrowserAutomation] = Field(
        ..., discriminator="worker_type"
    )
    timeout: int = Field(..., gt=0, description="ms")
    load_wait_time: int = Field(..., ge=0, description="ms")
    user_agent: Optional[str] = None
    headers: Optional[dict[str, str]] = None
    output_format: ScreenshotFormat
    output_quality: int = Field(..., ge=60, le=100)
    attempt: int = Field(default=1, ge=1)

    @property
    def queue_weight(self) -> int:
        return self.priority.queue_weight


def build_capture_task(
    job: RenderJob, client: EmailClient, screenshot: Screenshot
) -> CaptureTask:
    """Assemble the worker payload for ``screenshot``."""
    cfg = client.test_config
    return CaptureTask(
        screenshot_id=screenshot.id,
        job_id=job.id,
        client_id=client.id,
        worker_type=client.get_worker_type(),
        priority=job.priority,
        html_content=job.html_content,
        viewport=screenshot.viewport,
        dark_mode=screenshot.dark_mode,
        capture_config=screenshot.capture_config,
        automation_config=client.automation_config,
        timeout=cfg.timeout,
        load_wait_time=cfg.load_wait_time,
        user_agent=cfg.custom_user_agent,
        headers=cfg.custom_headers,
        output_format=job.config.screenshot_format,
        output_quality=job.config.screenshot_quality,
        attempt=screenshot.retry_count + 1,
    )
