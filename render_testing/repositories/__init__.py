"""Repository implementations."""

from render_testing.repositories.memory import (
    InMemoryEmailClientRepository,
    InMemoryRenderJobRepository,
    InMemoryScreenshotRepository,
    InMemoryTestResultRepository,
)

__all__ = [
    "InMemoryEmailClientRepository",
    "InMemoryRenderJobRepository",
    "InMemoryScreenshotRepository",
    "InMemoryTestResultRepository",
]
