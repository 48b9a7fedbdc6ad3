"""Cross-cutting infrastructure: logging."""

from render_testing.core.logging import configure_logging

__all__ = ["configure_logging"]
