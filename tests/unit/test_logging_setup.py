"""Tests for structlog configuration."""

import pytest
import structlog

from render_testing.core.logging import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


def _renderer():
    return structlog.get_config()["processors"][-1]


def test_json_renderer():
    configure_logging(level="debug", json=True)
    assert isinstance(_renderer(), structlog.processors.JSONRenderer)


def test_console_renderer():
    configure_logging(level="WARNING", json=False)
    assert isinstance(_renderer(), structlog.dev.ConsoleRenderer)


def test_processor_chain_adds_context():
    configure_logging(json=True)
    processors = structlog.get_config()["processors"]

    assert structlog.stdlib.add_log_level in processors
    assert structlog.stdlib.add_logger_name in processors
    assert any(isinstance(p, structlog.processors.TimeStamper) for p in processors)
