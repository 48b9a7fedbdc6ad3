"""Root conftest for the test suite.

Shared fixtures: deterministic IDs, preset email clients and isolated
settings (no .env lookups).
"""

from uuid import UUID

import pytest

from render_testing.config import Settings
from render_testing.domain.presets import EmailClientFactory

SAMPLE_HTML = (
    "<!DOCTYPE html><html><body>"
    "<table role=\"presentation\"><tr><td><h1>Spring sale</h1></td></tr></table>"
    "</body></html>"
)


class SequentialIds:
    """ID factory returning UUID(int=1), UUID(int=2), ..."""

    def __init__(self):
        self.issued: list[UUID] = []

    def __call__(self) -> UUID:
        new_id = UUID(int=len(self.issued) + 1)
        self.issued.append(new_id)
        return new_id


@pytest.fixture
def id_factory():
    return SequentialIds()


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def html():
    return SAMPLE_HTML


@pytest.fixture
def gmail():
    return EmailClientFactory.create_gmail()


@pytest.fixture
def outlook_desktop():
    return EmailClientFactory.create_outlook_desktop()


@pytest.fixture
def apple_mail():
    return EmailClientFactory.create_apple_mail()
