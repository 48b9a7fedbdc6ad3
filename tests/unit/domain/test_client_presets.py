"""Tests for the preset email client catalogue."""

import pytest

from render_testing.domain.email_client import DockerAutomation, VmAutomation
from render_testing.domain.presets import EmailClientFactory
from render_testing.domain.types import ClientType, Platform, RenderingEngine, WorkerType


class TestPresetCatalogue:
    def test_all_presets_ids_in_seed_order(self):
        ids = [client.id for client in EmailClientFactory.all_presets()]
        assert ids == [
            "gmail-web",
            "outlook-web",
            "outlook-2019",
            "yandex-mail",
            "mail-ru",
            "apple-mail",
        ]

    def test_every_preset_is_testable(self):
        for client in EmailClientFactory.all_presets():
            assert client.is_testable(), client.id
            client.validate_invariants()

    def test_presets_are_independent_instances(self):
        first = EmailClientFactory.create_gmail()
        second = EmailClientFactory.create_gmail()

        first.update_test_config(retries=0)
        first.automation_config.browser_config.args.append("--mutated")

        assert second.test_config.retries == 2
        assert "--mutated" not in second.automation_config.browser_config.args


class TestGmailPreset:
    def test_definition(self, gmail):
        assert gmail.type == ClientType.WEB
        assert gmail.platform == Platform.WEB
        assert gmail.rendering_engine == RenderingEngine.BLINK
        assert gmail.market_share == 35
        assert isinstance(gmail.automation_config, DockerAutomation)
        assert gmail.automation_config.container_image == "render-testing/gmail-chrome:latest"
        assert gmail.has_tag("responsive")

    def test_derived_values(self, gmail):
        assert gmail.supports_dark_mode()
        assert gmail.is_responsive_capable()
        assert gmail.is_high_priority()
        assert gmail.can_use_container()
        assert gmail.get_default_viewport().name == "desktop"
        assert gmail.get_compatibility_score() == 100
        # 30s x 2 viewports x 2 themes + 3s load wait + 2s delay
        assert gmail.get_estimated_test_duration() == 125000


class TestOutlookDesktopPreset:
    def test_definition(self, outlook_desktop):
        assert outlook_desktop.version == "2019"
        assert outlook_desktop.rendering_engine == RenderingEngine.WORD
        assert isinstance(outlook_desktop.automation_config, VmAutomation)
        assert outlook_desktop.automation_config.vm_template == "windows-outlook-2019"
        assert outlook_desktop.get_worker_type() == WorkerType.VM

    def test_derived_values(self, outlook_desktop):
        assert outlook_desktop.requires_vm()
        assert not outlook_desktop.supports_dark_mode()
        assert not outlook_desktop.is_responsive_capable()
        assert outlook_desktop.get_compatibility_score() == 13
        assert outlook_desktop.get_estimated_test_duration() == 53000


@pytest.mark.parametrize(
    "factory,score,duration",
    [
        (EmailClientFactory.create_outlook_web, 100, 35000 * 4 + 4000 + 2500),
        (EmailClientFactory.create_yandex_mail, 88, 35000 * 4 + 4000 + 2500),
        (EmailClientFactory.create_mail_ru, 88, 35000 * 4 + 4000 + 2500),
        (EmailClientFactory.create_apple_mail, 100, 86000),
    ],
)
def test_preset_scores_and_durations(factory, score, duration):
    client = factory()
    assert client.get_compatibility_score() == score
    assert client.get_estimated_test_duration() == duration


def test_mail_ru_is_not_high_priority():
    client = EmailClientFactory.create_mail_ru()
    assert not client.is_high_priority()


def test_apple_mail_runs_retina_desktop(apple_mail):
    viewport = apple_mail.get_default_viewport()
    assert viewport.device_pixel_ratio == 2
    assert viewport.describe() == "desktop (600×800 @2x)"
    assert apple_mail.supports_dark_mode()
