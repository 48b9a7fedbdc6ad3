"""Preset email clients used as seed data."""

from render_testing.domain.email_client import (
    BrowserSettings,
    ClientCapabilities,
    ClientTestConfig,
    DockerAutomation,
    EmailClient,
    VmAutomation,
)
from render_testing.domain.types import (
    ClientType,
    ImageFormat,
    Platform,
    RenderingEngine,
)
from render_testing.domain.values import Viewport, default_viewports

_CHROME_IN_CONTAINER = BrowserSettings(
    browser="chrome",
    headless=True,
    args=["--no-sandbox", "--disable-dev-shm-usage"],
)

_BASIC_IMAGES = [ImageFormat.JPEG, ImageFormat.PNG, ImageFormat.GIF]


def _modern_webmail(**overrides) -> ClientCapabilities:
    """Capabilities shared by the big webmail clients."""
    data = dict(
        dark_mode=True,
        responsive_design=True,
        css3_support=True,
        web_fonts=True,
        background_images=True,
        media_queries=True,
        flexbox=True,
        grid=False,
        animations=True,
        interactive_elements=True,
        custom_properties=False,
        accessibility_features=True,
        video_support=False,
        image_formats=_BASIC_IMAGES,
        max_email_width=600,
    )
    data.update(overrides)
    return ClientCapabilities(**data)


def _webmail_test_config(priority: int, timeout: int, delay: int, load_wait: int) -> ClientTestConfig:
    return ClientTestConfig(
        enabled=True,
        priority=priority,
        timeout=timeout,
        retries=2,
        screenshot_delay=delay,
        load_wait_time=load_wait,
        dark_mode_test=True,
        viewports=default_viewports(),
    )


def _docker(image: str) -> DockerAutomation:
    return DockerAutomation(
        container_image=image, browser_config=_CHROME_IN_CONTAINER.model_copy(deep=True)
    )


class EmailClientFactory:
    """Factory for the popular email clients."""

    @staticmethod
    def create_gmail() -> EmailClient:
        return EmailClient.create(
            id="gmail-web",
            name="gmail",
            display_name="Gmail (Web)",
            vendor="Google",
            type=ClientType.WEB,
            platform=Platform.WEB,
            rendering_engine=RenderingEngine.BLINK,
            market_share=35,
            capabilities=_modern_webmail(
                image_formats=[*_BASIC_IMAGES, ImageFormat.WEBP]
            ),
            test_config=_webmail_test_config(9, 30000, 2000, 3000),
            automation_config=_docker("render-testing/gmail-chrome:latest"),
            tags=["popular", "web", "google", "responsive"],
        )

    @staticmethod
    def create_outlook_web() -> EmailClient:
        return EmailClient.create(
            id="outlook-web",
            name="outlook-web",
            display_name="Outlook.com (Web)",
            vendor="Microsoft",
            type=ClientType.WEB,
            platform=Platform.WEB,
            rendering_engine=RenderingEngine.BLINK,
            market_share=15,
            capabilities=_modern_webmail(),
            test_config=_webmail_test_config(8, 35000, 2500, 4000),
            automation_config=_docker("render-testing/outlook-web-chrome:latest"),
            tags=["popular", "web", "microsoft", "responsive"],
        )

    @staticmethod
    def create_outlook_desktop() -> EmailClient:
        """Outlook 2019 on Windows (Word rendering engine, very limited CSS)."""
        return EmailClient.create(
            id="outlook-2019",
            name="outlook-2019",
            display_name="Outlook 2019 (Desktop)",
            vendor="Microsoft",
            version="2019",
            type=ClientType.DESKTOP,
            platform=Platform.WINDOWS,
            rendering_engine=RenderingEngine.WORD,
            market_share=25,
            capabilities=ClientCapabilities(
                background_images=True,
                image_formats=_BASIC_IMAGES,
                max_email_width=600,
            ),
            test_config=ClientTestConfig(
                priority=9,
                timeout=45000,
                retries=3,
                screenshot_delay=3000,
                load_wait_time=5000,
                dark_mode_test=False,
                viewports=[
                    Viewport(width=600, height=800, device_pixel_ratio=1, name="desktop", is_default=True)
                ],
            ),
            automation_config=VmAutomation(
                vm_template="windows-outlook-2019",
                setup_commands=['powershell -Command "Start-Process outlook"', "timeout /t 10"],
                teardown_commands=["taskkill /f /im outlook.exe"],
            ),
            tags=["popular", "desktop", "microsoft", "legacy"],
        )

    @staticmethod
    def create_yandex_mail() -> EmailClient:
        return EmailClient.create(
            id="yandex-mail",
            name="yandex-mail",
            display_name="Яндекс.Почта (Web)",
            vendor="Yandex",
            type=ClientType.WEB,
            platform=Platform.WEB,
            rendering_engine=RenderingEngine.BLINK,
            market_share=8,
            capabilities=_modern_webmail(flexbox=False),
            test_config=_webmail_test_config(8, 35000, 2500, 4000),
            automation_config=_docker("render-testing/yandex-mail-chrome:latest"),
            tags=["popular", "web", "yandex", "russian", "responsive"],
        )

    @staticmethod
    def create_mail_ru() -> EmailClient:
        return EmailClient.create(
            id="mail-ru",
            name="mail-ru",
            display_name="Mail.ru (Web)",
            vendor="Mail.Ru Group",
            type=ClientType.WEB,
            platform=Platform.WEB,
            rendering_engine=RenderingEngine.BLINK,
            market_share=5,
            capabilities=_modern_webmail(flexbox=False),
            test_config=_webmail_test_config(7, 35000, 2500, 4000),
            automation_config=_docker("render-testing/mail-ru-chrome:latest"),
            tags=["web", "mail-ru", "russian", "responsive"],
        )

    @staticmethod
    def create_apple_mail() -> EmailClient:
        return EmailClient.create(
            id="apple-mail",
            name="apple-mail",
            display_name="Apple Mail (macOS)",
            vendor="Apple",
            type=ClientType.DESKTOP,
            platform=Platform.MACOS,
            rendering_engine=RenderingEngine.WEBKIT,
            market_share=10,
            capabilities=_modern_webmail(
                grid=True,
                custom_properties=True,
                video_support=True,
                image_formats=[*_BASIC_IMAGES, ImageFormat.WEBP, ImageFormat.SVG],
            ),
            test_config=ClientTestConfig(
                priority=7,
                timeout=40000,
                retries=2,
                screenshot_delay=2000,
                load_wait_time=4000,
                dark_mode_test=True,
                viewports=[
                    Viewport(width=600, height=800, device_pixel_ratio=2, name="desktop", is_default=True)
                ],
            ),
            automation_config=VmAutomation(
                vm_template="macos-mail",
                setup_commands=["open -a Mail", "sleep 5"],
                teardown_commands=['osascript -e "quit app \\"Mail\\""'],
            ),
            tags=["desktop", "apple", "webkit", "modern"],
        )

    @classmethod
    def all_presets(cls) -> list[EmailClient]:
        """Every preset client, in seed order."""
        return [
            cls.create_gmail(),
            cls.create_outlook_web(),
            cls.create_outlook_desktop(),
            cls.create_yandex_mail(),
            cls.create_mail_ru(),
            cls.create_apple_mail(),
        ]
