"""Email client entity: capabilities, test settings and automation backend."""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field

from render_testing.domain.base import DomainEntity, DomainModel, coerce_model
from render_testing.domain.clock import utcnow
from render_testing.domain.errors import InvariantViolationError
from render_testing.domain.scoring import round_half_up
from render_testing.domain.types import (
    BrowserName,
    ClientType,
    ImageFormat,
    Platform,
    RenderingEngine,
    WorkerType,
)
from render_testing.domain.values import Viewport, default_viewports


class ClientCapabilities(DomainModel):
    """What the client's renderer supports."""

    dark_mode: bool = False
    responsive_design: bool = False
    css3_support: bool = False
    web_fonts: bool = False
    background_images: bool = False
    media_queries: bool = False
    flexbox: bool = False
    grid: bool = False
    animations: bool = False
    interactive_elements: bool = False
    custom_properties: bool = False
    accessibility_features: bool = False
    video_support: bool = False
    image_formats: list[ImageFormat] = Field(default_factory=list)
    max_email_width: Optional[int] = Field(default=None, gt=0)
    max_email_height: Optional[int] = Field(default=None, gt=0)

    def supports(self, flag: str) -> bool:
        """Check a boolean capability flag by name.

        Raises:
            InvariantViolationError: If ``flag`` is not a boolean capability
        """
        if flag not in CAPABILITY_FLAGS:
            raise InvariantViolationError(EmailClient.entity_name, f"Unknown capability: {flag}")
        return getattr(self, flag)

    def supports_modern_css(self) -> bool:
        return self.css3_support and self.flexbox and self.media_queries

    def supports_responsive(self) -> bool:
        return self.responsive_design and self.media_queries

    def supports_advanced_layout(self) -> bool:
        return self.flexbox or self.grid

    def supports_image_format(self, image_format: Union[ImageFormat, str]) -> bool:
        return image_format in self.image_formats

    def get_supported_feature_count(self) -> int:
        return sum(1 for flag in CAPABILITY_FLAGS if getattr(self, flag))

    def get_limitations(self) -> list[str]:
        """Readable list of the missing features email authors trip over."""
        return [message for flag, message in LIMITATIONS if not getattr(self, flag)]


CAPABILITY_FLAGS = tuple(
    name for name, info in ClientCapabilities.model_fields.items() if info.annotation is bool
)

# (flag, message) in report order
LIMITATIONS = (
    ("css3_support", "Limited CSS3 support"),
    ("responsive_design", "No responsive design support"),
    ("web_fonts", "No web fonts support"),
    ("flexbox", "No Flexbox support"),
    ("grid", "No CSS Grid support"),
    ("dark_mode", "No dark mode support"),
    ("media_queries", "No media queries support"),
    ("custom_properties", "No CSS custom properties"),
)

# Flags that make up the compatibility score
COMPATIBILITY_FEATURES = (
    "css3_support",
    "responsive_design",
    "media_queries",
    "web_fonts",
    "background_images",
    "flexbox",
    "dark_mode",
    "accessibility_features",
)


class ClientTestConfig(DomainModel):
    """How a client is exercised by the capture workers."""

    enabled: bool = True
    priority: int = Field(default=5, ge=1, le=10)
    timeout: int = Field(default=30000, gt=0, description="Capture timeout (ms)")
    retries: int = Field(default=1, ge=0, le=3)
    screenshot_delay: int = Field(default=2000, ge=0, description="ms")
    load_wait_time: int = Field(default=5000, ge=0, description="ms")
    custom_user_agent: Optional[str] = None
    custom_headers: Optional[dict[str, str]] = None
    dark_mode_test: bool = True
    viewports: list[Viewport] = Field(default_factory=default_viewports, min_length=1)

    def get_viewport(self, name: str) -> Optional[Viewport]:
        for viewport in self.viewports:
            if viewport.name == name:
                return viewport
        return None

    def get_mobile_viewports(self) -> list[Viewport]:
        return [v for v in self.viewports if v.is_mobile()]

    def get_tablet_viewports(self) -> list[Viewport]:
        return [v for v in self.viewports if v.is_tablet()]

    def get_desktop_viewports(self) -> list[Viewport]:
        return [v for v in self.viewports if v.is_desktop()]

    def get_total_scenarios(self) -> int:
        """Captures per client: viewports x themes."""
        return len(self.viewports) * (2 if self.dark_mode_test else 1)

    def supports_responsive_testing(self) -> bool:
        return len(self.viewports) > 1

    def add_viewport(self, viewport: Union[Viewport, dict[str, Any]]) -> "ClientTestConfig":
        """Return a copy with ``viewport`` appended.

        Raises:
            InvariantViolationError: If the viewport is invalid or its name is taken
        """
        viewport = coerce_model(Viewport, viewport, EmailClient.entity_name)
        if self.get_viewport(viewport.name) is not None:
            raise InvariantViolationError(
                EmailClient.entity_name, f"Viewport already configured: {viewport.name}"
            )
        return self._with_viewports([*self.viewports, viewport])

    def remove_viewport(self, name: str) -> "ClientTestConfig":
        """Return a copy without the named viewport (unknown names are ignored).

        Raises:
            InvariantViolationError: If it would leave no viewports
        """
        return self._with_viewports([v for v in self.viewports if v.name != name])

    def _with_viewports(self, viewports: list[Viewport]) -> "ClientTestConfig":
        data = {**self.model_dump(), "viewports": [v.model_dump() for v in viewports]}
        return coerce_model(ClientTestConfig, data, EmailClient.entity_name)


class BrowserSettings(DomainModel):
    browser: BrowserName = BrowserName.CHROME
    headless: bool = True
    args: list[str] = Field(default_factory=list)


class _AutomationQueries:
    """Browser queries shared by the automation variants.

    Variants without browser settings run headless with no extra args.
    """

    def _browser_settings(self) -> Optional[BrowserSettings]:
        return getattr(self, "browser_config", None)

    def is_headless(self) -> bool:
        settings = self._browser_settings()
        return settings.headless if settings is not None else True

    def get_browser(self) -> Optional[BrowserName]:
        settings = self._browser_settings()
        return settings.browser if settings is not None else None

    def get_browser_args(self) -> list[str]:
        settings = self._browser_settings()
        return list(settings.args) if settings is not None else []


class DockerAutomation(_AutomationQueries, DomainModel):
    """Client rendered inside a container image."""

    worker_type: Literal["docker"] = "docker"
    container_image: str = Field(..., min_length=1)
    browser_config: Optional[BrowserSettings] = None


class VmAutomation(_AutomationQueries, DomainModel):
    """Client rendered in a virtual machine (desktop mail apps)."""

    worker_type: Literal["vm"] = "vm"
    vm_template: str = Field(..., min_length=1)
    setup_commands: list[str] = Field(default_factory=list)
    teardown_commands: list[str] = Field(default_factory=list)


class BrowserAutomation(_AutomationQueries, DomainModel):
    """Client rendered directly by a browser worker."""

    worker_type: Literal["browser"] = "browser"
    browser_config: BrowserSettings = Field(default_factory=BrowserSettings)


AutomationConfig = Annotated[
    Union[DockerAutomation, VmAutomation, BrowserAutomation],
    Field(discriminator="worker_type"),
]


class EmailClient(DomainEntity):
    """An email client (Gmail, Outlook...) that renders are validated against.

    Mutators change the client in place and return it; each change is
    validated on a copy first, so a rejected change leaves it untouched.
    """

    entity_name = "email_client"

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    vendor: str = Field(..., min_length=1)
    version: Optional[str] = None
    type: ClientType
    platform: Platform
    rendering_engine: RenderingEngine
    market_share: Optional[float] = Field(default=None, ge=0, le=100)
    capabilities: ClientCapabilities
    test_config: ClientTestConfig
    automation_config: AutomationConfig
    is_active: bool = True
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(
        cls,
        id: str,
        name: str,
        display_name: str,
        vendor: str,
        type: ClientType,
        platform: Platform,
        rendering_engine: RenderingEngine,
        capabilities: Union[ClientCapabilities, dict[str, Any]],
        test_config: Union[ClientTestConfig, dict[str, Any]],
        automation_config: Union[DockerAutomation, VmAutomation, BrowserAutomation, dict[str, Any]],
        version: Optional[str] = None,
        market_share: Optional[float] = None,
        tags: Optional[list[str]] = None,
        notes: Optional[str] = None,
    ) -> "EmailClient":
        """Create an active client.

        Raises:
            InvariantViolationError: If the definition is inconsistent
        """
        now = utcnow()
        return cls.from_data(
            {
                "id": id,
                "name": name,
                "display_name": display_name,
                "vendor": vendor,
                "version": version,
                "type": type,
                "platform": platform,
                "rendering_engine": rendering_engine,
                "market_share": market_share,
                "capabilities": capabilities,
                "test_config": test_config,
                "automation_config": automation_config,
                "is_active": True,
                "tags": list(tags or []),
                "notes": notes,
                "created_at": now,
                "updated_at": now,
            }
        )

    def validate_invariants(self) -> None:
        if self.type == ClientType.WEB:
            self._invariant(
                self.platform == Platform.WEB, "Web clients must have web platform"
            )
        if self.type == ClientType.MOBILE:
            self._invariant(
                self.platform in (Platform.IOS, Platform.ANDROID),
                "Mobile clients must have iOS or Android platform",
            )
        self._invariant(
            len(self.test_config.viewports) > 0,
            "At least one viewport must be configured",
        )
        if self.market_share is not None:
            self._invariant(
                0 <= self.market_share <= 100,
                "Market share must be between 0 and 100",
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def supports_feature(self, feature: str) -> bool:
        """Check a boolean capability flag by name.

        Raises:
            InvariantViolationError: If ``feature`` is not a boolean capability
        """
        return self.capabilities.supports(feature)

    def supports_dark_mode(self) -> bool:
        """Dark mode is tested only when the client supports it and it's enabled."""
        return self.capabilities.dark_mode and self.test_config.dark_mode_test

    def get_default_viewport(self) -> Viewport:
        for viewport in self.test_config.viewports:
            if viewport.is_default:
                return viewport
        return self.test_config.viewports[0]

    def get_viewports(self) -> list[Viewport]:
        return list(self.test_config.viewports)

    def is_responsive_capable(self) -> bool:
        return (
            self.capabilities.responsive_design
            and self.capabilities.media_queries
            and len(self.test_config.viewports) > 1
        )

    def get_worker_type(self) -> WorkerType:
        return WorkerType(self.automation_config.worker_type)

    def requires_vm(self) -> bool:
        return self.get_worker_type() == WorkerType.VM

    def can_use_container(self) -> bool:
        return self.get_worker_type() == WorkerType.DOCKER

    def get_estimated_test_duration(self) -> int:
        """Estimated time (ms) to capture every viewport/theme for this client."""
        cfg = self.test_config
        themes = 2 if self.supports_dark_mode() else 1
        return cfg.timeout * len(cfg.viewports) * themes + cfg.load_wait_time + cfg.screenshot_delay

    def is_high_priority(self) -> bool:
        return self.test_config.priority >= 8 or (self.market_share or 0) >= 20

    def get_compatibility_score(self) -> int:
        """Percentage of key rendering features the client supports."""
        supported = sum(
            1 for feature in COMPATIBILITY_FEATURES if getattr(self.capabilities, feature)
        )
        return round_half_up(supported / len(COMPATIBILITY_FEATURES) * 100)

    def is_testable(self) -> bool:
        """Active and enabled for testing."""
        return self.is_active and self.test_config.enabled

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def get_summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "type": self.type.value,
            "platform": self.platform.value,
            "compatibility_score": self.get_compatibility_score(),
            "is_active": self.is_active,
            "supports_dark_mode": self.supports_dark_mode(),
            "estimated_duration": self.get_estimated_test_duration(),
        }

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def activate(self) -> "EmailClient":
        return self._apply_changes({"is_active": True, "updated_at": utcnow()})

    def deactivate(self) -> "EmailClient":
        return self._apply_changes({"is_active": False, "updated_at": utcnow()})

    def update(self, **changes: Any) -> "EmailClient":
        """Replace top-level attributes (identity and creation time are fixed).

        Raises:
            InvariantViolationError: If a field is unknown/immutable or the
                result breaks an invariant
        """
        fixed = {"id", "created_at"} & changes.keys()
        if fixed:
            self._invariant(False, f"Cannot update immutable fields: {sorted(fixed)}")
        return self._apply_changes({**changes, "updated_at": utcnow()})

    def update_test_config(self, **changes: Any) -> "EmailClient":
        """Merge changes into the test config."""
        merged = {**self.test_config.model_dump(), **changes}
        config = coerce_model(ClientTestConfig, merged, self.entity_name)
        return self._apply_changes({"test_config": config, "updated_at": utcnow()})

    def add_viewport(self, viewport: Union[Viewport, dict[str, Any]]) -> "EmailClient":
        config = self.test_config.add_viewport(viewport)
        return self._apply_changes({"test_config": config, "updated_at": utcnow()})

    def remove_viewport(self, name: str) -> "EmailClient":
        config = self.test_config.remove_viewport(name)
        return self._apply_changes({"test_config": config, "updated_at": utcnow()})

    def update_capabilities(self, **changes: Any) -> "EmailClient":
        """Merge changes into the capabilities."""
        merged = {**self.capabilities.model_dump(), **changes}
        capabilities = coerce_model(ClientCapabilities, merged, self.entity_name)
        return self._apply_changes({"capabilities": capabilities, "updated_at": utcnow()})

    def add_tag(self, tag: str) -> "EmailClient":
        if self.has_tag(tag):
            return self
        return self._apply_changes({"tags": [*self.tags, tag], "updated_at": utcnow()})

    def remove_tag(self, tag: str) -> "EmailClient":
        if not self.has_tag(tag):
            return self
        return self._apply_changes(
            {"tags": [t for t in self.tags if t != tag], "updated_at": utcnow()}
        )
