"""Configuration management for the ranking bot."""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SiteSettings(BaseModel):
    """Marketplace URL layout and results-page geometry."""

    base_url_template: str = "https://www.kaufland.{location}"
    cart_path: str = "/checkout/cart"
    product_path_template: str = "/product/{product_id}/"

    # Results pages render no page-index control below this many items
    items_per_page: int = 40
    price_input_count: int = 2

    viewport_width: int = 1366
    viewport_height: int = 768


class TimeoutSettings(BaseModel):
    """Bounds for every wait-for-condition primitive (seconds unless noted)."""

    ready_s: float = 30.0
    element_s: float = 15.0
    settle_s: float = 15.0
    consent_s: float = 3.0
    page_index_s: float = 5.0
    poll_interval_s: float = 0.25
    navigation_ms: int = 45000


class RetrySettings(BaseModel):
    """Bounded retry budgets for recoverable steps."""

    filter_reapply: int = 1
    cart_confirm_polls: int = 10
    cart_confirm_interval_s: float = 0.5
    resync_attempts: int = 3


class HumanActivitySettings(BaseModel):
    """Ranges used by the human-activity loop."""

    moves_min: int = 2
    moves_max: int = 6
    move_steps: int = 12
    pause_min_s: float = 0.2
    pause_max_s: float = 0.9
    scan_pause_s: float = 0.3
    typing_delay_min_ms: int = 50
    typing_delay_max_ms: int = 180


class DiagnosticsSettings(BaseModel):
    """Where failure snapshots go."""

    snapshot_dir: Path = Path("logs/rankbot/snapshots")
    capture_snapshots: bool = True


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="RANKBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",  # RANKBOT_TIMEOUTS__READY_S=20
    )

    log_level: str = "INFO"

    site: SiteSettings = Field(default_factory=SiteSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    retries: RetrySettings = Field(default_factory=RetrySettings)
    human: HumanActivitySettings = Field(default_factory=HumanActivitySettings)
    diagnostics: DiagnosticsSettings = Field(default_factory=DiagnosticsSettings)

    def base_url(self, location: str) -> str:
        """Shop root for a site locale."""
        return self.site.base_url_template.format(location=location)

    def cart_url(self, location: str) -> str:
        return self.base_url(location) + self.site.cart_path

    def product_url(self, location: str, product_id: str) -> str:
        return self.base_url(location) + self.site.product_path_template.format(product_id=product_id)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
