"""Configuration loading via Pydantic settings."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

# External recruiting-system category code -> display name.
DEFAULT_CATEGORIES: dict[str, str] = {
    "853": "Administrative Services",
    "814": "Behavioral Health",
    "815": "Compliance",
    "4757": "Corporate Development",
    "816": "Finance",
    "817": "Foundation",
    "818": "Government Affairs",
    "819": "Human Resources",
    "822": "Information Systems",
    "820": "Legal",
    "5703": "Long Term Services and Supports",
    "821": "Management",
    "823": "Marketing & Communications",
    "824": "Medical Management",
    "825": "Medicare",
    "827": "Operations",
    "833": "Other",
    "828": "Pharmacy",
    "829": "Project Management Office",
    "5704": "Provider Network",
    "830": "Public Affairs",
    "831": "Public Policy",
    "5556": "Quality - Clinical",
    "832": "Strategic Planning & Execution",
    "5697": "Summer Intern",
}


class FeedConfig(BaseModel):
    url: str = "https://chk.tbe.taleo.net/chk05/ats/servlet/Rss"
    params: dict[str, str] = Field(default_factory=lambda: {
        "org": "AMERINC",
        "cws": "1",
        "WebPage": "SRCHR",
        "WebVersion": "0",
        "_rss_version": "2",
    })
    category_param: str = "CUSTOM_1025"
    timeout: float = 20.0
    user_agent: str = "careersync/0.1"


class GeocoderConfig(BaseModel):
    url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    api_key: str = ""
    timeout: float = 10.0

    @property
    def effective_api_key(self) -> str:
        return os.getenv("CAREERSYNC_GEOCODER_KEY", "") or self.api_key


class SyncConfig(BaseModel):
    categories: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_CATEGORIES))
    max_workers: int = Field(default=1, ge=1, le=16)
    geocode_mode: str = "inline"  # inline, deferred
    reconcile_scope: str = "fetched"  # fetched, all
    backfill_limit: int = 200


class SearchConfig(BaseModel):
    page_size: int = Field(default=10, ge=1, le=100)
    teaser_limit: int = 3


class WebConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


class SchedulerConfig(BaseModel):
    enabled: bool = False
    cron: str = "0 */4 * * *"  # Every four hours


class LoggingConfig(BaseModel):
    level: str = "INFO"


class CareerSyncConfig(BaseModel):
    feed: FeedConfig = FeedConfig()
    geocoder: GeocoderConfig = GeocoderConfig()
    sync: SyncConfig = SyncConfig()
    search: SearchConfig = SearchConfig()
    web: WebConfig = WebConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    logging: LoggingConfig = LoggingConfig()
    db_path: str = "careersync.db"
    database_url: str | None = None

    @property
    def effective_database_url(self) -> str:
        return self.database_url or f"sqlite:///{self.db_path}"


def load_config(config_path: Path | None = None) -> CareerSyncConfig:
    """Load configuration from YAML file."""
    if config_path is None:
        config_path = Path(os.getenv("CAREERSYNC_CONFIG", "config.yaml"))

    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        return CareerSyncConfig(**data)

    return CareerSyncConfig()
