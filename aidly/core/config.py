from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator
from functools import lru_cache

from ..services.business_time import BusinessHoursConfig

class Settings(BaseSettings):
    app_secret: str = Field(alias="APP_SECRET", default="change-me-please-32bytes")
    # ANALYTICS_QUERY_TIMEOUT is only enforced on PostgreSQL; SQLite runs report queries unbounded
    database_url: str = Field(default="sqlite+aiosqlite:///./aidly_analytics.db", alias="DATABASE_URL")
    debug: bool = Field(default=False, alias="DEBUG")

    # Business hours used for SLA metrics. BUSINESS_DAYS takes 0=Sun..6=Sat numbers or Mon..Sun names
    business_days: str = Field(default="1,2,3,4,5", alias="BUSINESS_DAYS")
    business_hours_start: str = Field(default="09:00", alias="BUSINESS_HOURS_START")
    business_hours_end: str = Field(default="18:00", alias="BUSINESS_HOURS_END")
    timezone: str = Field(default="UTC", alias="DEFAULT_TIMEZONE")

    # Report engine
    storage_path: str = Field(default="storage", alias="STORAGE_PATH")
    query_timeout_seconds: int = Field(default=30, alias="ANALYTICS_QUERY_TIMEOUT")
    report_retention_days: int = Field(default=90, alias="REPORT_RETENTION_DAYS")
    scheduled_reports_limit: int = Field(default=10, alias="SCHEDULED_REPORTS_LIMIT")
    schedule_max_failures: int = Field(default=5, alias="SCHEDULE_MAX_FAILURES")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_business_hours(self):
        # Malformed business hours stop the process at startup, not on the first SLA request
        self.business_hours_config()
        return self

    def business_hours_config(self) -> BusinessHoursConfig:
        return BusinessHoursConfig.from_strings(
            days=self.business_days,
            start=self.business_hours_start,
            end=self.business_hours_end,
            timezone=self.timezone,
        )

@lru_cache
def get_settings() -> Settings:
    return Settings()
