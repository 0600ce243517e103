"""Settings models loaded from config/settings.yaml."""

import re
from datetime import time
from typing import Optional

from pydantic import BaseModel, Field, field_validator

_RUN_AT_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class WebhookSettings(BaseModel):
    """Inbound webhook behavior."""

    max_write_attempts: int = Field(
        default=3, ge=1, description="Read-modify-write attempts before a conflict is reported"
    )


class SweepSettings(BaseModel):
    """Expiry sweep schedule and batch sizing."""

    enabled: bool = Field(default=True, description="Run the scheduled sweep")
    run_at: str = Field(default="00:00", description="Local time of day to run (HH:MM)")
    timezone: str = Field(default="Europe/Istanbul", description="IANA timezone for run_at")
    batch_size: int = Field(default=500, ge=1, description="Maximum records expired per tick")

    @field_validator("run_at")
    @classmethod
    def validate_run_at(cls, value: str) -> str:
        if not _RUN_AT_PATTERN.match(value):
            raise ValueError(f"run_at must be HH:MM, got '{value}'")
        return value

    @property
    def run_at_time(self) -> time:
        hours, minutes = self.run_at.split(":")
        return time(hour=int(hours), minute=int(minutes))


class SmtpSettings(BaseModel):
    """SMTP relay used by the SMTP notifier."""

    host: str = Field(default="localhost", description="SMTP host")
    port: int = Field(default=587, description="SMTP port")
    username: Optional[str] = Field(None, description="SMTP username")
    use_tls: bool = Field(default=True, description="Issue STARTTLS before login")


class NotifierSettings(BaseModel):
    """Outbound email settings."""

    backend: str = Field(default="log", description="'smtp' or 'log'")
    sender_address: str = Field(default="noreply@findco.ai", description="From address")
    sender_name: str = Field(default="FindCo", description="From display name")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Send timeout")
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("smtp", "log"):
            raise ValueError(f"notifier backend must be 'smtp' or 'log', got '{value}'")
        return value


class LinkSettings(BaseModel):
    """Links embedded in emails."""

    site_url: str = Field(default="https://findco.ai")
    profile_url: str = Field(default="https://findco.ai/profile")


class StoreSettings(BaseModel):
    """User store settings."""

    seed_users_path: Optional[str] = Field(None, description="YAML file of users loaded at startup")


class AppSettings(BaseModel):
    """Complete settings.yaml configuration."""

    service_name: str = Field(default="iyzico-subscriptions")
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    sweep: SweepSettings = Field(default_factory=SweepSettings)
    notifier: NotifierSettings = Field(default_factory=NotifierSettings)
    links: LinkSettings = Field(default_factory=LinkSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
