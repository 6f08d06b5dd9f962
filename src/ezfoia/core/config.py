"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

_PROJECT_ROOT = Path(__file__).resolve().parents[3]


def resolve_config_path(path: str | Path) -> Path:
    """Resolve a config file path relative to the project root."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return _PROJECT_ROOT / candidate


class GenerationConfig(BaseSettings):
    """Letter generation (LLM) configuration."""

    model_config = {"env_prefix": "EZFOIA_GENERATION_"}

    provider: str = "template"
    base_url: str = "http://localhost:8000"
    model: str = "google/gemini-3-flash-preview"
    api_key: str | None = None
    timeout_seconds: int = 60
    max_retries: int = 1
    max_tokens: int = 2048
    temperature: float = 0.3


class BillingConfig(BaseSettings):
    """Billing status and checkout configuration."""

    model_config = {"env_prefix": "EZFOIA_BILLING_"}

    provider: str = "mock"
    status_url: str = "http://localhost:54321/functions/v1/check-subscription"
    checkout_url: str = "http://localhost:54321/functions/v1/create-checkout"
    api_key: str | None = None
    timeout_seconds: int = 15
    plans_path: str = "config/plans.yml"
    success_url: str = "http://localhost:5173/payment-success"
    cancel_url: str = "http://localhost:5173/"
    webhook_secret: str | None = None


class EntitlementConfig(BaseSettings):
    """Entitlement resolution configuration."""

    model_config = {"env_prefix": "EZFOIA_ENTITLEMENT_"}

    allow_test_override: bool = False
    cache_ttl_seconds: int = 60


class SubmissionConfig(BaseSettings):
    """Submission pipeline configuration."""

    model_config = {"env_prefix": "EZFOIA_SUBMISSION_"}

    first_request_free: bool = False
    record_type: str = "other"
    confirmation_record_type: str = "FOIA Request"
    verify_entitlement_on_return: bool = True


class StorageConfig(BaseSettings):
    """Persistence configuration. In-memory stores are used when no URL is set."""

    model_config = {"env_prefix": "EZFOIA_STORAGE_"}

    database_url: str | None = None
    echo: bool = False
    pool_size: int = 5


class NotificationConfig(BaseSettings):
    """Notification configuration."""

    model_config = {"env_prefix": "EZFOIA_NOTIFICATION_"}

    templates_path: str = "config/notification_templates.yml"
    default_name: str = "Valued Customer"


class AuthConfig(BaseSettings):
    """Authentication configuration."""

    model_config = {"env_prefix": "EZFOIA_AUTH_"}

    provider: str = "mock"
    fixtures_path: str = "config/auth_fixtures.yml"
    token_expiry_minutes: int = 60


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "EZFOIA_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    entitlement: EntitlementConfig = Field(default_factory=EntitlementConfig)
    submission: SubmissionConfig = Field(default_factory=SubmissionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
