# Application settings loaded from environment variables / .env
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import List


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./trades.db"
    echo: bool = False
    ready_timeout_seconds: float = 30.0


class BrokerSettings(BaseModel):
    """Remote broker REST API configuration"""
    name: str = "topstep"  # Stored as the `broker` tag of every ingested trade
    base_url: str = "https://api.topstepx.com"
    username: str = ""
    api_key: str = ""
    account_name: str = ""  # Case-insensitive prefix used to pick the trading account
    request_timeout_seconds: float = 10.0


class SyncSettings(BaseModel):
    """Trigger intervals for the trade synchronization engine"""
    incremental_interval_seconds: float = 60.0
    incremental_lookback_seconds: float = 60.0
    token_refresh_interval_seconds: float = 24 * 60 * 60
    clear_on_startup: bool = True


class BroadcastSettings(BaseModel):
    subscriber_queue_size: int = 1000


class WebhookSettings(BaseModel):
    """Inbound alert webhook"""
    # Shared secret carried in the alert body; empty disables the webhook
    tradingview_key: str = ""


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_format: bool = False
    # Keys whose values are masked before rendering
    redact_keys: list[str] = [
        "authorization", "token", "api_key", "apikey", "password", "secret",
        "key", "tradingview_key"
    ]


class APISettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 4000
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    @field_validator('cors_origins')
    def validate_cors_origins(cls, v):
        """Validate CORS origins configuration"""
        if "*" in v and len(v) > 1:
            raise ValueError("Cannot mix '*' with specific origins")
        return v


class Settings(BaseSettings):
    """Main application settings, loaded from environment variables"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore"
    )

    app_name: str = "Trade Sync"
    version: str = "1.0.0"
    environment: Environment = Environment.DEVELOPMENT

    database: DatabaseSettings = DatabaseSettings()
    broker: BrokerSettings = BrokerSettings()
    sync: SyncSettings = SyncSettings()
    broadcast: BroadcastSettings = BroadcastSettings()
    logging: LoggingSettings = LoggingSettings()
    api: APISettings = APISettings()
    webhook: WebhookSettings = WebhookSettings()

    def has_broker_credentials(self) -> bool:
        return bool(self.broker.username and self.broker.api_key)


# No global settings instance - use dependency injection instead
