"""Application configuration using pydantic settings with structured sections."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False


class DatabaseSettings(BaseModel):
    url: str = Field(default="sqlite+aiosqlite:///./escrow.db", alias="url")
    echo: bool = False
    pool_size: Optional[int] = None
    max_overflow: Optional[int] = None
    create_tables: bool = True


class SecuritySettings(BaseModel):
    secret_key: str = Field(default="change-me", min_length=8)
    algorithm: str = "HS256"
    admin_roles: list[str] = Field(default_factory=lambda: ["admin", "super_admin"])


class LedgerSettings(BaseModel):
    provider: Literal["stripe", "memory"] = "memory"
    stripe_secret_key: Optional[str] = None
    stripe_api_version: Optional[str] = "2023-10-16"


class SettlementSettings(BaseModel):
    """Money movement policy. Fee amounts are integer cents."""

    inspection_window_hours: int = Field(default=72, ge=0)
    return_ship_window_hours: int = Field(default=72, ge=0)
    instant_fee_rate: Decimal = Decimal("0.03")
    instant_fee_min_cents: int = Field(default=75, ge=0)
    instant_fee_max_cents: int = Field(default=2500, ge=0)
    platform_account_ref: Optional[str] = None
    currency: str = "usd"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """Top-level application settings with nested sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    project_name: str = "Escrow Settlement Server"
    api_prefix: str = "/api"

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    security: SecuritySettings = SecuritySettings()
    ledger: LedgerSettings = LedgerSettings()
    settlement: SettlementSettings = SettlementSettings()
    logging: LoggingSettings = LoggingSettings()

    @property
    def database_url(self) -> str:
        return self.database.url

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def secret_key(self) -> str:
        return self.security.secret_key

    @property
    def algorithm(self) -> str:
        return self.security.algorithm


@lru_cache()
def get_settings() -> Settings:
    return Settings()
