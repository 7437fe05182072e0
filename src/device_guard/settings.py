from functools import lru_cache
from typing import Literal, final

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL


class PostgresConfig(BaseModel):
    user: str
    password: str
    host: str
    port: int = 5432
    db: str


class APIConfig(BaseModel):
    title: str = "Device Guard API"
    version: str = "1.0.0"
    port: int = 8000
    host: str = "0.0.0.0"
    allowed_hosts: list[str] = Field(default_factory=list)
    api_key: str | None = None


class DeviceGuardConfig(BaseModel):
    account_limit: int = Field(default=3, ge=1)
    audio_timeout_ms: int = Field(default=1000, ge=1)
    storage_backend: Literal["memory", "database"] = "database"
    enforce_on_login: bool = False
    mask_existing_emails: bool = True
    recompute_composite_hash: bool = True

    violation_threshold: int = Field(default=3, ge=1)
    violations_limit: int = Field(default=20, ge=1, le=500)


@final
class Config(BaseSettings):
    model_config: SettingsConfigDict = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="APP__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: Literal["local", "dev", "prod"] = "local"

    api: APIConfig = APIConfig()
    devices: DeviceGuardConfig = DeviceGuardConfig()

    postgres: PostgresConfig | None = None
    database_dsn: str | None = None

    @property
    def database_url(self) -> str:
        if self.database_dsn:
            return self.database_dsn
        if self.postgres is None:
            return "sqlite+aiosqlite:///./device_guard.db"
        host = "localhost" if self.env == "local" else self.postgres.host
        return URL.build(
            scheme="postgresql+asyncpg",
            user=self.postgres.user,
            password=self.postgres.password,
            host=host,
            port=self.postgres.port,
            path=f"/{self.postgres.db}",
        ).human_repr()


@lru_cache
def get_config() -> Config:
    return Config()
