import json
import os
import re
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_TRUTHY = {"1", "true", "yes", "y", "on"}
_DEV_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
)


def _env_of(info: ValidationInfo) -> str:
    return str(info.data.get("environment", "dev") or "dev").strip().lower()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    environment: str = Field(default="dev", validation_alias="ENVIRONMENT")
    app_name: str = Field(default="Atelier Vault API", validation_alias="PROJECT_NAME")
    build_version: Optional[str] = Field(default=None, validation_alias="BUILD_VERSION")
    database_url: str = Field(
        default="sqlite+pysqlite:///./vault-dev.db",
        validation_alias="DATABASE_URL",
        validate_default=True,
    )
    # API prefix used by FastAPI router include (e.g. "/api").
    api_prefix: str = Field(default="", validation_alias="API_V1_STR")
    enable_docs: Optional[bool] = Field(
        default=None, validation_alias="ENABLE_DOCS", validate_default=True
    )
    secret_key: str = Field(default="change-me", validation_alias="SECRET_KEY", validate_default=True)
    access_token_expire_minutes: int = Field(
        default=60, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES"
    )
    algorithm: str = Field(default="HS256", validation_alias="ALGORITHM")
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=list, validation_alias="CORS_ORIGINS", validate_default=True
    )
    run_migrations_on_start: bool = Field(default=False, validation_alias="RUN_MIGRATIONS_ON_START")

    # Background jobs
    scheduler_enabled: bool = Field(default=True, validation_alias="SCHEDULER_ENABLED")
    escrow_sweep_interval_seconds: int = Field(
        default=300, validation_alias="ESCROW_SWEEP_INTERVAL_SECONDS"
    )
    escrow_auto_release: bool = Field(default=True, validation_alias="ESCROW_AUTO_RELEASE")

    # Commercial terms
    dispute_window_hours: int = Field(default=48, validation_alias="DISPUTE_WINDOW_HOURS")
    platform_fee_pct: float = Field(default=5.0, validation_alias="PLATFORM_FEE_PCT")
    deposit_iban: str = Field(
        default="DE35 2022 0800 0056 5751 78", validation_alias="DEPOSIT_IBAN"
    )
    nft_mint_delay_seconds: float = Field(default=5.0, validation_alias="NFT_MINT_DELAY_SECONDS")

    # Dev-only bootstrap account
    seed_admin_email: str = Field(default="admin@atelier.local", validation_alias="SEED_ADMIN_EMAIL")
    seed_admin_password: str = Field(default="atelier-admin", validation_alias="SEED_ADMIN_PASSWORD")

    @field_validator("enable_docs", mode="before")
    @classmethod
    def default_enable_docs(cls, value, info: ValidationInfo):
        if value is None or value == "":
            return _env_of(info) in {"dev", "development", "test"}
        if isinstance(value, str):
            return value.strip().lower() in _TRUTHY
        return bool(value)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value, info: ValidationInfo):
        """Accept a JSON list or a comma-separated string; browsers send origins without a trailing slash."""

        if value is None or value == "" or value == []:
            if _env_of(info) in {"prod", "production"}:
                raise ValueError("CORS_ORIGINS must be explicitly set in production")
            return list(_DEV_ORIGINS)

        items = value
        if isinstance(value, str):
            s = value.strip().strip("'\"")
            try:
                items = json.loads(s)
            except json.JSONDecodeError:
                items = s.strip("[]").split(",")
            if isinstance(items, str):
                items = [items]
        return [str(o).strip().strip("'\"").rstrip("/") for o in items if str(o).strip()]

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, v) -> str:
        s = str(v or "").strip().replace("\\", "/")
        if not s:
            return ""
        # Git Bash rewrites "/api" into "C:/Program Files/Git/api".
        m = re.search(r"(/api(?:/\S*)?)$", s)
        if m:
            return m.group(1).rstrip("/")
        return "/" + s.strip("/")

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Route Postgres URLs to psycopg 3 and anchor relative SQLite paths at the project root."""

        s = str(v or "").strip()
        for legacy in ("postgres://", "postgresql://", "postgresql+psycopg2://"):
            if s.startswith(legacy):
                return "postgresql+psycopg://" + s[len(legacy) :]

        marker = ":///./"
        if s.startswith("sqlite") and marker in s:
            head, rel = s.split(marker, 1)
            project_root = Path(__file__).resolve().parents[1]
            return f"{head}:///{(project_root / rel).resolve().as_posix()}"
        return s

    @field_validator("database_url")
    @classmethod
    def validate_database_url_for_environment(cls, v: str, info: ValidationInfo) -> str:
        if _env_of(info) in {"prod", "production"}:
            if not os.getenv("DATABASE_URL"):
                raise ValueError("DATABASE_URL must be explicitly set in production")
            if v.startswith("sqlite"):
                raise ValueError("SQLite DATABASE_URL is not allowed in production")
            if "localhost" in v or "127.0.0.1" in v:
                raise ValueError("DATABASE_URL must not point to localhost in production")
        return v

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if not v or v.lower() in {"change-me", "secret", "changeme"} or len(v) < 16:
            raise ValueError("SECRET_KEY must be set to a strong value")
        return v

    @field_validator("platform_fee_pct")
    @classmethod
    def validate_platform_fee(cls, v: float) -> float:
        if v < 0 or v > 100:
            raise ValueError("PLATFORM_FEE_PCT must be between 0 and 100")
        return v


settings = Settings()
