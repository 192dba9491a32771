# lpg_api/config.py
"""
Settings for the LPG Center API.

Read from the environment (and an optional ``.env``) via pydantic-settings:

    ROUTE_PREFIX               shared path prefix for every route
    LOG_LEVEL / LOG_FORMAT     INFO, console|json
    CORS_ALLOW_ORIGINS         comma separated, "*" for any
    KV_BACKEND                 memory | sqlite | supabase
    SQLITE_PATH                file used by the sqlite backend
    KV_TABLE                   PostgREST table used by the supabase backend
    AUTH_BACKEND               memory | supabase
    SUPABASE_URL               project url, e.g. https://xyz.supabase.co
    SUPABASE_SERVICE_ROLE_KEY  service role key (server side only)
    AUTH_EMAIL_DOMAIN          domain of the synthetic login email
    HTTP_TIMEOUT               seconds, for outbound provider/store calls
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "K4J LPG Center API"
    app_version: str = "1.0.0"
    route_prefix: str = "/make-server-9f945771"

    log_level: str = "INFO"
    log_format: str = "console"

    cors_allow_origins: str = "*"

    kv_backend: str = "memory"
    sqlite_path: Path = Path("./.lpg-data/kv.db")
    kv_table: str = "kv_store_9f945771"

    auth_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    auth_email_domain: str = "k4jlpg.local"

    http_timeout: float = Field(10.0, gt=0)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("route_prefix")
    @classmethod
    def _normalize_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    @field_validator("kv_backend", "auth_backend", "log_format")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

    def require_supabase(self) -> None:
        if not self.supabase_url or not self.supabase_service_role_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for the supabase backend")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
