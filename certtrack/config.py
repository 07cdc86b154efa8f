import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    cache_path: Optional[Path] = Field(None, alias="CERTTRACK_CACHE_PATH")
    role_requirements_path: Optional[Path] = Field(None, alias="CERTTRACK_ROLE_REQUIREMENTS_PATH")
    credential_base_url: str = Field(
        "https://drm.my.salesforce-sites.com/services/apexrest/credential",
        alias="CERTTRACK_CREDENTIAL_BASE_URL",
    )
    credential_provider: str = Field("Salesforce", alias="CERTTRACK_CREDENTIAL_PROVIDER")
    fetch_timeout_seconds: float = Field(15.0, gt=0, alias="CERTTRACK_FETCH_TIMEOUT_SECONDS")
    refresh_workers: int = Field(1, ge=1, le=32, alias="CERTTRACK_REFRESH_WORKERS")
    cors_origins: str = Field("*", alias="CERTTRACK_CORS_ORIGINS")
    log_level: str = Field("INFO", alias="CERTTRACK_LOG_LEVEL")
    debug_http: bool = Field(False, alias="CERTTRACK_DEBUG_HTTP")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
