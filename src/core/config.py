from typing import Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Accounting backend (all business logic lives there)
    backend_url: str = "http://localhost:8080"
    backend_api_prefix: str = "/api/accounting"
    backend_timeout_seconds: float = 30.0

    # App
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    # Can be a comma-separated string or list
    cors_allowed_origins: Union[str, list[str]] = "http://localhost:3000,http://localhost:5173"

    # Composer drafts are dropped after this much inactivity
    draft_ttl_minutes: int = 120

    # School identity (for PDF invoices and export file names)
    school_name: str = "Vumba View Academy"
    school_address: str = "Private School - Mutare, Zimbabwe"
    school_email: str = "info@vumbaacademy.com"
    currency_symbol: str = "$"
    export_prefix: str = "Vumba"

    @property
    def school_info(self) -> dict[str, str]:
        """One dict for PDF templates: school name, address, email."""
        return {
            "name": self.school_name,
            "address": self.school_address,
            "email": self.school_email,
        }

    @property
    def backend_base_url(self) -> str:
        """Backend URL joined with the accounting API prefix."""
        prefix = self.backend_api_prefix.strip("/")
        return f"{self.backend_url}/{prefix}" if prefix else self.backend_url

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @field_validator("backend_url", mode="before")
    @classmethod
    def normalize_backend_url(cls, v):
        """Require a backend URL and drop trailing slashes."""
        if not v:
            raise ValueError("BACKEND_URL is required")
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


settings = Settings()
