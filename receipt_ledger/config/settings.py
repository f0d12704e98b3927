"""
Configuration Management for Receipt Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Credentials for the ledger API default to empty strings.
Their presence is checked where they are used (authentication, dossier
session), not at startup, so the process can boot before an operator has
entered them.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerApiSettings(BaseSettings):
    """CNX ledger API connection and session settings."""
    
    model_config = SettingsConfigDict(
        env_prefix="CNX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    base_url: str = Field(
        default="",
        description="Ledger API base URL, e.g. https://host/cnx/api"
    )
    identifiant: str = Field(
        default="",
        description="Ledger API login"
    )
    motdepasse: str = Field(
        default="",
        description="Ledger API password"
    )
    code_dossier: str = Field(
        default="",
        description="Tenant/dossier code opened before each upload or post"
    )
    
    ged_folder_id: int = Field(
        default=945,
        description="GED folder (idArboGed) receiving uploaded receipts"
    )
    session_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="How long an authentication token is reused"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for every ledger API call"
    )
    
    @field_validator("base_url", "identifiant", "motdepasse", "code_dossier")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()


class GeminiSettings(BaseSettings):
    """Gemini vision model configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for one extraction call"
    )


class CropperSettings(BaseSettings):
    """Optional PDF cropping sidecar."""
    
    model_config = SettingsConfigDict(
        env_prefix="CROPPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    enabled: bool = Field(
        default=False,
        description="Send PDFs to the cropper before upload and extraction"
    )
    url: str = Field(
        default="",
        description="Cropper base URL"
    )
    timeout_ms: int = Field(
        default=45000,
        ge=1,
        description="Cropper timeout in milliseconds"
    )
    
    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")
    
    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.url)
    
    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class AppSettings(BaseSettings):
    """
    Main application settings.
    
    Loads configuration from environment variables and .env file.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    
    # Upload limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    
    # Rasterizer
    poppler_path: Optional[str] = Field(
        default=None,
        description="Directory holding the poppler binaries, when not on PATH"
    )
    rasterizer_dpi: int = Field(
        default=200,
        ge=72,
        le=600,
        description="Resolution of the rendered page"
    )
    rasterizer_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for rasterizing one page"
    )
    
    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.
    
    Aggregates all sub-settings for easy access.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    # Sub-settings are loaded lazily to allow partial configuration
    
    @property
    def ledger(self) -> LedgerApiSettings:
        return LedgerApiSettings()
    
    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()
    
    @property
    def cropper(self) -> CropperSettings:
        return CropperSettings()
    
    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).
    
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.
    
    Returns a dict of {setting_name: is_valid} plus `<name>_error`
    entries for the ones that failed. Ledger credentials are reported
    as missing rather than invalid because they may be supplied later.
    """
    results: dict[str, object] = {}
    
    settings = get_settings()
    
    for name in ("ledger", "gemini", "cropper", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    if results.get("ledger"):
        ledger = settings.ledger
        missing: list[str] = [
            f"CNX_{key.upper()}"
            for key in ("base_url", "identifiant", "motdepasse", "code_dossier")
            if not getattr(ledger, key)
        ]
        if missing:
            results["ledger_missing"] = missing
    
    return results

