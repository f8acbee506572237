"""
Configuration Management for the Budget Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Each concern gets its own settings group with its own env prefix, so a
deployment can override storage paths without touching engine limits.
"""

from functools import lru_cache
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Ledger file and backup configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="BUDGET_STORAGE_",
        extra="ignore"
    )
    
    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory holding ledger files"
    )
    backup_dir_name: str = Field(
        default="backups",
        min_length=1,
        description="Backup directory created beside each ledger file"
    )
    backup_retention: int = Field(
        default=5,
        ge=1,
        description="How many backups to keep per ledger"
    )


class EngineSettings(BaseSettings):
    """Scheduling and reporting limits."""
    
    model_config = SettingsConfigDict(
        env_prefix="BUDGET_ENGINE_",
        extra="ignore"
    )
    
    default_currency: str = Field(
        default="USD",
        description="Accounting currency for new ledgers"
    )
    max_recurrence_iterations: int = Field(
        default=10000,
        ge=1,
        description="Upper bound on steps of a single recurrence walk"
    )
    forecast_top_n: int = Field(
        default=10,
        ge=0,
        description="How many upcoming entries a forecast highlights"
    )
    over_budget_tolerance: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        description="Variance above this amount counts as over budget"
    )
    pending_window_days: int = Field(
        default=7,
        ge=0,
        description="Fallback pending horizon when no budget period applies"
    )
    
    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Currency codes are three upper-case letters."""
        v = v.strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"Invalid currency code: {v!r}")
        return v


class AuditSettings(BaseSettings):
    """Audit trail configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="BUDGET_AUDIT_",
        extra="ignore"
    )
    
    enabled: bool = Field(
        default=True,
        description="Emit audit events"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="JSON-lines file for persisted audit events"
    )


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
    
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    
    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()
    
    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()
    
    @property
    def audit(self) -> AuditSettings:
        return AuditSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).
    
    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.
    
    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    
    settings = get_settings()
    
    for name in ("storage", "engine", "audit"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)
    
    return results
