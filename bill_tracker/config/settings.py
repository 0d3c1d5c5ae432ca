"""
Bill Tracker settings.

Every knob is read from the environment (or .env) through pydantic-settings:
- GOOGLE_SHEETS_* for the remote bills table
- LOCAL_STORE_* for the on-device snapshot
- unprefixed variables for the application itself

Missing Sheets credentials are not fatal; the app then runs offline.
"""

import warnings
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MONTH_TOKEN_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file used to open the spreadsheet"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet holding the bills worksheet"
    )

    # One worksheet plays the role of the remote "bills" table
    bills_sheet_name: str = Field(
        default="bills",
        description="Name of the worksheet holding bill rows"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; it may be mounted after startup."""
        if not Path(v).exists():
            warnings.warn(f"Service account key not found at {v}; Sheets sync will fail.")
        return v


class LocalStoreSettings(BaseSettings):
    """On-device snapshot store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_STORE_",
        env_file=".env",
        extra="ignore"
    )

    directory: str = Field(
        default=".bill_tracker",
        description="Directory holding the JSON snapshot files"
    )
    bills_key: str = Field(
        default="gestor_contas_data",
        description="Snapshot key for the bill collection"
    )
    groups_key: str = Field(
        default="gestor_contas_groups",
        description="Snapshot key for the group list"
    )


class AppSettings(BaseSettings):
    """Application behaviour: backend choice, month range, totals, thresholds."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG level"
    )
    remote_backend: str = Field(
        default="sheets",
        pattern="^(sheets|memory)$",
        description="Remote store backend: Google Sheets or in-process memory"
    )

    # Known month sequence
    calendar_start: str = Field(
        default="2026-01",
        pattern=MONTH_TOKEN_PATTERN,
        description="First month token of the known month sequence"
    )
    calendar_months: int = Field(
        default=12,
        ge=1,
        le=120,
        description="Number of months in the known month sequence"
    )
    default_month: str = Field(
        default="2026-03",
        pattern=MONTH_TOKEN_PATTERN,
        description="Month selected when the application opens"
    )

    # Totals
    extra_group: str = Field(
        default="Mercado",
        min_length=1,
        description="Group excluded from the monthly committed total"
    )

    # Validation thresholds
    max_bill_amount: Decimal = Field(
        default=Decimal("100000"),
        gt=0,
        description="Amounts above this are flagged for review (warning only)"
    )


class Settings(BaseSettings):
    """
    Entry point to every settings group.

    Each group is built on access, so a missing Sheets configuration
    does not stop the local-only groups from loading.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def local_store(self) -> LocalStoreSettings:
        return LocalStoreSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """The process-wide Settings; get_settings.cache_clear() reloads."""
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load each settings group.

    Returns {group: loaded_ok} plus a "<group>_error" message for every
    group that failed, for the settings page.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "local_store", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
