"""
Application configuration using Pydantic Settings

Sources, highest priority first:
1. Explicit keyword arguments (tests, embedding applications)
2. Environment variables
3. .env file
4. Local JSON secrets file (receipt_validator.json, not in git)

Settings are built once at process start and passed to the parser and
validation engine constructors.
"""
from functools import lru_cache
from typing import Dict, Optional, Tuple, Type

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class Settings(BaseSettings):
    """Application settings from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        json_file="receipt_validator.json",
        json_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore"
    )

    # Application
    environment: str = Field(default="production", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # Catalog scraping (Apify actor runs)
    apify_api_token: str = Field(default="", alias="APIFY_API_TOKEN")
    apify_actor_id: str = Field(default="junglee/walmart-scraper", alias="APIFY_ACTOR_ID")
    apify_base_url: str = Field(default="https://api.apify.com/v2", alias="APIFY_BASE_URL")

    # UPC lookup services
    upc_item_db_key: str = Field(default="", alias="UPC_ITEM_DB_KEY")
    barcode_lookup_key: str = Field(default="", alias="BARCODE_LOOKUP_KEY")
    upc_database_key: str = Field(default="", alias="UPC_DATABASE_KEY")
    walmart_api_key: str = Field(default="", alias="WALMART_API_KEY")
    open_food_facts_enabled: bool = Field(default=True, alias="OPEN_FOOD_FACTS_ENABLED")

    # Validation behaviour
    enable_price_validation: bool = Field(default=True, alias="ENABLE_PRICE_VALIDATION")
    prefer_upc_lookup: bool = Field(default=True, alias="PREFER_UPC_LOOKUP")
    price_tolerance_percentage: float = Field(default=0.10, alias="PRICE_TOLERANCE_PERCENTAGE")
    validation_delay: float = Field(default=1.0, ge=0, alias="VALIDATION_DELAY")

    # Timeouts (seconds)
    network_timeout: float = Field(default=30.0, gt=0, alias="NETWORK_TIMEOUT")
    provider_poll_interval: float = Field(default=2.0, ge=0, alias="PROVIDER_POLL_INTERVAL")
    provider_job_timeout: float = Field(default=60.0, gt=0, alias="PROVIDER_JOB_TIMEOUT")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Try each source in priority order; first one to define a field wins"""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment"""
        valid_envs = ["development", "staging", "production", "test"]
        if v.lower() not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of {valid_envs}")
        return v.lower()

    @field_validator("price_tolerance_percentage")
    @classmethod
    def validate_tolerance(cls, v):
        """Tolerance is a fraction: 0.10 means 10%"""
        if not 0 < v < 1:
            raise ValueError(f"PRICE_TOLERANCE_PERCENTAGE must be between 0 and 1, got {v}")
        return v

    @field_validator(
        "apify_api_token", "upc_item_db_key", "barcode_lookup_key",
        "upc_database_key", "walmart_api_key",
    )
    @classmethod
    def strip_credential(cls, v: str) -> str:
        """Ignore whitespace and unresolved build variables like $(APIFY_API_TOKEN)"""
        v = (v or "").strip()
        return "" if v.startswith("$") else v

    @property
    def upc_api_keys(self) -> Dict[str, str]:
        """Configured UPC lookup credentials keyed by service"""
        keys = {
            "upcItemDB": self.upc_item_db_key,
            "barcodeLookup": self.barcode_lookup_key,
            "upcDatabase": self.upc_database_key,
            "walmart": self.walmart_api_key,
        }
        return {name: key for name, key in keys.items() if key}

    @property
    def is_apify_configured(self) -> bool:
        return bool(self.apify_api_token)

    @property
    def is_upc_lookup_configured(self) -> bool:
        return bool(self.upc_api_keys) or self.open_food_facts_enabled

    @property
    def is_validation_configured(self) -> bool:
        """At least one price source is usable"""
        return self.enable_price_validation and (
            self.is_apify_configured or bool(self.upc_api_keys)
        )

    @property
    def configuration_message(self) -> str:
        """User-facing explanation when validation can't run"""
        if not self.enable_price_validation:
            return "Price validation is disabled (ENABLE_PRICE_VALIDATION=false)."
        if not self.is_validation_configured:
            return (
                "No price data provider configured.\n"
                "To enable price validation set one of:\n"
                "  - APIFY_API_TOKEN (retailer catalog search, https://apify.com/)\n"
                "  - UPC_ITEM_DB_KEY, BARCODE_LOOKUP_KEY, UPC_DATABASE_KEY or WALMART_API_KEY\n"
                "in the environment, a .env file, or receipt_validator.json."
            )
        return "Configuration OK"


def load_settings(**overrides: object) -> Settings:
    """Build a fresh settings object (explicit overrides win over every source)"""
    return Settings(**overrides)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance for scripts and process entry points"""
    return Settings()
