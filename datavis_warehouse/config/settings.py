"""
DataVis Data Warehouse
Centralized Configuration Management

Configuration is read from environment variables (and an optional .env file)
with Pydantic settings, one settings class per concern.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Warehouse Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_DB_")

    url: Optional[str] = Field(default=None, description="SQLAlchemy URL (overrides path)")
    path: str = Field(
        default="./data/warehouse/datavis_warehouse.db",
        description="SQLite warehouse file",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")

    @property
    def sync_url(self) -> str:
        """Database URL - uses url if set, otherwise a SQLite file URL built from path"""
        if self.url:
            return self.url
        return f"sqlite:///{Path(self.path).as_posix()}"


class DataLakeSettings(BaseSettings):
    """Raw Input and Data Lake Configuration"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    dataset_path: str = Field(default="./dataset", description="Directory the fetch process writes raw files to")
    lake_path: str = Field(default="./data-lake", description="Data lake root path")
    raw_path: str = Field(default="./data-lake/raw", description="Raw snapshot zone path")


class EtlSettings(BaseSettings):
    """ETL Pipeline Configuration"""

    model_config = SettingsConfigDict(env_prefix="ETL_")

    # Time dimension horizon
    time_start_year: int = Field(default=2013, description="First seeded year")
    time_end_year: int = Field(default=2026, description="Last seeded year")
    fiscal_year_start_month: int = Field(default=7, description="Month the fiscal year starts in")

    # Domain rules
    exports_reporting_year: int = Field(default=2023, description="Year all export rows are reported against")
    demographics_direction: str = Field(default="Arrivals", description="Direction kept in the demographics fact")

    # Source files
    migration_file: str = Field(default="NZ_MIGRATION.csv", description="Migration estimates by country")
    demographics_file: str = Field(default="ageandsex.csv", description="Migration by age and sex")
    exports_file: str = Field(default="data_treemap.csv", description="Export categories")
    gdp_file: str = Field(default="gdp-penn-world-table.csv", description="GDP series (snapshot only)")
    geojson_file: str = Field(default="world.json", description="World GeoJSON (snapshot only)")

    snapshot_raw_inputs: bool = Field(default=True, description="Copy raw inputs into the data lake before loading")

    @field_validator("fiscal_year_start_month")
    @classmethod
    def validate_month(cls, v: int) -> int:
        """Validate fiscal month"""
        if not 1 <= v <= 12:
            raise ValueError("fiscal_year_start_month must be between 1 and 12")
        return v


class SecuritySettings(BaseSettings):
    """API Security Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    cors_origins: List[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
        description="Allowed CORS origins",
    )


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="text", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="datavis-warehouse", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=3000, alias="API_PORT", description="API port")
    api_prefix: str = Field(default="/api", alias="API_PREFIX", description="Route prefix")

    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    data_lake: DataLakeSettings = Field(default_factory=DataLakeSettings)
    etl: EtlSettings = Field(default_factory=EtlSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
