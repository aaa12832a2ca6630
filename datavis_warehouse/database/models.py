"""
Database Models - Star Schema Design

Warehouse tables for migration, demographics and export statistics:

Dimension Tables:
- DimCountry: Countries with region/continent classification (open, upserted)
- DimTime: One row per (year, month) across a seeded horizon (static)
- DimAgeGroup: Coarse age buckets (static)
- DimGender: Gender enumeration (static)
- DimVisaType: Visa categories (static, reserved)

Fact Tables:
- FactMigration: Arrivals per country and period
- FactDemographics: Population per period, age group and gender
- FactExports: Export value per category for the reporting period

Aggregate Tables:
- AggMigrationYearly: Arrivals per (country, year)
- AggMigrationByCountry: All-time arrivals per country

Metadata:
- EtlLog: One immutable row per job execution
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class JobStatus(str, Enum):
    """ETL job outcome recorded in etl_log"""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


# =============================================================================
# DIMENSION TABLES
# =============================================================================

def country_name_key(name: Optional[str]) -> str:
    """Match key for country names: whitespace collapsed and Unicode casefolded."""
    return " ".join(str(name or "").split()).casefold()


class DimCountry(Base):
    """
    Country Dimension Table

    Open value space: rows are upserted by name as sources mention them.
    """
    __tablename__ = "dim_country"

    country_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    country_code: Mapped[Optional[str]] = mapped_column(String(3))
    country_name: Mapped[str] = mapped_column(String(100), nullable=False)
    country_name_key: Mapped[str] = mapped_column(String(100), nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(50))
    continent: Mapped[Optional[str]] = mapped_column(String(50))
    iso_alpha2: Mapped[Optional[str]] = mapped_column(String(2))
    iso_alpha3: Mapped[Optional[str]] = mapped_column(String(3))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    migrations: Mapped[List["FactMigration"]] = relationship(back_populates="country")

    __table_args__ = (
        UniqueConstraint("country_name_key", name="uq_dim_country_name_key"),
        Index("ix_dim_country_name", "country_name"),
        Index("ix_dim_country_code", "country_code"),
    )

    @validates("country_name")
    def _sync_name_key(self, key: str, value: str) -> str:
        self.country_name_key = country_name_key(value)
        return value


class DimTime(Base):
    """
    Time Dimension Table

    Pre-populated monthly calendar. Fiscal year rolls over at a fixed
    mid-year month.
    """
    __tablename__ = "dim_time"

    time_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    full_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    quarter: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    month_name: Mapped[str] = mapped_column(String(20), nullable=False)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_dim_time_year_month"),
        Index("ix_dim_time_year", "year"),
        Index("ix_dim_time_full_date", "full_date"),
    )


class DimAgeGroup(Base):
    """Age Group Dimension Table"""
    __tablename__ = "dim_age_group"

    age_group_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    age_group_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    age_group_name: Mapped[str] = mapped_column(String(50), nullable=False)
    min_age: Mapped[int] = mapped_column(Integer, nullable=False)
    max_age: Mapped[int] = mapped_column(Integer, nullable=False)
    generation: Mapped[Optional[str]] = mapped_column(String(50))

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class DimGender(Base):
    """Gender Dimension Table"""
    __tablename__ = "dim_gender"

    gender_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    gender_code: Mapped[str] = mapped_column(String(1), nullable=False, unique=True)
    gender_name: Mapped[str] = mapped_column(String(20), nullable=False)


class DimVisaType(Base):
    """
    Visa Type Dimension Table

    Seeded but not yet referenced by any loaded fact row.
    """
    __tablename__ = "dim_visa_type"

    visa_type_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    visa_code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    visa_name: Mapped[str] = mapped_column(String(100), nullable=False)
    visa_category: Mapped[Optional[str]] = mapped_column(String(50))
    description: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


# =============================================================================
# FACT TABLES
# =============================================================================

class FactMigration(Base):
    """
    Migration Fact Table

    Grain: one row per country per period. Fully replaced on every load.
    """
    __tablename__ = "fact_migration"

    migration_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Dimension foreign keys
    country_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_country.country_id"), nullable=False
    )
    time_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_time.time_id"), nullable=False
    )
    visa_type_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dim_visa_type.visa_type_id")
    )
    age_group_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dim_age_group.age_group_id")
    )
    gender_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("dim_gender.gender_id")
    )

    # Measures
    arrival_count: Mapped[int] = mapped_column(Integer, default=0)
    departure_count: Mapped[int] = mapped_column(Integer, default=0)
    net_migration: Mapped[int] = mapped_column(Integer, default=0)

    # Provenance
    source_file: Mapped[Optional[str]] = mapped_column(String(100))
    load_timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    country: Mapped["DimCountry"] = relationship(back_populates="migrations")

    __table_args__ = (
        Index("ix_fact_migration_country", "country_id"),
        Index("ix_fact_migration_time", "time_id"),
        Index("ix_fact_migration_country_time", "country_id", "time_id"),
    )


class FactDemographics(Base):
    """
    Demographics Fact Table

    Grain: one row per period, age group and gender (pre-aggregated).
    """
    __tablename__ = "fact_demographics"

    demographics_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    time_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_time.time_id"), nullable=False
    )
    age_group_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_age_group.age_group_id"), nullable=False
    )
    gender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_gender.gender_id"), nullable=False
    )

    population_count: Mapped[int] = mapped_column(Integer, default=0)
    percentage: Mapped[Optional[float]] = mapped_column(Float)

    source_file: Mapped[Optional[str]] = mapped_column(String(100))
    load_timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_fact_demographics_time", "time_id"),
    )


class FactExports(Base):
    """
    Exports Fact Table

    Two-level category hierarchy flattened into one table: top-level rows
    carry category only, child rows carry category (the parent), subcategory
    and parent_category.
    """
    __tablename__ = "fact_exports"

    export_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    time_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_time.time_id"), nullable=False
    )

    category: Mapped[str] = mapped_column(String(100), nullable=False)
    subcategory: Mapped[Optional[str]] = mapped_column(String(100))
    parent_category: Mapped[Optional[str]] = mapped_column(String(100))

    export_value: Mapped[float] = mapped_column(Float, default=0)
    quantity: Mapped[Optional[float]] = mapped_column(Float)
    unit: Mapped[Optional[str]] = mapped_column(String(20))

    source_file: Mapped[Optional[str]] = mapped_column(String(100))
    load_timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_fact_exports_category", "category"),
    )


# =============================================================================
# ANALYTICS AGGREGATES
# =============================================================================

class AggMigrationYearly(Base):
    """
    Yearly Migration Aggregate Table

    Pre-computed arrivals per (country, year). Rebuilt from fact_migration
    after every load.
    """
    __tablename__ = "agg_migration_yearly"

    agg_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    country_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_country.country_id"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    total_arrivals: Mapped[int] = mapped_column(Integer, default=0)
    total_departures: Mapped[int] = mapped_column(Integer, default=0)
    total_net_migration: Mapped[int] = mapped_column(Integer, default=0)
    avg_monthly_arrivals: Mapped[Optional[float]] = mapped_column(Float)

    last_updated: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("country_id", "year", name="uq_agg_migration_yearly_country_year"),
        Index("ix_agg_migration_yearly_year", "year"),
    )


class AggMigrationByCountry(Base):
    """
    All-Time Migration Aggregate Table

    Pre-computed arrivals per country across every loaded year.
    """
    __tablename__ = "agg_migration_by_country"

    agg_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    country_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dim_country.country_id"), nullable=False, unique=True
    )

    total_arrivals: Mapped[int] = mapped_column(Integer, default=0)
    total_departures: Mapped[int] = mapped_column(Integer, default=0)
    total_net_migration: Mapped[int] = mapped_column(Integer, default=0)
    first_year: Mapped[Optional[int]] = mapped_column(Integer)
    last_year: Mapped[Optional[int]] = mapped_column(Integer)
    years_count: Mapped[int] = mapped_column(Integer, default=0)

    last_updated: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


# =============================================================================
# METADATA
# =============================================================================

class EtlLog(Base):
    """
    ETL Run Log

    Append-only audit trail: one row per job execution.
    """
    __tablename__ = "etl_log"

    log_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    source_file: Mapped[Optional[str]] = mapped_column(String(200))
    target_table: Mapped[Optional[str]] = mapped_column(String(100))

    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    records_inserted: Mapped[int] = mapped_column(Integer, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, default=0)
    records_failed: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    duration_seconds: Mapped[float] = mapped_column(Float, default=0)

    __table_args__ = (
        Index("ix_etl_log_started_at", "started_at"),
    )


DIMENSION_TABLES = ["dim_country", "dim_time", "dim_age_group", "dim_gender", "dim_visa_type"]
FACT_TABLES = ["fact_migration", "fact_demographics", "fact_exports"]
AGGREGATE_TABLES = ["agg_migration_yearly", "agg_migration_by_country"]
