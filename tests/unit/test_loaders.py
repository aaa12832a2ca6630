"""
Unit Tests - Domain Loaders, Aggregates and Run Log
"""
import pytest
from sqlalchemy import func, select

from datavis_warehouse.database.models import (
    AggMigrationByCountry,
    AggMigrationYearly,
    DimAgeGroup,
    DimCountry,
    DimGender,
    DimTime,
    EtlLog,
    FactDemographics,
    FactExports,
    FactMigration,
    JobStatus,
)
from datavis_warehouse.etl.aggregates import AggregationBuilder
from datavis_warehouse.etl.loaders import (
    CountryDimensionLoader,
    DemographicsLoader,
    ExportsLoader,
    MigrationLoader,
)
from datavis_warehouse.etl.run_log import JobStats, RunLogger
from datavis_warehouse.exceptions import SourceMissingError, SourceSchemaError
from datavis_warehouse.transformation.dimensions import DimensionResolver


def seed_countries(store, *names):
    with store.session() as session:
        resolver = DimensionResolver(session)
        for name in names:
            resolver.resolve_country(name)


def count_rows(store, model):
    with store.session() as session:
        return session.scalar(select(func.count()).select_from(model))


class TestCountryDimensionLoader:
    """Tests for the country dimension job"""

    def test_upserts_distinct_names(self, store, write_source, test_settings):
        path = write_source(
            "NZ_MIGRATION.csv",
            "country,year,estimate\nChina,2022,1\n china ,2023,2\nIndia,2022,3\n,2022,4\n",
        )
        stats = JobStats()

        CountryDimensionLoader(store, path, test_settings.etl).load(stats)

        assert stats.processed == 2
        assert stats.inserted == 2
        assert count_rows(store, DimCountry) == 2

    def test_rerun_does_not_duplicate(self, store, write_source, test_settings):
        path = write_source("NZ_MIGRATION.csv", "country,year,estimate\nChina,2022,1\n")
        loader = CountryDimensionLoader(store, path, test_settings.etl)

        loader.load(JobStats())
        loader.load(JobStats())

        assert count_rows(store, DimCountry) == 1

    def test_non_ascii_names_load_through_to_facts(self, store, write_source, test_settings):
        path = write_source(
            "NZ_MIGRATION.csv",
            "country,year,estimate\n\u00c5land Islands,2022,10\n\u00c5LAND ISLANDS,2023,12\n",
        )
        countries = CountryDimensionLoader(store, path, test_settings.etl)
        countries.load(JobStats())
        rerun = JobStats()
        countries.load(rerun)

        stats = JobStats()
        MigrationLoader(store, path, test_settings.etl).load(stats)

        assert rerun.inserted == 1
        assert count_rows(store, DimCountry) == 1
        assert (stats.processed, stats.inserted, stats.failed) == (2, 2, 0)


class TestMigrationLoader:
    """Tests for the migration fact job"""

    def test_known_and_unknown_country(self, store, write_source, test_settings):
        """China is a known dimension, Atlantis is not"""
        seed_countries(store, "China")
        path = write_source(
            "NZ_MIGRATION.csv",
            "country,year,estimate\nChina,2022,15000\nAtlantis,2022,500\n",
        )
        stats = JobStats()

        MigrationLoader(store, path, test_settings.etl).load(stats)

        assert (stats.processed, stats.inserted, stats.failed) == (2, 1, 1)
        with store.session() as session:
            fact = session.execute(select(FactMigration)).scalar_one()
            assert fact.arrival_count == 15000
            assert fact.net_migration == 15000
            assert fact.source_file == "NZ_MIGRATION.csv"

        AggregationBuilder(store).rebuild_aggregates()
        with store.session() as session:
            china = session.execute(
                select(AggMigrationByCountry)
                .join(DimCountry, AggMigrationByCountry.country_id == DimCountry.country_id)
                .where(DimCountry.country_name == "China")
            ).scalar_one()
            assert china.total_arrivals >= 15000

    def test_reload_is_idempotent(self, store, write_source, test_settings):
        seed_countries(store, "China", "India")
        path = write_source(
            "NZ_MIGRATION.csv",
            "country,year,estimate\nChina,2022,15000\nIndia,2022,9000\nIndia,2023,abc\n",
        )
        loader = MigrationLoader(store, path, test_settings.etl)

        first, second = JobStats(), JobStats()
        loader.load(first)
        with store.session() as session:
            before = sorted(
                (f.country_id, f.time_id, f.arrival_count)
                for f in session.execute(select(FactMigration)).scalars()
            )
        loader.load(second)
        with store.session() as session:
            after = sorted(
                (f.country_id, f.time_id, f.arrival_count)
                for f in session.execute(select(FactMigration)).scalars()
            )

        assert before == after
        assert len(after) == 3
        assert (first.inserted, first.failed) == (second.inserted, second.failed)

    def test_unparseable_year_counts_as_failed(self, store, write_source, test_settings):
        seed_countries(store, "China")
        path = write_source(
            "NZ_MIGRATION.csv",
            "country,year,estimate\nChina,twenty,1\nChina,2031,1\n,2022,1\nChina,2022,oops\n",
        )
        stats = JobStats()

        MigrationLoader(store, path, test_settings.etl).load(stats)

        assert stats.processed == 4
        assert stats.inserted == 1
        assert stats.failed == 3
        assert stats.processed == stats.inserted + stats.failed

    def test_header_variants(self, store, write_source, test_settings):
        seed_countries(store, "China")
        path = write_source(
            "NZ_MIGRATION.csv",
            " Country of Residence , YEAR ,Estimate\nChina,2022,10\n",
        )
        stats = JobStats()

        MigrationLoader(store, path, test_settings.etl).load(stats)

        assert stats.inserted == 1

    def test_missing_column_raises_schema_error(self, store, write_source, test_settings):
        path = write_source("NZ_MIGRATION.csv", "country,estimate\nChina,10\n")

        with pytest.raises(SourceSchemaError) as exc_info:
            MigrationLoader(store, path, test_settings.etl).load(JobStats())

        assert "year" in str(exc_info.value)

    def test_missing_file_raises(self, store, dataset_dir, test_settings):
        with pytest.raises(SourceMissingError):
            MigrationLoader(store, dataset_dir / "absent.csv", test_settings.etl).load(JobStats())

    def test_failed_load_keeps_previous_rows(self, store, write_source, test_settings):
        """A job that fails mid-transaction leaves the fact table untouched"""
        seed_countries(store, "China")
        path = write_source("NZ_MIGRATION.csv", "country,year,estimate\nChina,2022,10\n")
        MigrationLoader(store, path, test_settings.etl).load(JobStats())

        class BrokenLoader(MigrationLoader):
            def build_fact(self, record, resolver, loaded_at):
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            BrokenLoader(store, path, test_settings.etl).load(JobStats())

        assert count_rows(store, FactMigration) == 1


class TestDemographicsLoader:
    """Tests for the demographics fact job"""

    def test_brackets_grouped_into_buckets(self, store, write_source, test_settings):
        path = write_source(
            "ageandsex.csv",
            "direction,age,sex,year,estimate\n"
            "Arrivals,20-24 years,Female,2023,100\n"
            "Arrivals,25-29 years,Female,2023,50\n",
        )
        stats = JobStats()

        DemographicsLoader(store, path, test_settings.etl).load(stats)

        assert (stats.processed, stats.inserted, stats.failed) == (1, 1, 0)
        with store.session() as session:
            row = session.execute(
                select(FactDemographics.population_count, DimAgeGroup.age_group_code, DimGender.gender_code)
                .join(DimAgeGroup, FactDemographics.age_group_id == DimAgeGroup.age_group_id)
                .join(DimGender, FactDemographics.gender_id == DimGender.gender_id)
            ).one()
        assert tuple(row) == (150, "20-29", "F")

    def test_only_configured_direction_loaded(self, store, write_source, test_settings):
        path = write_source(
            "ageandsex.csv",
            "direction,age,sex,year,estimate\n"
            "Arrivals,20-24 years,Male,2023,10\n"
            " arrivals ,30-34 years,Male,2023,20\n"
            "Departures,20-24 years,Male,2023,999\n",
        )
        stats = JobStats()

        DemographicsLoader(store, path, test_settings.etl).load(stats)

        assert stats.inserted == 2
        with store.session() as session:
            total = session.scalar(select(func.sum(FactDemographics.population_count)))
            percentages = list(session.execute(select(FactDemographics.percentage)).scalars())
        assert total == 30
        assert sorted(percentages) == [33.33, 66.67]

    def test_unknown_bracket_fails_group(self, store, write_source, test_settings):
        path = write_source(
            "ageandsex.csv",
            "direction,age,sex,year,estimate\n"
            "Arrivals,Total,Female,2023,220\n"
            "Arrivals,20-24 years,,2023,5\n",
        )
        stats = JobStats()

        DemographicsLoader(store, path, test_settings.etl).load(stats)

        assert (stats.processed, stats.inserted, stats.failed) == (2, 0, 2)


class TestExportsLoader:
    """Tests for the exports fact job"""

    def test_hierarchy_flattened(self, store, write_source, test_settings):
        path = write_source(
            "data_treemap.csv",
            "name,parent,value\nSoftware,Technology,450\nTechnology,,0\n",
        )
        stats = JobStats()

        ExportsLoader(store, path, test_settings.etl).load(stats)

        assert stats.inserted == 2
        with store.session() as session:
            rows = {
                (f.category, f.subcategory, f.parent_category, f.export_value)
                for f in session.execute(select(FactExports)).scalars()
            }
            years = set(session.execute(
                select(DimTime.year).join(FactExports, FactExports.time_id == DimTime.time_id)
            ).scalars())
        assert rows == {
            ("Technology", "Software", "Technology", 450.0),
            ("Technology", None, None, 0.0),
        }
        assert years == {2023}

    def test_reporting_year_outside_horizon_fails_rows(self, store, write_source, test_settings):
        etl = test_settings.etl.model_copy(update={"exports_reporting_year": 1990})
        path = write_source("data_treemap.csv", "name,parent,value\nDairy,,900\n")
        stats = JobStats()

        ExportsLoader(store, path, etl).load(stats)

        assert (stats.inserted, stats.failed) == (0, 1)


class TestAggregationBuilder:
    """Tests for rebuild_aggregates"""

    def test_totals_match_facts(self, store, write_source, test_settings):
        seed_countries(store, "China", "India")
        path = write_source(
            "NZ_MIGRATION.csv",
            "country,year,estimate\nChina,2022,100\nChina,2023,200\nIndia,2022,50\n",
        )
        MigrationLoader(store, path, test_settings.etl).load(JobStats())

        counts = AggregationBuilder(store).rebuild_aggregates()

        assert counts == {"agg_migration_yearly": 3, "agg_migration_by_country": 2}
        with store.session() as session:
            facts = {
                (country_id, year): total
                for country_id, year, total in session.execute(
                    select(FactMigration.country_id, DimTime.year, func.sum(FactMigration.arrival_count))
                    .join(DimTime, FactMigration.time_id == DimTime.time_id)
                    .group_by(FactMigration.country_id, DimTime.year)
                )
            }
            yearly = {
                (a.country_id, a.year): a.total_arrivals
                for a in session.execute(select(AggMigrationYearly)).scalars()
            }
            china = session.execute(
                select(AggMigrationByCountry)
                .join(DimCountry, AggMigrationByCountry.country_id == DimCountry.country_id)
                .where(DimCountry.country_name == "China")
            ).scalar_one()

        assert yearly == facts
        assert (china.total_arrivals, china.first_year, china.last_year, china.years_count) == (300, 2022, 2023, 2)

    def test_rebuild_replaces_previous_rows(self, store, write_source, test_settings):
        seed_countries(store, "China")
        path = write_source("NZ_MIGRATION.csv", "country,year,estimate\nChina,2022,100\n")
        MigrationLoader(store, path, test_settings.etl).load(JobStats())
        builder = AggregationBuilder(store)

        builder.rebuild_aggregates()
        write_source("NZ_MIGRATION.csv", "country,year,estimate\nChina,2022,40\n")
        MigrationLoader(store, path, test_settings.etl).load(JobStats())
        builder.rebuild_aggregates()

        with store.session() as session:
            rows = list(session.execute(select(AggMigrationYearly)).scalars())
        assert len(rows) == 1
        assert rows[0].total_arrivals == 40
        assert rows[0].avg_monthly_arrivals == pytest.approx(40 / 12)

    def test_empty_facts_give_empty_aggregates(self, store):
        assert AggregationBuilder(store).rebuild_aggregates() == {
            "agg_migration_yearly": 0,
            "agg_migration_by_country": 0,
        }


class TestRunLogger:
    """Tests for the append-only run log"""

    def test_record_appends(self, store):
        run_logger = RunLogger(store)
        stats = JobStats()
        stats.record_inserted(3)
        stats.record_failed()

        first = run_logger.record("etl_migration", "NZ_MIGRATION.csv", "fact_migration", stats, JobStatus.SUCCESS)
        run_logger.record("etl_exports", None, "fact_exports", JobStats(), JobStatus.FAILED, "boom")

        assert first.processed == 4
        assert first.completed_at is not None
        logs = run_logger.recent()
        assert [log.job_name for log in logs] == ["etl_exports", "etl_migration"]
        assert logs[0].error_message == "boom"
        assert count_rows(store, EtlLog) == 2
