"""
Unit Tests - Command Line
"""
import pytest
from sqlalchemy import func, select

from datavis_warehouse import cli
from datavis_warehouse.config.settings import DatabaseSettings
from datavis_warehouse.database.connection import open_store
from datavis_warehouse.database.models import (
    DimAgeGroup,
    DimGender,
    DimTime,
    DimVisaType,
    EtlLog,
    FactMigration,
)
from datavis_warehouse.etl.pipeline import WarehousePipeline


@pytest.fixture
def use_settings(monkeypatch):
    """Point the CLI at the given settings instead of the environment"""
    def use(settings):
        monkeypatch.setattr(cli, "get_settings", lambda: settings)
        return settings

    return use


def count_rows(settings, model):
    with open_store(settings) as store:
        with store.session() as session:
            return session.scalar(select(func.count()).select_from(model))


class TestInitDb:
    """Tests for the init-db command"""

    def test_seeds_static_dimensions(self, test_settings, use_settings, capsys):
        use_settings(test_settings)

        assert cli.main(["init-db"]) == 0

        assert count_rows(test_settings, DimTime) == 168
        assert count_rows(test_settings, DimAgeGroup) == 8
        assert count_rows(test_settings, DimGender) == 4
        assert count_rows(test_settings, DimVisaType) == 8
        assert "dim_time: 168 rows seeded" in capsys.readouterr().out


class TestRunEtl:
    """Tests for the run-etl command and its exit code"""

    def test_normal_run_exits_zero(self, store, sample_dataset, test_settings, use_settings, capsys):
        use_settings(test_settings)

        code = cli.main(["run-etl", "--dataset", str(sample_dataset), "--no-snapshot"])

        assert code == 0
        assert count_rows(test_settings, FactMigration) == 4
        assert count_rows(test_settings, EtlLog) == 5
        assert "etl_migration" in capsys.readouterr().out

    def test_job_failure_still_exits_zero(self, store, write_source, dataset_dir, test_settings, use_settings):
        """Job failures are reported in the run log, not the exit code"""
        use_settings(test_settings)
        write_source("NZ_MIGRATION.csv", "country,estimate\nChina,1\n")

        assert cli.main(["run-etl", "--dataset", str(dataset_dir), "--no-snapshot"]) == 0

    def test_pipeline_error_exits_one(self, store, sample_dataset, test_settings, use_settings, monkeypatch, capsys):
        use_settings(test_settings)

        def explode(self, *args, **kwargs):
            raise RuntimeError("lake unavailable")

        monkeypatch.setattr(WarehousePipeline, "run", explode)

        code = cli.main(["run-etl", "--dataset", str(sample_dataset)])

        assert code == 1
        assert "lake unavailable" in capsys.readouterr().err

    def test_unusable_store_path_exits_one(self, tmp_path, test_settings, use_settings):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("", encoding="utf-8")
        settings = test_settings.model_copy(
            update={"database": DatabaseSettings(path=str(blocker / "warehouse.db"))}
        )
        use_settings(settings)

        assert cli.main(["run-etl", "--no-snapshot"]) == 1
