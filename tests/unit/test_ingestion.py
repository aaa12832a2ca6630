"""
Unit Tests - Source Readers and Data Lake
"""
import json
from datetime import datetime

import polars as pl
import pytest

from datavis_warehouse.exceptions import SourceMissingError
from datavis_warehouse.ingestion.data_lake import DataLake, LakeMapping, default_mappings
from datavis_warehouse.ingestion.sources import (
    FileFormat,
    detect_format,
    normalize_header,
    read_source,
    select_columns,
)


class TestHeaders:
    """Tests for header normalization"""

    @pytest.mark.parametrize("raw,normalized", [
        (" Country ", "country"),
        ("Country Of Residence", "country_of_residence"),
        ("age-group", "age_group"),
        ("\ufeffcountry", "country"),
    ])
    def test_normalize_header(self, raw, normalized):
        assert normalize_header(raw) == normalized

    def test_detect_format(self, tmp_path):
        assert detect_format(tmp_path / "a.csv") == FileFormat.CSV
        assert detect_format(tmp_path / "world.JSON") == FileFormat.JSON


class TestReadSource:
    """Tests for read_source"""

    def test_csv_columns_are_text(self, tmp_path):
        path = tmp_path / "m.csv"
        path.write_text(" Country ,YEAR,Estimate\nChina,2022,15000\n", encoding="utf-8")

        df = read_source(path)

        assert df.columns == ["country", "year", "estimate"]
        assert df.schema["year"] == pl.Utf8
        assert df.row(0) == ("China", "2022", "15000")

    def test_colliding_headers_keep_first(self, tmp_path):
        """Headers that normalize to the same name keep the first column"""
        path = tmp_path / "m.csv"
        path.write_text("Country, country,year\nChina,Atlantis,2022\n", encoding="utf-8")

        df = read_source(path)

        assert df.columns == ["country", "year"]
        assert df.row(0) == ("China", "2022")

    def test_csv_null_markers(self, tmp_path):
        path = tmp_path / "m.csv"
        path.write_text("name,parent\nTechnology,\nSoftware,NA\n", encoding="utf-8")

        df = read_source(path)

        assert df["parent"].to_list() == [None, None]

    def test_json_list(self, tmp_path):
        path = tmp_path / "m.json"
        path.write_text(json.dumps([{"Country": "China", "year": 2022, "estimate": 15000}]), encoding="utf-8")

        df = read_source(path)

        assert df.columns == ["country", "year", "estimate"]
        assert df.row(0) == ("China", "2022", "15000")

    def test_json_wrapped_records(self, tmp_path):
        path = tmp_path / "m.json"
        path.write_text(json.dumps({"data": [{"name": "Dairy", "value": 900}]}), encoding="utf-8")

        df = read_source(path)

        assert df.height == 1
        assert df["value"].to_list() == ["900"]

    def test_json_without_records_raises(self, tmp_path):
        path = tmp_path / "m.json"
        path.write_text(json.dumps({"type": "FeatureCollection"}), encoding="utf-8")

        with pytest.raises(ValueError):
            read_source(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceMissingError) as exc_info:
            read_source(tmp_path / "absent.csv")

        assert exc_info.value.path.endswith("absent.csv")


class TestSelectColumns:
    """Tests for alias-based column selection"""

    def test_aliases_renamed(self):
        df = pl.DataFrame({"country_of_residence": ["China"], "year": ["2022"], "extra": ["x"]})

        result = select_columns(df, {"country": ["country_of_residence"], "year": []})

        assert result.columns == ["country", "year"]

    def test_canonical_name_preferred(self):
        df = pl.DataFrame({"country_name": ["A"], "country": ["B"]})

        result = select_columns(df, {"country": ["country_name"]})

        assert result["country"].to_list() == ["B"]

    def test_missing_columns_left_out(self):
        df = pl.DataFrame({"year": ["2022"]})

        result = select_columns(df, {"country": [], "year": []})

        assert result.columns == ["year"]


class TestDataLake:
    """Tests for the raw-zone snapshot"""

    def test_snapshot_copies_present_inputs(self, tmp_path, test_settings):
        dataset = tmp_path / "in"
        dataset.mkdir()
        (dataset / "NZ_MIGRATION.csv").write_text("country,year,estimate\n", encoding="utf-8")
        (dataset / "world.json").write_text("{}", encoding="utf-8")

        lake = DataLake(tmp_path / "raw")
        copied = lake.snapshot(dataset, default_mappings(test_settings.etl), run_date=datetime(2024, 3, 5))

        names = sorted(p.relative_to(tmp_path / "raw").as_posix() for p in copied)
        assert names == [
            "geographic/world_geojson_20240305.json",
            "migration/statsnz_migration_20240305.csv",
        ]
        for zone in DataLake.ZONES:
            assert (tmp_path / "raw" / zone).is_dir()

    def test_snapshot_skips_missing(self, tmp_path):
        lake = DataLake(tmp_path / "raw")

        copied = lake.snapshot(tmp_path, [LakeMapping("absent.csv", "economic", "x")])

        assert copied == []
