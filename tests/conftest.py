"""
Test Suite Configuration
"""
from pathlib import Path
from typing import Callable, Generator

import pytest

from datavis_warehouse.config import Settings
from datavis_warehouse.config.settings import DataLakeSettings, DatabaseSettings, EtlSettings
from datavis_warehouse.database.connection import WarehouseStore, open_store
from datavis_warehouse.database.schema import SchemaManager


MIGRATION_CSV = """country,year,estimate
China,2022,15000
India,2022,9000
China,2023,16000
 india ,2023,"9,500"
Atlantis,1999,500
"""

DEMOGRAPHICS_CSV = """,direction,age,sex,year,estimate
0,Arrivals,20-24 years,Female,2023,100
1,Arrivals,25-29 years,Female,2023,50
2,Arrivals,30-34 years,Male,2023,70
3,Departures,20-24 years,Female,2023,999
4,Arrivals,Total,Female,2023,220
"""

EXPORTS_CSV = """name,parent,value
Technology,,0
Software,Technology,450
Hardware,Technology,120
Dairy,,900
"""


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings pointing at a temporary warehouse and lake"""
    return Settings(
        app_env="testing",
        debug=True,
        database=DatabaseSettings(path=str(tmp_path / "warehouse" / "test.db")),
        data_lake=DataLakeSettings(
            dataset_path=str(tmp_path / "dataset"),
            lake_path=str(tmp_path / "data-lake"),
            raw_path=str(tmp_path / "data-lake" / "raw"),
        ),
        etl=EtlSettings(),
    )


@pytest.fixture
def store(test_settings: Settings) -> Generator[WarehouseStore, None, None]:
    """Writable store over a freshly reset warehouse"""
    warehouse = open_store(test_settings)
    SchemaManager(warehouse, test_settings.etl).reset_schema()
    yield warehouse
    warehouse.close()


@pytest.fixture
def dataset_dir(test_settings: Settings) -> Path:
    """Empty raw-input directory"""
    path = Path(test_settings.data_lake.dataset_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def write_source(dataset_dir: Path) -> Callable[[str, str], Path]:
    """Write a raw file into the dataset directory"""
    def write(name: str, content: str) -> Path:
        path = dataset_dir / name
        path.write_text(content, encoding="utf-8")
        return path

    return write


@pytest.fixture
def sample_dataset(write_source, dataset_dir: Path, test_settings: Settings) -> Path:
    """Dataset directory holding all three loadable sources"""
    write_source(test_settings.etl.migration_file, MIGRATION_CSV)
    write_source(test_settings.etl.demographics_file, DEMOGRAPHICS_CSV)
    write_source(test_settings.etl.exports_file, EXPORTS_CSV)
    return dataset_dir
