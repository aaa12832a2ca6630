"""
Integration Tests - Query API
"""
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from datavis_warehouse.database.connection import open_store
from datavis_warehouse.etl.pipeline import WarehousePipeline
from datavis_warehouse.main import create_app


@pytest.fixture
def client(store, sample_dataset, test_settings) -> Generator[TestClient, None, None]:
    """API client over a read-only store of a fully loaded warehouse"""
    WarehousePipeline(store, test_settings).run(snapshot=False)

    reader = open_store(test_settings, read_only=True)
    app = create_app(store=reader, settings=test_settings)
    yield TestClient(app)
    reader.close()


class TestServiceEndpoints:
    """Tests for root, health and error envelopes"""

    def test_root_lists_endpoints(self, client):
        response = client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "DataVis Data Warehouse API"
        assert body["endpoints"]["query"] == "POST /api/query"

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"]["read_only"] is True

    def test_unknown_route(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Endpoint not found"}

    def test_request_headers(self, client):
        response = client.get("/api/countries", headers={"X-Request-ID": "abc"})

        assert response.headers["X-Request-ID"] == "abc"
        assert response.headers["X-Response-Time"].endswith("ms")


class TestMigrationEndpoints:
    """Tests for countries and migration routes"""

    def test_countries(self, client):
        body = client.get("/api/countries").json()

        assert body["success"] is True
        assert [c["name"] for c in body["data"]] == ["Atlantis", "China", "India"]
        assert set(body["data"][0]) == {"id", "name", "region", "continent"}

    def test_migration_ordering(self, client):
        body = client.get("/api/migration").json()

        assert body["count"] == 4
        first, second = body["data"][0], body["data"][1]
        assert (first["country_name"], first["year"], first["arrivals"]) == ("China", 2023, 16000)
        assert (second["country_name"], second["year"], second["arrivals"]) == ("India", 2023, 9500)

    def test_migration_filters(self, client):
        by_year = client.get("/api/migration", params={"year": 2022}).json()
        by_country = client.get("/api/migration", params={"country": "India"}).json()
        limited = client.get("/api/migration", params={"limit": 1}).json()

        assert {row["year"] for row in by_year["data"]} == {2022}
        assert {row["country_name"] for row in by_country["data"]} == {"India"}
        assert limited["count"] == 1

    def test_invalid_parameter_is_bad_request(self, client):
        assert client.get("/api/migration", params={"limit": 0}).status_code == 400

        response = client.get("/api/migration/year/abc")
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_country_series(self, client):
        body = client.get("/api/migration/country/China").json()

        assert body["country"] == "China"
        assert [row["year"] for row in body["data"]] == [2022, 2023]
        assert body["data"][0]["net_migration"] == 15000

    def test_year_cross_section(self, client):
        body = client.get("/api/migration/year/2022").json()

        assert body["year"] == 2022
        assert [row["country_name"] for row in body["data"]] == ["China", "India"]

    def test_summary(self, client):
        data = client.get("/api/migration/summary").json()["data"]

        assert [row["year"] for row in data["yearly"]] == [2022, 2023]
        assert data["yearly"][0]["total_arrivals"] == 24000
        assert data["topCountries"][0] == {
            "country_name": "China",
            "total_arrivals": 31000,
            "total_net_migration": 31000,
        }


class TestAnalyticsEndpoints:
    """Tests for demographics, exports, stats and logs"""

    def test_demographics(self, client):
        data = client.get("/api/demographics").json()["data"]

        assert data == [
            {"age_group_name": "20-29 years", "gender_name": "Female", "population": 150},
            {"age_group_name": "30-39 years", "gender_name": "Male", "population": 70},
        ]

    def test_exports(self, client):
        data = client.get("/api/exports").json()["data"]

        assert [row["value"] for row in data] == sorted((row["value"] for row in data), reverse=True)
        software = next(row for row in data if row["name"] == "Software")
        assert software["parent"] == "Technology"
        assert software["category"] == "Technology"

    def test_stats(self, client):
        body = client.get("/api/stats").json()

        assert body["data"]["dim_time"] == 168
        assert body["data"]["fact_migration"] == 4
        assert body["data"]["agg_migration_by_country"] == 2
        assert "timestamp" in body

    def test_etl_logs_newest_first(self, client):
        data = client.get("/api/etl/logs").json()["data"]

        assert len(data) == 5
        assert data[0]["job_name"] == "build_aggregates"
        assert data[-1]["job_name"] == "etl_countries"
        assert {row["status"] for row in data} == {"SUCCESS"}


class TestQueryEndpoint:
    """Tests for POST /query"""

    def test_select(self, client):
        response = client.post("/api/query", json={"sql": "SELECT country_name FROM dim_country ORDER BY 1"})

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 3
        assert body["data"][0] == {"country_name": "Atlantis"}

    def test_forbidden_keyword_rejected(self, client):
        response = client.post("/api/query", json={"sql": "SELECT * FROM dim_country; DROP TABLE dim_country"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Query contains forbidden operations"}

    @pytest.mark.parametrize("sql", ["DELETE FROM dim_country", "  with x as (select 1) select * from x", "", None])
    def test_non_select_rejected(self, client, sql):
        response = client.post("/api/query", json={"sql": sql})

        assert response.status_code == 400
        assert response.json()["error"] == "Only SELECT queries are allowed"

    def test_bad_sql_is_server_error(self, client):
        response = client.post("/api/query", json={"sql": "SELECT * FROM no_such_table"})

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert "no_such_table" in body["error"]

    def test_read_only_after_rejections(self, client):
        client.post("/api/query", json={"sql": "SELECT 1; DROP TABLE dim_country"})

        assert client.get("/api/countries").json()["data"]
