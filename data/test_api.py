"""
Tests for the Flask data API over an exported run
"""

import sqlite3

import pytest

from api import app

COLUMNS = (
    "month_index", "year", "month", "age", "cash", "savings", "stocks_value", "properties_value",
    "total_debt", "net_worth", "gross_monthly_income", "income_tax", "base_rate", "happiness",
    "financial", "living", "work_life", "social", "health", "events_so_far",
)


def create_table(db_path):
    conn = sqlite3.connect(db_path)
    conn.execute(f"CREATE TABLE monthly_snapshots ({', '.join(COLUMNS)})")
    conn.commit()
    return conn


@pytest.fixture
def client(tmp_path):
    db_path = str(tmp_path / "lifesim.db")
    app.config["DATABASE"] = db_path
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client, db_path
    app.config.pop("DATABASE", None)


class TestLatestMonth:
    def test_returns_highest_month_index(self, client):
        test_client, db_path = client
        conn = create_table(db_path)
        for index in (0, 2, 1):
            row = [index, 2005, index, 25] + [float(index)] * 15 + [0]
            conn.execute(f"INSERT INTO monthly_snapshots VALUES ({', '.join('?' * len(COLUMNS))})", row)
        conn.commit()
        conn.close()

        response = test_client.get("/api/latest_month")

        assert response.status_code == 200
        body = response.get_json()
        assert body["month_index"] == 2
        assert body["net_worth"] == 2.0

    def test_empty_table_is_404(self, client):
        test_client, db_path = client
        create_table(db_path).close()
        assert test_client.get("/api/latest_month").status_code == 404

    def test_missing_table_is_500(self, client):
        test_client, _ = client
        response = test_client.get("/api/latest_month")
        assert response.status_code == 500
        assert "error" in response.get_json()
