"""
Tests for the headless runner and its SQLite export
"""

import json
import sqlite3

from engine import SimulationEngine
from run_simulation import STRATEGIES, advance_month, init_database, main


class TestAdvanceMonth:
    def test_stops_on_first_of_month(self):
        engine = SimulationEngine(seed=1)
        assert advance_month(engine)
        assert (engine.clock.day, engine.clock.month) == (1, 1)


class TestStrategies:
    def test_saver_keeps_cash_buffer(self):
        engine = SimulationEngine(seed=1)
        engine.player.cash = 50000.0
        STRATEGIES["saver"](engine)
        assert engine.player.savings > 0
        assert engine.player.cash > 0

    def test_investor_buys_stocks(self):
        engine = SimulationEngine(seed=1)
        engine.player.cash = 200000.0
        STRATEGIES["investor"](engine)
        assert engine.player.stocks
        assert engine.player.cash >= 0


class TestMain:
    def test_exports_one_row_per_month(self, tmp_path):
        db_path = main(num_months=14, seed=3, output_tag="test", strategy="saver", output_dir=tmp_path)

        conn = sqlite3.connect(str(db_path))
        rows = conn.execute("SELECT month_index, year, month FROM monthly_snapshots ORDER BY month_index").fetchall()
        conn.close()

        assert len(rows) == 15
        assert rows[0] == (0, 2005, 0)
        assert rows[-1] == (14, 2006, 2)

        summary = json.loads((tmp_path / "lifesim_test_summary.json").read_text())
        assert summary["simulation_info"]["months"] == 14

    def test_init_database_is_idempotent(self, tmp_path):
        db_path = str(tmp_path / "x.db")
        init_database(db_path)
        init_database(db_path)
        conn = sqlite3.connect(db_path)
        tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        conn.close()
        assert ("monthly_snapshots",) in tables
