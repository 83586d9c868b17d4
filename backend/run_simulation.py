"""
Run a headless life simulation.

Drives the engine without a wall-clock timer, applies a simple scripted
player strategy each month, and exports one row per exported month to SQLite.
Progress is printed once per simulated year.
"""

import argparse
import json
import sqlite3
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from engine import SimulationEngine

# Months of outgoings kept in cash before a strategy moves money elsewhere
CASH_BUFFER_MONTHS = 3


def init_database(db_path: str):
    """Initialize SQLite database with schema."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS monthly_snapshots (
            month_index INTEGER PRIMARY KEY,
            year INTEGER,
            month INTEGER,
            age INTEGER,
            cash REAL,
            savings REAL,
            stocks_value REAL,
            properties_value REAL,
            total_debt REAL,
            net_worth REAL,
            gross_monthly_income REAL,
            income_tax REAL,
            base_rate REAL,
            happiness REAL,
            financial REAL,
            living REAL,
            work_life REAL,
            social REAL,
            health REAL,
            events_so_far INTEGER
        )
    """)
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_snapshots_year ON monthly_snapshots(year)")

    conn.commit()
    conn.close()


def export_month(month_index: int, engine: SimulationEngine, conn: sqlite3.Connection):
    """Write one monthly_snapshots row for the engine's current state."""
    snapshot = engine.current_snapshot()
    clock = snapshot["clock"]
    happiness = snapshot["happiness"]
    factors = happiness["factors"]

    conn.execute(
        "INSERT OR REPLACE INTO monthly_snapshots VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)",
        (
            month_index,
            clock["year"],
            clock["month"],
            clock["age"],
            snapshot["cash"],
            snapshot["savings"],
            snapshot["stocks_value"],
            snapshot["properties_value"],
            snapshot["total_debt"],
            snapshot["net_worth"],
            snapshot["gross_monthly_income"],
            engine.player.last_income_tax,
            snapshot["base_rate"],
            happiness["total"],
            factors["financial"],
            factors["living"],
            factors["work_life"],
            factors["social"],
            factors["health"],
            len(snapshot["event_history"]),
        )
    )
    conn.commit()


# ----------------------------------------------------------------------
# Scripted strategies (run once after each monthly settlement)
# ----------------------------------------------------------------------

def _spare_cash(engine: SimulationEngine) -> float:
    player = engine.player
    monthly_outgoings = player.monthly_living_costs + player.monthly_rent + player.monthly_debt_service
    return player.cash - CASH_BUFFER_MONTHS * monthly_outgoings


def idle_strategy(engine: SimulationEngine):
    """Do nothing; salary accumulates as cash."""


def saver_strategy(engine: SimulationEngine):
    """Sweep spare cash into the savings account."""
    spare = _spare_cash(engine)
    if spare > 0:
        engine.deposit(spare)


def investor_strategy(engine: SimulationEngine):
    """Spread spare cash evenly across the stock universe."""
    spare = _spare_cash(engine)
    symbols = engine.reference.stock_symbols
    if spare < 100 or not symbols:
        return
    budget = spare / len(symbols)
    for symbol in symbols:
        price = engine.stock_price(symbol)
        if price <= 0:
            continue
        shares = int(budget // price)
        if shares > 0:
            engine.buy_stock(symbol, shares)


STRATEGIES: Dict[str, Callable[[SimulationEngine], None]] = {
    "idle": idle_strategy,
    "saver": saver_strategy,
    "investor": investor_strategy,
}


def advance_month(engine: SimulationEngine) -> bool:
    """
    Tick until the next month rollover.

    Returns:
        False if the game ended before or during the month.
    """
    while not engine.clock.ended:
        rollover = engine.tick()
        if rollover.ended:
            return False
        if rollover.month_changed:
            return True
    return False


def main(
    num_months: int = 240,
    seed: Optional[int] = 42,
    export_every: int = 1,
    output_tag: str = "baseline",
    strategy: str = "idle",
    output_dir: Path = Path("sample_data"),
) -> Path:
    """Run the life simulation headlessly and return the database path."""
    print("=" * 80)
    print(f"LIFE SIMULATION ({num_months} months, seed={seed}, strategy={strategy})")
    print("=" * 80)
    print()

    # Create output directory
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    # Initialize database (remove existing file if present)
    db_path = output_dir / f"lifesim_{output_tag}.db"
    if db_path.exists():
        db_path.unlink()
        print(f"Removed existing database: {db_path}")
    print(f"Initializing database: {db_path}")
    init_database(str(db_path))
    print()

    engine = SimulationEngine(seed=seed)
    apply_strategy = STRATEGIES[strategy]
    db_conn = sqlite3.connect(str(db_path))

    print(f"Running simulation for {num_months} months...")
    print(f"(Exporting to database every {export_every} months)")
    print()
    print("Month |   Date   | Age |    Net Worth |        Cash |     Savings | Happiness")
    print("-" * 80)

    start_time = time.time()
    export_month(0, engine, db_conn)
    months_run = 0

    for month_index in range(1, num_months + 1):
        still_running = advance_month(engine)
        months_run = month_index
        if still_running:
            apply_strategy(engine)

        if month_index % export_every == 0 or not still_running:
            export_month(month_index, engine, db_conn)

        if month_index % 12 == 0 or month_index == num_months or not still_running:
            snapshot = engine.current_snapshot()
            clock = snapshot["clock"]
            print(f"{month_index:5d} | {clock['year']:4d}-{clock['month'] + 1:02d}  | {clock['age']:3d} | "
                  f"£{snapshot['net_worth']:11,.0f} | £{snapshot['cash']:10,.0f} | "
                  f"£{snapshot['savings']:10,.0f} | {snapshot['happiness']['total']:9.2f}")

        if not still_running:
            print("Game ended (end age reached).")
            break

    db_conn.close()
    total_time = time.time() - start_time

    print()
    print("✓ Simulation complete!")
    print(f"  Months simulated: {months_run}")
    print(f"  Total time: {total_time:.2f} seconds")
    print(f"  Database saved to: {db_path}")
    print()

    summary = {
        "simulation_info": {
            "months": months_run,
            "seed": seed,
            "strategy": strategy,
            "total_simulation_time_seconds": total_time,
        },
        "final_state": {
            "date": engine.current_snapshot()["date"],
            "net_worth": engine.net_worth(),
            "final_net_worth": engine.final_net_worth,
            "happiness": engine.player.happiness.total,
        },
        "event_history": engine.event_history,
    }

    summary_path = output_dir / f"lifesim_{output_tag}_summary.json"
    with open(summary_path, "w") as f:
        json.dump(summary, f, indent=2)
    print(f"✓ Summary saved to: {summary_path}")
    print("=" * 80)

    return db_path


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the life simulation headlessly.")
    parser.add_argument("--months", type=int, default=240, help="Number of months to simulate")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--tag", type=str, default="baseline", help="Output tag for DB/summary filenames")
    parser.add_argument("--export-every", type=int, default=1, help="Export interval (months)")
    parser.add_argument("--strategy", choices=sorted(STRATEGIES), default="idle", help="Scripted player strategy")
    args = parser.parse_args()

    main(
        num_months=args.months,
        seed=args.seed,
        export_every=max(1, args.export_every),
        output_tag=args.tag,
        strategy=args.strategy,
    )
