import logging
import os
import sqlite3

from flask import Flask, jsonify

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Define the database path (a headless run export)
DATABASE = os.getenv("LIFESIM_DB", "sample_data/lifesim_baseline.db")


def get_db_conn():
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(app.config.get("DATABASE", DATABASE))
    # Return rows as dictionaries instead of tuples
    conn.row_factory = sqlite3.Row
    return conn


@app.route("/api/latest_month")
def latest_month():
    """Provides the most recent exported month from the database."""
    conn = None
    try:
        conn = get_db_conn()
        cursor = conn.cursor()

        # Query for the row with the highest month index
        cursor.execute("SELECT * FROM monthly_snapshots ORDER BY month_index DESC LIMIT 1")

        latest_row = cursor.fetchone()

        if latest_row:
            return jsonify(dict(latest_row))
        return jsonify({"error": "No data found in monthly_snapshots table"}), 404

    except sqlite3.Error as e:
        logger.error(f"Database error: {e}")
        return jsonify({"error": "Database error occurred"}), 500
    finally:
        if conn:
            conn.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting Flask server at http://127.0.0.1:5000/api/latest_month")
    app.run(debug=True, port=5000)
