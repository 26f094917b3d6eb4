"""
Health check HTTP server for liveness and readiness probes.

Provides endpoints for monitoring the health and readiness of the ledger's
event store.
"""

import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, Response, jsonify

from franchise_ledger import __version__
from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.event_store import SQLiteEventStore
from franchise_ledger.kernel.logging import configure_logging, get_logger

logger = get_logger(__name__)

app = Flask(__name__)

# Global state - will be set by initialize_health_server()
_db_path: Path | None = None


def initialize_health_server(db_path: str | Path) -> None:
    """
    Initialize the health server with the event store's database path.

    Args:
        db_path: Path to SQLite database
    """
    global _db_path
    _db_path = Path(db_path)
    logger.info("Health server initialized", db_path=str(_db_path))


@app.after_request
def add_security_headers(response: Response) -> Response:
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Cache-Control"] = "no-store"
    return response


def _not_ready(reason: str, **details: Any) -> tuple[Response, int]:
    return jsonify({"status": "not_ready", "reason": reason, **details}), 503


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Response, int]:
    """
    Liveness probe - checks if the process is running.

    Returns:
        JSON response with status and 200 OK
    """
    return jsonify({"status": "alive", "service": "franchise-ledger", "version": __version__}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Response, int]:
    """
    Readiness probe - checks if the service is ready to accept commands.

    Checks:
    - Database path is configured
    - Database file exists
    - Events table can be counted

    Returns:
        JSON response with status and 200 OK if ready, 503 if not ready
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return _not_ready("database_path_not_initialized")

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return _not_ready("database_file_not_found", db_path=str(_db_path))

    try:
        conn = sqlite3.connect(str(_db_path), timeout=1.0)
        try:
            event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
            aggregate_count = conn.execute(
                "SELECT COUNT(DISTINCT aggregate_id) FROM events"
            ).fetchone()[0]
        finally:
            conn.close()

    except sqlite3.Error as e:
        logger.error("Readiness check failed: DB operational error", error=str(e))
        return _not_ready("database_operational_error", error=str(e))

    logger.debug("Readiness check passed", event_count=event_count)
    return (
        jsonify(
            {
                "status": "ready",
                "database": "accessible",
                "event_count": event_count,
                "aggregate_count": aggregate_count,
            }
        ),
        200,
    )


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """
    Run the health check server.

    Args:
        port: Port to listen on (default: 8080)
        debug: Enable Flask debug mode (default: False)
    """
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)


if __name__ == "__main__":
    settings = LedgerSettings()
    configure_logging(json_output=settings.json_logs, log_level=settings.log_level)
    # Creates the schema if the database is new
    SQLiteEventStore(settings.db_path)
    initialize_health_server(settings.db_path)
    run_health_server(port=settings.health_port)
