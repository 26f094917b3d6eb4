"""
Prometheus metrics server for Franchise Ledger.

This script starts an HTTP server that exposes Prometheus metrics at /metrics.
It can be run standalone or integrated with the main application.

Usage:
    python -m franchise_ledger.metrics_server --port 9090
"""

import argparse
import time

from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.logging import configure_logging, get_logger
from franchise_ledger.kernel.metrics import start_metrics_server

logger = get_logger(__name__)


def build_parser(settings: LedgerSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Franchise Ledger Metrics Server")
    parser.add_argument(
        "--port",
        type=int,
        default=settings.metrics_port,
        help=f"Port to listen on (default: {settings.metrics_port})",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=f"Logging level (default: {settings.log_level})",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=settings.json_logs,
        help="Output logs in JSON format",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """
    Start the Prometheus metrics server.

    Defaults come from LEDGER_* environment variables; flags override them.
    """
    args = build_parser(LedgerSettings()).parse_args(argv)

    configure_logging(json_output=args.json_logs, log_level=args.log_level)

    logger.info(
        "Starting Prometheus metrics server",
        port=args.port,
        endpoint=f"http://0.0.0.0:{args.port}/metrics",
    )

    start_metrics_server(port=args.port)

    logger.info("Metrics server started successfully")

    # Keep the server running
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down metrics server")


if __name__ == "__main__":
    main()
