"""
Prometheus metrics collection for Franchise Ledger.

Provides observability into command processing and event store health.
"""

from prometheus_client import Counter, Histogram, start_http_server

# ============================================================================
# Core Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "ledger_events_appended_total",
    "Total number of events appended to the event store",
    ["event_type"],
)

events_loaded_total = Counter(
    "ledger_events_loaded_total",
    "Total number of events loaded from the event store",
)

version_conflicts_total = Counter(
    "ledger_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
)

store_failures_total = Counter(
    "ledger_store_failures_total",
    "Total number of event store operations that failed with an I/O error",
    ["operation"],
)

# ============================================================================
# Command Processing Metrics
# ============================================================================

command_duration_seconds = Histogram(
    "ledger_command_duration_seconds",
    "Duration of command processing in seconds",
    ["command_type"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

commands_processed_total = Counter(
    "ledger_commands_processed_total",
    "Total number of commands processed",
    ["command_type", "status"],  # status: accepted, rejected, failed
)

duplicate_commands_total = Counter(
    "ledger_duplicate_commands_total",
    "Total number of creation commands rejected as duplicates",
)

# ============================================================================
# Helper Functions
# ============================================================================


def record_command_outcome(command_type: str, status: str, duration: float) -> None:
    """
    Record one processed command.

    Args:
        command_type: Type of command (unknown types are bucketed as "unknown")
        status: accepted, rejected or failed
        duration: Seconds spent in the pipeline
    """
    command_duration_seconds.labels(command_type=command_type).observe(duration)
    commands_processed_total.labels(command_type=command_type, status=status).inc()


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)
