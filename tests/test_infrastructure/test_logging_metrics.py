"""
Test infrastructure components: logging, correlation ids, metrics.

These tests verify the observability plumbing around the command pipeline.
"""

import asyncio

import pytest
import structlog
from prometheus_client import REGISTRY
from structlog.testing import capture_logs

from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.errors import StoreConflictError
from franchise_ledger.kernel.event_store import InMemoryEventStore, SQLiteEventStore
from franchise_ledger.kernel.events import create_event
from franchise_ledger.kernel.logging import (
    LogOperation,
    bind_command_context,
    clear_command_context,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_context,
    set_correlation_id,
)
from franchise_ledger.metrics_server import build_parser
from franchise_ledger.pipeline import CommandPipeline
from helpers import TIMESTAMP

AGGREGATE = "00000000-0000-7000-8000-0000000000bb"


def sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        configure_logging(json_output=False, log_level="INFO")
        assert get_logger(__name__) is not None

    def test_configure_logging_json(self) -> None:
        configure_logging(json_output=True, log_level="DEBUG")
        assert get_logger(__name__) is not None

    def test_correlation_id(self) -> None:
        """Test correlation ID context management."""
        cid = get_correlation_id()
        assert len(cid) > 0
        assert get_correlation_id() == cid

        set_correlation_id("test-correlation-123")
        assert get_correlation_id() == "test-correlation-123"

    def test_redact_context(self) -> None:
        assert redact_context({"token": "abc", "operation": "append"}) == {
            "token": "***REDACTED***",
            "operation": "append",
        }

    def test_log_operation_records_timing(self) -> None:
        with capture_logs() as logs:
            logger = structlog.get_logger("test")
            with LogOperation(logger, "replay_aggregate", aggregate_id=AGGREGATE, secret="s3"):
                pass

        assert [entry["event"] for entry in logs] == [
            "replay_aggregate started",
            "replay_aggregate completed",
        ]
        assert logs[1]["aggregate_id"] == AGGREGATE
        assert logs[1]["secret"] == "***REDACTED***"
        assert "duration_ms" in logs[1]

    def test_log_operation_with_exception(self) -> None:
        with capture_logs() as logs:
            logger = structlog.get_logger("test")
            with pytest.raises(ValueError):
                with LogOperation(logger, "failing_operation"):
                    raise ValueError("Test error")

        assert logs[-1]["event"] == "failing_operation failed"
        assert logs[-1]["error_type"] == "ValueError"
        assert logs[-1]["log_level"] == "error"


class TestCorrelationAcrossCommands:
    """Each command runs under its own correlation id."""

    @pytest.mark.asyncio
    async def test_concurrent_commands_get_distinct_ids(
        self, pipeline: CommandPipeline, memory_store: InMemoryEventStore
    ) -> None:
        first, second = await asyncio.gather(
            pipeline.process({"type": "CreateFranchise", "franchiseId": "STB1", "franchiseName": "Starbucks"}),
            pipeline.process({"type": "CreateFranchise", "franchiseId": "STB2", "franchiseName": "Costa"}),
        )

        ids = {first[0].metadata["correlationId"], second[0].metadata["correlationId"]}
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_command_context_is_bound(self, pipeline: CommandPipeline) -> None:
        bind_command_context(leftover="from an earlier command")

        events = await pipeline.process(
            {"type": "CreateFranchise", "franchiseId": "STB1", "franchiseName": "Starbucks"}
        )

        assert structlog.contextvars.get_contextvars() == {
            "command_type": "CreateFranchise",
            "aggregate_id": events[0].aggregate_id,
        }

    def test_bound_context_is_redacted(self) -> None:
        clear_command_context()
        bind_command_context(token="abc", command_type="AddBranch")

        assert structlog.contextvars.get_contextvars() == {
            "token": "***REDACTED***",
            "command_type": "AddBranch",
        }
        clear_command_context()


class TestStoreMetrics:
    """Event store counters move with appends, loads and conflicts."""

    @pytest.mark.asyncio
    async def test_append_and_load_counters(self, event_store: SQLiteEventStore) -> None:
        appended = sample("ledger_events_appended_total", {"event_type": "MetricsProbe"})
        loaded = sample("ledger_events_loaded_total")

        event = create_event(aggregate_id=AGGREGATE, event_type="MetricsProbe", timestamp=TIMESTAMP)
        await event_store.append_transactional(AGGREGATE, [event, event], 0)
        await event_store.fetch(AGGREGATE)

        assert sample("ledger_events_appended_total", {"event_type": "MetricsProbe"}) == appended + 2
        assert sample("ledger_events_loaded_total") == loaded + 2

    @pytest.mark.asyncio
    async def test_conflict_counter(self, memory_store: InMemoryEventStore) -> None:
        conflicts = sample("ledger_version_conflicts_total")
        event = create_event(aggregate_id=AGGREGATE, event_type="MetricsProbe", timestamp=TIMESTAMP)

        with pytest.raises(StoreConflictError):
            await memory_store.append_transactional(AGGREGATE, [event], 5)

        assert sample("ledger_version_conflicts_total") == conflicts + 1

    @pytest.mark.asyncio
    async def test_duplicate_counter(self, pipeline: CommandPipeline) -> None:
        duplicates = sample("ledger_duplicate_commands_total")
        command = {"type": "CreateFranchise", "franchiseId": "STB9", "franchiseName": "Dup"}

        await pipeline.submit(command)
        await pipeline.submit(command)

        assert sample("ledger_duplicate_commands_total") == duplicates + 1


class TestMetricsServerCli:
    """Metrics server flags default to settings and can be overridden."""

    def test_defaults_come_from_settings(self) -> None:
        parser = build_parser(LedgerSettings(metrics_port=9191, log_level="DEBUG"))
        args = parser.parse_args([])

        assert args.port == 9191
        assert args.log_level == "DEBUG"
        assert args.json_logs is False

    def test_flags_override(self) -> None:
        args = build_parser(LedgerSettings()).parse_args(["--port", "9300", "--json-logs"])

        assert args.port == 9300
        assert args.json_logs is True
