"""
Structured logging framework for Franchise Ledger.

Every command handled by the pipeline logs under its own correlation id and
command context (command type, aggregate id). Both live in ContextVars, so
concurrent asyncio tasks never see each other's context.

Output is human-readable console lines in development and JSON in
production; the choice is made once from LedgerSettings at process start.
"""

import contextvars
import logging
import secrets
import sys
import time
from typing import Any

import structlog

correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Set by configure_logging(); LogOperation consults it on failure
_include_stack_traces = True


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID using cryptographic randomness.

    Returns a 22-character URL-safe base64 string (128 bits of entropy).
    """
    return secrets.token_urlsafe(16)


def get_correlation_id() -> str:
    """Get the current correlation ID, or generate a new one if not set."""
    cid = correlation_id_var.get()
    if not cid:
        cid = generate_correlation_id()
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context."""
    correlation_id_var.set(correlation_id)


def add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add correlation ID to log event."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def bind_command_context(**context: Any) -> None:
    """
    Attach fields to every log line emitted in the current context.

    Called by the pipeline as it learns more about a command: first the
    command type, later the aggregate id the gate resolved.

    Example:
        >>> bind_command_context(command_type="AddBranch")
        >>> bind_command_context(aggregate_id="01908e9a-...")
    """
    structlog.contextvars.bind_contextvars(**redact_context(context))


def clear_command_context() -> None:
    """Drop fields bound by bind_command_context() (start of a new command)."""
    structlog.contextvars.clear_contextvars()


def configure_logging(
    *,
    json_output: bool = False,
    log_level: str = "INFO",
    include_stack_traces: bool | None = None,
) -> None:
    """
    Configure structured logging for the application.

    Logs go to stderr so that CLI output on stdout stays machine-readable.

    Args:
        json_output: If True, output JSON logs (for production).
                    If False, output human-readable console logs (for development).
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_stack_traces: Attach tracebacks to failed operations
            (defaults to on for console output, off for JSON)
    """
    global _include_stack_traces
    _include_stack_traces = (not json_output) if include_stack_traces is None else include_stack_traces

    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )

    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.ExceptionRenderer(),
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger for the given module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


# Never logged verbatim
REDACTED_FIELDS = {
    "password",
    "token",
    "secret",
    "api_key",
}


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Redact sensitive fields from log context.

    Example:
        >>> redact_context({"token": "abc", "operation": "append"})
        {"token": "***REDACTED***", "operation": "append"}
    """
    return {
        k: "***REDACTED***" if k in REDACTED_FIELDS else v
        for k, v in context.items()
    }


class LogOperation:
    """
    Context manager that logs start, completion or failure of an operation,
    with its duration in milliseconds.

    Exceptions are logged and then propagate unchanged.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ):
        """
        Args:
            logger: Structured logger instance
            operation: Operation name (e.g., "replay_aggregate")
            **context: Additional context to include in logs
        """
        self.logger = logger
        self.operation = operation
        self.context = redact_context(context)
        self.start_time: float = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.info(f"{self.operation} started", operation=self.operation, **self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)

        if exc_type is None:
            self.logger.info(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
                **self.context,
            )
            return

        self.logger.error(
            f"{self.operation} failed",
            operation=self.operation,
            duration_ms=duration_ms,
            error=str(exc_val),
            error_type=exc_type.__name__,
            exc_info=_include_stack_traces,
            **self.context,
        )
