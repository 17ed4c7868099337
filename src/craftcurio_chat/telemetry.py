"""Structured logging setup and Prometheus metrics shared across the app."""

import logging
import sys

import structlog
from prometheus_client import CollectorRegistry, Counter

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("chatbot_requests_total", "Total chatbot requests", ["endpoint"], registry=CUSTOM_REGISTRY)
ERRORS = Counter("chatbot_errors_total", "Total chatbot errors by status", ["status"], registry=CUSTOM_REGISTRY)
CONNECTIONS = Counter("chat_connections_total", "Authenticated chat connections", registry=CUSTOM_REGISTRY)
AUTH_FAILURES = Counter("chat_auth_failures_total", "Rejected chat connections", ["reason"], registry=CUSTOM_REGISTRY)
TYPING_RELAYS = Counter("chat_typing_relays_total", "Relayed typing indicators", ["kind"], registry=CUSTOM_REGISTRY)


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Configure structlog and the stdlib root logger."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    log_level = getattr(logging, level.upper(), logging.INFO)
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("engineio.server").setLevel(logging.WARNING)
    logging.getLogger("socketio.server").setLevel(logging.WARNING)
