"""Observability sub-package: tracing and logging."""

from llm_adapter.observability.logging import configure_logging, get_logger
from llm_adapter.observability.tracing import (
    configure_tracing,
    disable_tracing,
    get_tracer,
    traced_operation,
)

__all__ = [
    "configure_logging",
    "configure_tracing",
    "disable_tracing",
    "get_logger",
    "get_tracer",
    "traced_operation",
]
