"""OpenTelemetry tracing for adapter operations."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from llm_adapter.types import UnifiedResponse

logger = logging.getLogger(__name__)

# ── Optional OTEL imports ───────────────────────────────────────
try:
    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    HAS_OTEL = True
except ImportError:
    HAS_OTEL = False

try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter,
    )

    HAS_OTLP = True
except ImportError:
    HAS_OTLP = False


# Module-level tracer; None while tracing is disabled.
_tracer: Any = None


def configure_tracing(
    exporter: str = "none",
    endpoint: str = "http://localhost:4317",
    service_name: str = "llm-adapter",
) -> None:
    """Configure OpenTelemetry tracing.

    Args:
        exporter: One of "none", "console", "otlp".
        endpoint: OTLP collector endpoint (only used when exporter="otlp").
        service_name: Service name for spans.
    """
    global _tracer

    if exporter == "none" or not HAS_OTEL:
        _tracer = None
        return

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    if exporter == "console":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    elif exporter == "otlp":
        if not HAS_OTLP:
            logger.warning("OTLP exporter requested but opentelemetry-exporter-otlp not installed")
            _tracer = None
            return
        provider.add_span_processor(
            SimpleSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )
    else:
        logger.warning("Unknown trace exporter %r, tracing disabled", exporter)
        _tracer = None
        return

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer("llm_adapter")
    logger.info("OTEL tracing configured: exporter=%s, service=%s", exporter, service_name)


def get_tracer() -> Any:
    """Return the configured tracer, or None if tracing is disabled."""
    return _tracer


def disable_tracing() -> None:
    """Disable tracing (useful for tests)."""
    global _tracer
    _tracer = None


def response_attributes(response: UnifiedResponse) -> dict[str, Any]:
    """Span attributes describing a finished response."""
    attrs: dict[str, Any] = {}
    if response.usage is not None:
        attrs["llm.input_tokens"] = response.usage.prompt_tokens
        attrs["llm.output_tokens"] = response.usage.completion_tokens
        attrs["llm.total_tokens"] = response.usage.total_tokens
    if response.extra_fields.latency_ms:
        attrs["llm.latency_ms"] = response.extra_fields.latency_ms
    if response.choices and response.choices[0].finish_reason:
        attrs["llm.finish_reason"] = response.choices[0].finish_reason
    return attrs


@asynccontextmanager
async def traced_operation(
    model: str | None,
    provider: str,
    operation: str,
) -> AsyncGenerator[dict[str, Any], None]:
    """Context manager that wraps one adapter operation in an OTEL span.

    The span is named ``llm.<operation>``. Store the finished
    :class:`UnifiedResponse` under ``"response"`` in the yielded dict to
    have its usage and latency recorded::

        async with traced_operation(model, "openai", "chat_completion") as span_data:
            span_data["response"] = await provider.chat_completion(...)
    """
    span_data: dict[str, Any] = {}

    if _tracer is None:
        yield span_data
        return

    with _tracer.start_as_current_span(f"llm.{operation}") as span:
        span.set_attribute("llm.model", model or "provider-default")
        span.set_attribute("llm.provider", provider)
        span.set_attribute("llm.operation", operation)

        try:
            yield span_data
        except Exception as exc:
            span.set_status(trace.StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise
        else:
            response = span_data.get("response")
            if isinstance(response, UnifiedResponse):
                for key, value in response_attributes(response).items():
                    span.set_attribute(key, value)
