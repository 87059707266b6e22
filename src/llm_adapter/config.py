"""Adapter configuration via environment variables."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings

from llm_adapter.types import Operation

# Capacity of the bounded event channel between a stream worker and its consumer.
DEFAULT_STREAM_BUFFER_SIZE = 5000


class CustomProviderConfig(BaseModel):
    """Overrides for running a vendor adapter under another name.

    ``allowed_operations=None`` leaves every operation enabled; otherwise
    only the listed operations may be invoked.
    """

    name: str
    base_provider: str = "openai"
    allowed_operations: frozenset[Operation] | None = None

    def is_operation_allowed(self, operation: Operation) -> bool:
        if self.allowed_operations is None:
            return True
        return operation in self.allowed_operations


class AdapterConfig(BaseSettings):
    """LLM adapter configuration.

    All fields are read from environment variables with the ``LLM_`` prefix.
    Example: ``LLM_BASE_URL=http://localhost:8000`` sets ``base_url``.
    Mapping and list fields (``LLM_EXTRA_HEADERS``, ``LLM_ALLOWED_OPERATIONS``)
    are given as JSON.
    """

    model_config = {"env_prefix": "LLM_", "env_file": ".env", "extra": "ignore"}

    # ── Provider ────────────────────────────────────────────────
    provider: str = Field(
        default="openai",
        description="Registered provider name.",
    )
    model: str = Field(
        default="gpt-4o-mini",
        description="Default model identifier passed to the provider.",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key. Falls back to provider-specific env vars if unset.",
    )
    base_url: str | None = Field(
        default=None,
        description="Optional base URL override for the provider API.",
    )
    extra_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers added to every request; never override auth/content headers.",
    )

    # ── Custom provider ─────────────────────────────────────────
    custom_provider_name: str | None = Field(
        default=None,
        description="Report responses under this provider name instead of the default.",
    )
    allowed_operations: list[Operation] | None = Field(
        default=None,
        description="Operations this provider may serve. None = all.",
    )

    # ── Request behaviour ───────────────────────────────────────
    max_retries: int = Field(default=3, ge=0)
    timeout_seconds: int = Field(default=120, ge=1)
    send_back_raw_response: bool = Field(default=False)
    stream_buffer_size: int = Field(default=DEFAULT_STREAM_BUFFER_SIZE, ge=1)

    # ── Observability ───────────────────────────────────────────
    trace_enabled: bool = Field(default=False)
    trace_exporter: str = Field(
        default="none",
        description="Trace exporter: 'none', 'console', 'otlp'.",
    )
    trace_endpoint: str = Field(default="http://localhost:4317")
    trace_service_name: str = Field(default="llm-adapter")

    log_level: str = Field(default="INFO")
    log_format: str = Field(
        default="json",
        description="Log format: 'json' or 'console'.",
    )

    @model_validator(mode="after")
    def _resolve_api_key(self) -> AdapterConfig:
        """Fall back to provider-specific env vars if LLM_API_KEY is unset."""
        if self.api_key is not None:
            return self

        fallback_map: dict[str, str] = {
            "openai": "OPENAI_API_KEY",
        }
        env_var = fallback_map.get(self.provider)
        if env_var:
            value = os.environ.get(env_var)
            if value:
                self.api_key = SecretStr(value)

        return self

    def get_api_key(self) -> str:
        """Return the resolved API key as a plain string.

        Raises:
            ValueError: If no API key is configured.
        """
        if self.api_key is None:
            msg = (
                f"No API key configured for provider '{self.provider}'. "
                f"Set LLM_API_KEY or the provider-specific env var."
            )
            raise ValueError(msg)
        return self.api_key.get_secret_value()

    def custom_provider(self) -> CustomProviderConfig | None:
        """Build the custom-provider override, if one is configured."""
        if self.custom_provider_name is None and self.allowed_operations is None:
            return None
        return CustomProviderConfig(
            name=self.custom_provider_name or self.provider,
            base_provider=self.provider,
            allowed_operations=(
                frozenset(self.allowed_operations)
                if self.allowed_operations is not None
                else None
            ),
        )
