"""Exception hierarchy for llm-adapter."""

from __future__ import annotations

from llm_adapter.types import ErrorKind, UnifiedError


class AdapterError(Exception):
    """Base exception for all llm-adapter errors."""


class ProviderNotFoundError(AdapterError):
    """Raised when the requested provider is not registered."""

    def __init__(self, provider: str) -> None:
        self.provider = provider
        super().__init__(
            f"Provider '{provider}' is not registered. "
            f"Check the LLM_PROVIDER env var."
        )


class ProviderInitError(AdapterError):
    """Raised when a provider fails to initialize."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        super().__init__(f"Failed to initialize provider '{provider}': {reason}")


class ProviderError(AdapterError):
    """Raised when a provider operation fails.

    Carries the :class:`UnifiedError` describing the failure so callers can
    inspect vendor classification fields without parsing messages.
    """

    def __init__(self, provider: str, error: UnifiedError) -> None:
        self.provider = provider
        self.error = error
        detail = error.error.message or "unknown error"
        if error.status_code is not None:
            detail = f"{detail} (status {error.status_code})"
        super().__init__(f"Provider '{provider}' error: {detail}")

    @property
    def status_code(self) -> int | None:
        return self.error.status_code

    @property
    def original(self) -> BaseException | None:
        """The underlying exception, if the failure wrapped one."""
        return self.error.error.error

    @classmethod
    def from_unified(cls, provider: str, error: UnifiedError) -> ProviderError:
        """Build the subclass matching ``error.kind``."""
        exc_cls = _KIND_TO_EXCEPTION.get(error.kind, ProviderError)
        return exc_cls(provider, error)


class UnsupportedOperationError(ProviderError):
    """Raised when an operation is disabled or not offered by the provider."""


class RequestFormatError(ProviderError):
    """Raised when the wire payload could not be built or serialized."""


class ProviderRequestError(ProviderError):
    """Raised when the HTTP request itself failed (connection, timeout)."""


class ProviderAPIError(ProviderError):
    """Raised when the vendor answered with an error envelope."""


class ResponseDecodeError(ProviderError):
    """Raised when a response body did not match the expected shape."""


_KIND_TO_EXCEPTION: dict[ErrorKind, type[ProviderError]] = {
    ErrorKind.UNSUPPORTED_OPERATION: UnsupportedOperationError,
    ErrorKind.REQUEST_FORMAT: RequestFormatError,
    ErrorKind.TRANSPORT: ProviderRequestError,
    ErrorKind.PROVIDER_API: ProviderAPIError,
    ErrorKind.RESPONSE_DECODE: ResponseDecodeError,
}
