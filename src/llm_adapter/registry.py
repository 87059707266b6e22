"""Adapter construction from configuration.

``LLMClient`` builds exactly one provider per instance through
:func:`build_provider`. The table below only resolves ``LLM_PROVIDER`` to a
factory; there is no per-request selection or fallback between providers.
Custom OpenAI-compatible deployments reuse the ``openai`` factory and are
told apart by ``LLM_CUSTOM_PROVIDER_NAME``.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from llm_adapter.exceptions import ProviderInitError, ProviderNotFoundError

if TYPE_CHECKING:
    from llm_adapter.config import AdapterConfig
    from llm_adapter.providers.base import Provider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[["AdapterConfig"], "Provider"]

# Built-in adapters, imported on first lookup so the HTTP stack stays unloaded
# until a provider is built.
_BUILTIN_FACTORIES: dict[str, str] = {
    "openai": "llm_adapter.providers.openai:OpenAIProvider.from_config",
}

_PROVIDERS: dict[str, ProviderFactory] = {}


def register_provider(name: str, factory: ProviderFactory) -> None:
    """Make *factory* available under ``LLM_PROVIDER=<name>``.

    Registering an existing name replaces it, built-ins included.
    """
    _PROVIDERS[name] = factory
    logger.debug("provider_registered | name=%s", name)


def unregister_provider(name: str) -> None:
    _PROVIDERS.pop(name, None)


def _resolve_builtin(name: str) -> ProviderFactory | None:
    target = _BUILTIN_FACTORIES.get(name)
    if target is None:
        return None
    module_name, _, attr_path = target.partition(":")
    obj: object = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        obj = getattr(obj, attr)
    factory: ProviderFactory = obj  # type: ignore[assignment]
    _PROVIDERS.setdefault(name, factory)
    return _PROVIDERS[name]


def get_factory(name: str) -> ProviderFactory:
    """Look up the factory for *name*.

    Raises:
        ProviderNotFoundError: Neither registered nor built in.
    """
    factory = _PROVIDERS.get(name) or _resolve_builtin(name)
    if factory is None:
        raise ProviderNotFoundError(name)
    return factory


def build_provider(config: AdapterConfig) -> Provider:
    """Build the provider named by ``config.provider``.

    Raises:
        ProviderNotFoundError: If no factory is known under that name.
        ProviderInitError: If the factory fails, e.g. on a missing API key.
    """
    factory = get_factory(config.provider)
    try:
        provider = factory(config)
    except Exception as exc:
        raise ProviderInitError(config.provider, str(exc)) from exc
    logger.debug(
        "provider_built | provider=%s reported_as=%s",
        config.provider,
        provider.provider_name,
    )
    return provider


def list_providers() -> list[str]:
    """Names accepted by ``LLM_PROVIDER``, built-ins included."""
    return sorted(set(_PROVIDERS) | set(_BUILTIN_FACTORIES))
