"""Shared test fixtures for llm-adapter."""

from __future__ import annotations

import pytest

from llm_adapter.config import AdapterConfig
from llm_adapter.testing import FakeProvider


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Return a fresh FakeProvider."""
    return FakeProvider()


@pytest.fixture
def test_config(monkeypatch: pytest.MonkeyPatch) -> AdapterConfig:
    """Return an AdapterConfig with test defaults (no real API key needed)."""
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.setenv("LLM_API_KEY", "test-key-fake")
    monkeypatch.setenv("LLM_TRACE_ENABLED", "false")
    monkeypatch.delenv("LLM_CUSTOM_PROVIDER_NAME", raising=False)
    monkeypatch.delenv("LLM_ALLOWED_OPERATIONS", raising=False)
    return AdapterConfig()
