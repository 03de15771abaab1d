"""Pytest configuration and fixtures for testing."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
import pytest
from fastapi import FastAPI

from wrapproxy.config import ProxySettings, load_settings
from wrapproxy.main import create_app
from wrapproxy.testing import FakeUpstream

UPSTREAM_BASE = "http://upstream.local"


# =============================================================================
# Settings Builders
# =============================================================================


def build_settings(
    variant: str = "deepseek",
    *,
    api_key: Optional[str] = "server-key",
    endpoint: str = UPSTREAM_BASE,
    model_profile: Optional[str] = None,
    fallback_model: Any = ...,
) -> ProxySettings:
    """Build settings pointing at the fake upstream, isolated from the host env.

    Args:
        variant: deepseek or claude
        api_key: Server-side API key (None = no server key)
        endpoint: Upstream base URL
        model_profile: Optional profile name
        fallback_model: Override the variant fallback (None disables it)

    Returns:
        ProxySettings for create_app
    """
    upstream_cfg: dict[str, Any] = {"endpoint": endpoint}
    if api_key:
        upstream_cfg["api_key"] = api_key
    if fallback_model is not ...:
        upstream_cfg["fallback_model"] = fallback_model
    return load_settings(
        variant=variant,
        model_profile=model_profile,
        environ={},
        config={"proxy_settings": {"upstream": upstream_cfg}},
    )


# =============================================================================
# Harness Helpers
# =============================================================================


@asynccontextmanager
async def proxy_client(
    settings: ProxySettings,
    upstream: Optional[FakeUpstream] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Run the proxy in-process against a fake upstream.

    Either ``upstream`` (served through ASGITransport) or an explicit
    ``transport`` (e.g. httpx.MockTransport) provides the upstream side.
    """
    if transport is None:
        assert upstream is not None
        transport = httpx.ASGITransport(app=upstream.app)
    upstream_client = httpx.AsyncClient(transport=transport)
    app: FastAPI = create_app(settings, client=upstream_client)
    try:
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://proxy.local",
        ) as client:
            yield client
    finally:
        await upstream_client.aclose()


@pytest.fixture
def upstream() -> FakeUpstream:
    """A fresh fake upstream with an empty response queue."""
    return FakeUpstream()


@pytest.fixture
def deepseek_settings() -> ProxySettings:
    return build_settings("deepseek")


@pytest.fixture
def claude_settings() -> ProxySettings:
    return build_settings("claude")
