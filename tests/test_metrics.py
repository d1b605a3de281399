"""Tests for /metrics endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient

from modelgate.core.deps import get_provider_registry
from modelgate.main import create_app
from modelgate.providers.registry import ProviderRegistry


def test_metrics_returns_prometheus_format() -> None:
    app = create_app()
    registry = ProviderRegistry()

    def _registry_override(_=None):
        return registry

    app.dependency_overrides[get_provider_registry] = _registry_override
    client = TestClient(app)

    # A rejected dispatch still moves the error counter.
    client.post("/v1/summarize", json={"payload": {"text": "t"}, "config": {"provider": "nope"}})

    r = client.get("/metrics")
    assert r.status_code == 200
    assert "text/plain" in r.headers.get("content-type", "")
    assert "modelgate_errors_total" in r.text
    assert 'code="provider_not_registered"' in r.text
