"""Request context and service manager tests."""

import pytest
from starlette.requests import Request

from shortlink.config import Settings
from shortlink.dependencies import ServiceManager, client_ip_from


def _request(headers: dict[str, str], peer: tuple[str, int] | None = ("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": peer,
    }
    return Request(scope)


def test_client_ip_prefers_forwarded_for_first_hop() -> None:
    request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "198.51.100.2"})
    assert client_ip_from(request) == "203.0.113.7"


def test_client_ip_falls_back_to_real_ip() -> None:
    request = _request({"X-Real-IP": "198.51.100.2"})
    assert client_ip_from(request) == "198.51.100.2"


def test_client_ip_falls_back_to_peer() -> None:
    assert client_ip_from(_request({})) == "10.0.0.9"
    assert client_ip_from(_request({}, peer=None)) is None


@pytest.mark.asyncio
async def test_initialize_is_idempotent(settings: Settings) -> None:
    manager = ServiceManager(settings)
    await manager.initialize()
    links = manager.links
    await manager.initialize()
    assert manager.links is links
    assert manager.initialized

    await manager.cleanup()
    assert not manager.initialized
