"""Redirect endpoint behavior tests."""

import datetime
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from shortlink.config import Settings
from shortlink.dependencies import ServiceManager
from shortlink.exceptions import StoreError


@pytest.mark.asyncio
async def test_redirect_valid_code(client: AsyncClient) -> None:
    # Create a short URL first
    create_resp = await client.post("/api/v1/shorten", json={"original_url": "https://example.com/a"})
    code = create_resp.json()["code"]

    # httpx won't follow by default
    response = await client.get(f"/{code}", follow_redirects=False)
    assert response.status_code == 301
    assert response.headers["location"] == "https://example.com/a"


@pytest.mark.asyncio
async def test_redirect_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/nonexistent", follow_redirects=False)
    assert response.status_code == 404
    assert response.json() == {"detail": "Short URL not found"}


@pytest.mark.asyncio
async def test_redirect_head_request(client: AsyncClient) -> None:
    await client.post("/api/v1/shorten", json={"original_url": "https://example.com/h", "custom_code": "head"})

    response = await client.head("/head", follow_redirects=False)
    assert response.status_code == 301
    assert response.headers["location"] == "https://example.com/h"


@pytest.mark.asyncio
async def test_redirect_multi_segment_path_is_service_not_found(client: AsyncClient) -> None:
    response = await client.get("/a/b", follow_redirects=False)
    assert response.status_code == 404
    assert response.json() == {"detail": "Short URL not found"}


@pytest.mark.asyncio
async def test_redirect_rejects_other_methods(client: AsyncClient) -> None:
    response = await client.delete("/abc")
    assert response.status_code == 405


@pytest.mark.asyncio
async def test_redirect_increments_clicks(client: AsyncClient, manager: ServiceManager) -> None:
    create_resp = await client.post("/api/v1/shorten", json={"original_url": "https://www.python.org"})
    code = create_resp.json()["code"]

    # Visit 3 times
    for _ in range(3):
        await client.get(f"/{code}", follow_redirects=False)
    await manager.clicks.drain()

    stats_resp = await client.get(f"/api/v1/stats/{code}")
    assert stats_resp.status_code == 200
    assert stats_resp.json()["click_count"] == 3


@pytest.mark.asyncio
async def test_redirect_with_custom_code(client: AsyncClient) -> None:
    await client.post(
        "/api/v1/shorten",
        json={"original_url": "https://www.github.com", "custom_code": "ghub"},
    )
    response = await client.get("/ghub", follow_redirects=False)
    assert response.status_code == 301
    assert response.headers["location"] == "https://www.github.com"


@pytest.mark.asyncio
async def test_redirect_unaffected_by_click_failures(
    client: AsyncClient, manager: ServiceManager, monkeypatch: pytest.MonkeyPatch
) -> None:
    await client.post("/api/v1/shorten", json={"original_url": "https://example.com/a", "custom_code": "iso"})
    healthy = await client.get("/iso", follow_redirects=False)

    monkeypatch.setattr(manager.store, "increment_clicks", AsyncMock(side_effect=StoreError("down")))
    broken = await client.get("/iso", follow_redirects=False)
    await manager.clicks.drain()

    assert broken.status_code == healthy.status_code == 301
    assert broken.headers["location"] == healthy.headers["location"]
    assert broken.content == healthy.content


@pytest.mark.asyncio
async def test_redirect_expired_link(client: AsyncClient, manager: ServiceManager, clock) -> None:
    # Inserted directly so the cache is not primed by creation
    await manager.store.insert("gone", "https://example.com/gone", clock.now - datetime.timedelta(seconds=1))

    response = await client.get("/gone", follow_redirects=False)
    assert response.status_code == 410
    assert response.json() == {"detail": "Link expired"}


@pytest.mark.asyncio
async def test_redirect_store_outage_is_server_error(client: AsyncClient, manager: ServiceManager) -> None:
    manager.store.lookup = AsyncMock(side_effect=StoreError("Database error"))
    response = await client.get("/abc", follow_redirects=False)
    assert response.status_code == 500


@pytest.mark.asyncio
async def test_root_serves_index(client: AsyncClient, settings: Settings) -> None:
    static_dir = Path(settings.STATIC_DIR)
    static_dir.mkdir(parents=True, exist_ok=True)
    (static_dir / "index.html").write_text("<html>shortlink</html>")

    response = await client.get("/")
    assert response.status_code == 200
    assert "shortlink" in response.text


@pytest.mark.asyncio
async def test_favicon_is_not_a_lookup(client: AsyncClient, manager: ServiceManager) -> None:
    manager.store.lookup = AsyncMock()
    response = await client.get("/favicon.ico")
    assert response.status_code == 404
    manager.store.lookup.assert_not_called()


@pytest.mark.asyncio
async def test_security_headers(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert response.headers["x-xss-protection"] == "1; mode=block"
