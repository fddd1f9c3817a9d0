"""Redirect endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from swiftlink.service import LinkServices


@pytest.mark.asyncio
async def test_redirect_valid_code(client: AsyncClient) -> None:
    # Create a short URL first
    create_resp = await client.post("/api/shorten", json={"originalUrl": "https://www.google.com/search?q=abc"})
    short_code = create_resp.json()["shortCode"]

    # httpx won't follow by default
    response = await client.get(f"/r/{short_code}", follow_redirects=False)
    assert response.status_code == 301
    assert response.headers["location"] == "https://www.google.com/search?q=abc"


@pytest.mark.asyncio
async def test_redirect_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/r/nonexistent", follow_redirects=False)
    assert response.status_code == 404
    assert "Link Not Found" in response.text
    assert response.headers["content-type"].startswith("text/html")


@pytest.mark.asyncio
async def test_redirect_increments_clicks(client: AsyncClient, services: LinkServices) -> None:
    create_resp = await client.post("/api/shorten", json={"originalUrl": "https://www.python.org"})
    short_code = create_resp.json()["shortCode"]

    for _ in range(3):
        await client.get(f"/r/{short_code}", follow_redirects=False)
    await services.resolver.drain()

    stats_resp = await client.get(f"/api/stats/{short_code}")
    assert stats_resp.status_code == 200
    assert stats_resp.json()["clicks"] == 3


@pytest.mark.asyncio
async def test_redirect_store_offline_uncached(client: AsyncClient, store) -> None:
    store.online = False
    response = await client.get("/r/aB3xY9", follow_redirects=False)
    assert response.status_code == 503
    assert response.headers["retry-after"] == "5"
    assert "couldn't verify" in response.text


@pytest.mark.asyncio
async def test_redirect_store_offline_cached(client: AsyncClient, store, services: LinkServices) -> None:
    create_resp = await client.post("/api/shorten", json={"originalUrl": "https://www.github.com"})
    short_code = create_resp.json()["shortCode"]

    store.online = False
    response = await client.get(f"/r/{short_code}", follow_redirects=False)
    await services.resolver.drain()

    assert response.status_code == 301
    assert response.headers["location"] == "https://www.github.com"
