"""Stats and listing endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from swiftlink.service import LinkServices


@pytest.mark.asyncio
async def test_stats_valid_code(client: AsyncClient) -> None:
    create_resp = await client.post("/api/shorten", json={"originalUrl": "https://www.google.com"})
    short_code = create_resp.json()["shortCode"]

    response = await client.get(f"/api/stats/{short_code}")
    assert response.status_code == 200
    data = response.json()
    assert data["shortCode"] == short_code
    assert data["originalUrl"] == "https://www.google.com"
    assert data["clicks"] == 0
    assert data["owner"] is None
    assert data["createdAt"] is not None


@pytest.mark.asyncio
async def test_stats_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/api/stats/nonexistent")
    assert response.status_code == 404
    assert response.json() == {"error": "Short URL not found"}


@pytest.mark.asyncio
async def test_stats_store_offline(client: AsyncClient, store) -> None:
    store.online = False
    response = await client.get("/api/stats/aB3xY9")
    assert response.status_code == 503
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_stats_after_clicks(client: AsyncClient, services: LinkServices) -> None:
    create_resp = await client.post("/api/shorten", json={"originalUrl": "https://www.example.com"})
    short_code = create_resp.json()["shortCode"]

    for _ in range(5):
        await client.get(f"/r/{short_code}", follow_redirects=False)
    await services.resolver.drain()

    response = await client.get(f"/api/stats/{short_code}")
    assert response.status_code == 200
    assert response.json()["clicks"] == 5


@pytest.mark.asyncio
async def test_list_newest_first(client: AsyncClient) -> None:
    codes = []
    for i in range(3):
        resp = await client.post("/api/shorten", json={"originalUrl": f"https://www.example.com/{i}"})
        codes.append(resp.json()["shortCode"])

    response = await client.get("/api/list")
    assert response.status_code == 200
    assert [item["shortCode"] for item in response.json()] == list(reversed(codes))


@pytest.mark.asyncio
async def test_list_limit_is_capped(client: AsyncClient) -> None:
    for i in range(55):
        await client.post("/api/shorten", json={"originalUrl": f"https://www.example.com/{i}"})

    assert len((await client.get("/api/list")).json()) == 50
    assert len((await client.get("/api/list", params={"limit": 500})).json()) == 50
    assert len((await client.get("/api/list", params={"limit": 7})).json()) == 7


@pytest.mark.asyncio
async def test_list_invalid_limit(client: AsyncClient) -> None:
    response = await client.get("/api/list", params={"limit": 0})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_store_offline(client: AsyncClient, store) -> None:
    store.online = False
    response = await client.get("/api/list")
    assert response.status_code == 503
    assert "error" in response.json()
