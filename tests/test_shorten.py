"""Shorten endpoint behavior tests."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_shorten_valid_url(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={"originalUrl": "https://www.google.com"})
    assert response.status_code == 200
    data = response.json()
    assert data["originalUrl"] == "https://www.google.com"
    assert len(data["shortCode"]) == 6
    assert data["shortCode"].isalnum()


@pytest.mark.asyncio
async def test_shorten_persists_record(client: AsyncClient, store) -> None:
    response = await client.post("/api/shorten", json={"originalUrl": "https://www.github.com"})
    record = await store.get(response.json()["shortCode"])
    assert record.original_url == "https://www.github.com"
    assert record.clicks == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["not-a-url", "ftp://example.com", "www.example.com"])
async def test_shorten_invalid_url(client: AsyncClient, url: str) -> None:
    response = await client.post("/api/shorten", json={"originalUrl": url})
    assert response.status_code == 400
    assert response.json() == {"error": "URL must start with http:// or https://"}


@pytest.mark.asyncio
async def test_shorten_empty_url(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={"originalUrl": ""})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid URL format"}


@pytest.mark.asyncio
async def test_shorten_missing_field(client: AsyncClient) -> None:
    response = await client.post("/api/shorten", json={})
    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_shorten_malformed_body(client: AsyncClient) -> None:
    response = await client.post(
        "/api/shorten",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid request")


@pytest.mark.asyncio
async def test_shorten_store_down_returns_500(client: AsyncClient, store) -> None:
    store.online = False
    response = await client.post("/api/shorten", json={"originalUrl": "https://www.google.com"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_shorten_multiple_urls(client: AsyncClient) -> None:
    urls = [
        "https://www.google.com",
        "https://www.github.com",
        "https://www.python.org",
    ]
    codes = set()
    for url in urls:
        response = await client.post("/api/shorten", json={"originalUrl": url})
        assert response.status_code == 200
        codes.add(response.json()["shortCode"])
    assert len(codes) == len(urls)
