"""Integration: content, reaction, trending, tag and comment endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

AUTHOR = {"X-User-Id": "10"}


def _fan(n: int) -> dict[str, str]:
    return {"X-User-Id": str(100 + n)}


async def _post(client: AsyncClient, body: str, tags: list[str] | None = None) -> dict:
    response = await client.post("/api/v1/content", json={"body": body, "tags": tags or []}, headers=AUTHOR)
    assert response.status_code == 201
    return response.json()


class TestContentAPI:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient):
        created = await _post(client, "hello", ["#Hello", "World"])
        assert created["author_id"] == 10
        assert created["tags"] == ["hello", "world"]

        fetched = (await client.get(f"/api/v1/content/{created['id']}")).json()
        assert fetched["body"] == "hello"

    @pytest.mark.asyncio
    async def test_missing_content_404(self, client: AsyncClient):
        response = await client.get("/api/v1/content/999")
        assert response.status_code == 404
        assert response.json() == {"detail": "Content not found"}

    @pytest.mark.asyncio
    async def test_tag_query(self, client: AsyncClient):
        tagged = await _post(client, "a", ["music"])
        await _post(client, "b", ["art"])

        data = (await client.get("/api/v1/tags/MUSIC/content")).json()

        assert data["total"] == 1
        assert data["items"][0]["id"] == tagged["id"]

    @pytest.mark.asyncio
    async def test_feed(self, client: AsyncClient):
        first = await _post(client, "first")
        second = await _post(client, "second")

        data = (await client.get("/api/v1/feed?per_page=1")).json()

        assert data["per_page"] == 1
        assert [i["id"] for i in data["items"]] == [second["id"]]
        page2 = (await client.get("/api/v1/feed?per_page=1&page=2")).json()
        assert [i["id"] for i in page2["items"]] == [first["id"]]

    @pytest.mark.asyncio
    async def test_author_deletes_content(self, client: AsyncClient):
        item = await _post(client, "short-lived")
        await client.put(f"/api/v1/content/{item['id']}/reaction", json={"is_like": True}, headers=_fan(1))

        response = await client.delete(f"/api/v1/content/{item['id']}", headers=AUTHOR)

        assert response.status_code == 204
        assert (await client.get(f"/api/v1/content/{item['id']}")).status_code == 404
        assert (await client.get("/api/v1/trending")).json()["items"] == []

    @pytest.mark.asyncio
    async def test_delete_by_other_user_403(self, client: AsyncClient):
        item = await _post(client, "mine")
        response = await client.delete(f"/api/v1/content/{item['id']}", headers=_fan(1))
        assert response.status_code == 403
        assert (await client.get(f"/api/v1/content/{item['id']}")).status_code == 200

    @pytest.mark.asyncio
    async def test_delete_missing_404(self, client: AsyncClient):
        response = await client.delete("/api/v1/content/999", headers=AUTHOR)
        assert response.status_code == 404


class TestReactionsAPI:
    @pytest.mark.asyncio
    async def test_like_then_dislike(self, client: AsyncClient):
        item = await _post(client, "post")
        url = f"/api/v1/content/{item['id']}/reaction"

        liked = await client.put(url, json={"is_like": True}, headers=_fan(1))
        assert liked.status_code == 200
        assert liked.json()["is_like"] is True

        disliked = await client.put(url, json={"is_like": False}, headers=_fan(1))
        assert disliked.json()["id"] == liked.json()["id"]

        counts = (await client.get(f"/api/v1/content/{item['id']}/reactions")).json()
        assert counts == {"content_id": item["id"], "likes": 0, "dislikes": 1}

    @pytest.mark.asyncio
    async def test_repeated_like_notifies_author_once(self, client: AsyncClient):
        item = await _post(client, "post")
        for _ in range(3):
            await client.put(f"/api/v1/content/{item['id']}/reaction", json={"is_like": True}, headers=_fan(1))

        data = (await client.get("/api/v1/notifications", headers=AUTHOR)).json()
        assert [n["type"] for n in data["notifications"]] == ["like"]

    @pytest.mark.asyncio
    async def test_reaction_on_missing_content_404(self, client: AsyncClient):
        response = await client.put("/api/v1/content/999/reaction", json={"is_like": True}, headers=_fan(1))
        assert response.status_code == 404


class TestTrendingAPI:
    @pytest.mark.asyncio
    async def test_ranked_by_likes(self, client: AsyncClient):
        quiet = await _post(client, "quiet")
        popular = await _post(client, "popular")
        for n in range(2):
            await client.put(f"/api/v1/content/{popular['id']}/reaction", json={"is_like": True}, headers=_fan(n))
        await client.put(f"/api/v1/content/{quiet['id']}/reaction", json={"is_like": True}, headers=_fan(0))

        data = (await client.get("/api/v1/trending?limit=5")).json()

        assert [(e["rank"], e["content"]["id"], e["like_count"]) for e in data["items"]] == [
            (1, popular["id"], 2),
            (2, quiet["id"], 1),
        ]

    @pytest.mark.asyncio
    async def test_invalid_limit_422(self, client: AsyncClient):
        response = await client.get("/api/v1/trending?limit=0")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_limit_above_maximum_422(self, client: AsyncClient):
        response = await client.get("/api/v1/trending?limit=101")
        assert response.status_code == 422


class TestCommentsAPI:
    @pytest.mark.asyncio
    async def test_comment_and_list(self, client: AsyncClient):
        item = await _post(client, "post")
        url = f"/api/v1/content/{item['id']}/comments"

        response = await client.post(url, json={"body": "nice"}, headers=_fan(1))
        assert response.status_code == 201

        data = (await client.get(url)).json()
        assert data["total"] == 1
        assert data["comments"][0]["body"] == "nice"

        notes = (await client.get("/api/v1/notifications", headers=AUTHOR)).json()
        assert notes["notifications"][0]["type"] == "comment"
        assert notes["notifications"][0]["content"] == "nice"
