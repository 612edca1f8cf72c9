import uuid
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from vispark.app import create_app
from vispark.auth import get_current_user_id
from vispark.models import Vispark


@pytest.fixture
def app(user_id):
    app = create_app()
    app.dependency_overrides[get_current_user_id] = lambda: user_id
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app, session_factory):
    with patch("vispark.routes.visparks.async_session", session_factory):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c


class TestCreateVispark:
    async def test_create(self, client, db, user_id):
        response = await client.post(
            "/vispark",
            json={
                "videoId": "vid1",
                "channelId": "UC1",
                "summaries": ["First", "Second"],
                "metadata": {
                    "videoId": "vid1",
                    "title": "A video",
                    "channelTitle": "Channel One",
                    "duration": "PT4M",
                    "thumbnails": {"default": {"url": "https://i/1.jpg"}},
                },
                "createdTime": "1999-01-01T00:00:00Z",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["videoId"] == "vid1"
        assert data["summaries"] == ["First", "Second"]
        assert not data["createdTime"].startswith("1999")

        vispark = await db.get(Vispark, uuid.UUID(data["id"]))
        assert vispark.user_id == user_id
        assert vispark.video_channel_id == "UC1"
        assert vispark.video_title == "A video"
        assert vispark.video_duration == "PT4M"

    async def test_non_string_summaries(self, client):
        response = await client.post("/vispark", json={"videoId": "vid1", "summaries": [1, 2]})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid fields"

    async def test_missing_summaries(self, client):
        response = await client.post("/vispark", json={"videoId": "vid1"})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing fields"


class TestReadVisparks:
    async def test_list_newest_first(self, client):
        for video_id in ("old", "new"):
            await client.post("/vispark", json={"videoId": video_id, "summaries": ["x"]})

        response = await client.get("/visparks", params={"limit": 10})

        assert response.status_code == 200
        visparks = response.json()["visparks"]
        assert [v["videoId"] for v in visparks][:2] == ["new", "old"]
        assert visparks[0]["summaries"] == ["x"]

    async def test_get_by_video(self, client):
        await client.post(
            "/vispark",
            json={
                "videoId": "vidmeta",
                "summaries": ["x"],
                "metadata": {"videoId": "vidmeta", "title": "Stored title"},
            },
        )

        response = await client.get("/visparks/vidmeta")

        assert response.status_code == 200
        data = response.json()
        assert data["videoId"] == "vidmeta"
        assert data["metadata"]["title"] == "Stored title"

    async def test_get_missing(self, client):
        response = await client.get("/visparks/nothing-here")
        assert response.status_code == 404
        assert response.json()["error"] == "Not found"

    async def test_other_users_visparks_are_hidden(self, client, app):
        await client.post("/vispark", json={"videoId": "private", "summaries": ["x"]})
        app.dependency_overrides[get_current_user_id] = lambda: uuid.uuid4()

        response = await client.get("/visparks/private")
        assert response.status_code == 404


class TestDeleteVispark:
    async def test_delete(self, client):
        created = await client.post("/vispark", json={"videoId": "gone", "summaries": ["x"]})
        vispark_id = created.json()["id"]

        response = await client.delete(f"/visparks/{vispark_id}")
        assert response.status_code == 204

        assert (await client.get("/visparks/gone")).status_code == 404

    async def test_delete_unknown(self, client):
        response = await client.delete(f"/visparks/{uuid.uuid4()}")
        assert response.status_code == 404
