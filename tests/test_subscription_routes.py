import uuid
from datetime import datetime
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

from vispark.app import create_app
from vispark.auth import get_current_user_id
from vispark.services.notification_store import NotificationStore
from vispark.services.push import FeedEntry


@pytest.fixture
def app(user_id):
    app = create_app()
    app.dependency_overrides[get_current_user_id] = lambda: user_id
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app, session_factory):
    with (
        patch("vispark.routes.subscriptions.async_session", session_factory),
        patch("vispark.routes.notifications.async_session", session_factory),
    ):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c


class TestSubscriptions:
    async def test_subscribe_is_idempotent(self, client):
        first = await client.post("/subscriptions", json={"channelId": "UCsub"})
        second = await client.post("/subscriptions", json={"channelId": "UCsub"})

        assert first.status_code == 201
        assert first.json()["id"] == second.json()["id"]

        listed = (await client.get("/subscriptions")).json()["subscriptions"]
        assert [s["channelId"] for s in listed] == ["UCsub"]

    async def test_get_and_delete(self, client):
        await client.post("/subscriptions", json={"channelId": "UCdel"})

        assert (await client.get("/subscriptions/UCdel")).status_code == 200
        assert (await client.delete("/subscriptions/UCdel")).status_code == 204
        assert (await client.get("/subscriptions/UCdel")).status_code == 404

    async def test_delete_unknown(self, client):
        response = await client.delete("/subscriptions/UCnope")
        assert response.status_code == 404
        assert response.json()["message"] == "You are not subscribed to this channel."


class TestNotifications:
    async def test_lists_own_notifications(self, client, db, user_id):
        store = NotificationStore(db)
        entry = FeedEntry(
            video_id=f"v{uuid.uuid4().hex[:8]}",
            channel_id="UCn",
            title="Upload",
            url="https://www.youtube.com/watch?v=x",
            published_at=datetime(2026, 3, 1, 9, 30),
        )
        await store.upsert(user_id, entry)
        await store.upsert(uuid.uuid4(), entry)

        response = await client.get("/notifications")

        notifications = response.json()["notifications"]
        assert len(notifications) == 1
        assert notifications[0]["videoId"] == entry.video_id
        assert notifications[0]["publishedAt"] == "2026-03-01T09:30:00"
        assert notifications[0]["summaryGenerated"] is False
