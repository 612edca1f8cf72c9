import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt
import pytest
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient

from vispark.app import create_app
from vispark.auth import create_access_token, decode_token


@pytest.fixture
def jwt_settings():
    with patch("vispark.auth.settings") as mock_settings:
        mock_settings.supabase_jwt_secret = "test-secret"
        mock_settings.jwt_algorithm = "HS256"
        mock_settings.jwt_audience = "authenticated"
        yield mock_settings


class TestDecodeToken:
    def test_round_trip(self, jwt_settings):
        user_id = uuid.uuid4()
        token = create_access_token(user_id)
        assert decode_token(token) == user_id

    def test_expired_token(self, jwt_settings):
        token = create_access_token(uuid.uuid4(), expires_minutes=-1)
        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired."

    def test_wrong_audience(self, jwt_settings):
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "aud": "anon",
                "exp": datetime.now(UTC) + timedelta(minutes=5),
            },
            "test-secret",
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401

    def test_wrong_secret(self, jwt_settings):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "aud": "authenticated"}, "other", algorithm="HS256"
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401

    def test_subject_must_be_uuid(self, jwt_settings):
        token = jwt.encode(
            {"sub": "not-a-uuid", "aud": "authenticated"}, "test-secret", algorithm="HS256"
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)
        assert exc_info.value.detail == "Token has no valid subject."

    def test_missing_secret_is_misconfiguration(self):
        with patch("vispark.auth.settings") as mock_settings:
            mock_settings.supabase_jwt_secret = ""
            with pytest.raises(HTTPException) as exc_info:
                decode_token("anything")
        assert exc_info.value.status_code == 500


class TestProtectedRoutes:
    @pytest.fixture
    async def client(self):
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c

    async def test_vispark_requires_token(self, client):
        response = await client.post("/vispark", json={"videoId": "abc", "summaries": ["a"]})
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    async def test_invalid_token_rejected(self, client, jwt_settings):
        response = await client.get(
            "/visparks", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "message": "Invalid token."}

    async def test_push_subscribe_requires_token(self, client):
        response = await client.post("/youtube-push-subscribe", json={"channelId": "UC1"})
        assert response.status_code == 401

    async def test_admin_key_required(self, client):
        with patch("vispark.auth.settings") as mock_settings:
            mock_settings.admin_api_key = "secret"
            response = await client.get("/admin/stats", headers={"X-Admin-Key": "wrong"})
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"
