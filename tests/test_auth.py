import jwt
import pytest
from bson import ObjectId
from fastapi import HTTPException
from fastapi.testclient import TestClient

from auth import check_password, hash_password, issue_token, require_admin, verify_token
from config import Settings, get_settings
from database import get_db
from main import app
from conftest import auth_header


class TestIssueToken:
    def test_returns_valid_json_web_token(self, settings):
        payload = {"_id": str(ObjectId()), "isAdmin": True}

        token = issue_token(payload["_id"], payload["isAdmin"], settings)

        assert jwt.decode(token, settings.jwt_private_key, algorithms=["HS256"]) == payload

    def test_refuses_without_private_key(self):
        with pytest.raises(RuntimeError):
            issue_token(str(ObjectId()), False, Settings())


class TestVerifyToken:
    def test_missing_token_is_401(self, settings):
        with pytest.raises(HTTPException) as exc:
            verify_token(None, settings)
        assert exc.value.status_code == 401

    def test_malformed_token_is_400(self, settings):
        with pytest.raises(HTTPException) as exc:
            verify_token("a", settings)
        assert exc.value.status_code == 400

    def test_token_signed_with_other_key_is_400(self, settings):
        token = issue_token(str(ObjectId()), True, Settings(jwt_private_key="another-key"))

        with pytest.raises(HTTPException) as exc:
            verify_token(token, settings)
        assert exc.value.status_code == 400

    def test_non_admin_is_forbidden(self):
        with pytest.raises(HTTPException) as exc:
            require_admin({"_id": str(ObjectId()), "isAdmin": False})
        assert exc.value.status_code == 403


class TestAuthMiddleware:
    def post(self, client, token):
        return client.post("/api/genres", json={"name": "genre2"}, headers=auth_header(token))

    def test_returns_401_if_no_token(self, client):
        assert self.post(client, "").status_code == 401

    def test_returns_401_if_header_absent(self, client):
        assert client.post("/api/genres", json={"name": "genre2"}).status_code == 401

    def test_returns_400_if_token_invalid(self, client):
        assert self.post(client, "a").status_code == 400

    def test_returns_200_if_token_valid(self, client, token):
        assert self.post(client, token).status_code == 200

    def test_auth_is_checked_before_body(self, client):
        res = client.post("/api/genres", json={}, headers=auth_header(""))

        assert res.status_code == 401


class TestPasswords:
    def test_hash_is_salted(self):
        assert hash_password("123456") != hash_password("123456")

    def test_check_password(self):
        hashed = hash_password("123456")

        assert check_password("123456", hashed)
        assert not check_password("654321", hashed)

    def test_long_passwords_are_not_truncated(self):
        hashed = hash_password("x" * 100)

        assert not check_password("x" * 99, hashed)


class TestLogin:
    @pytest.fixture
    def user(self, db):
        doc = {"name": "user1", "email": "user1@gmail.com", "password": hash_password("123456"), "isAdmin": True}
        doc["_id"] = db["user"].insert_one(doc).inserted_id
        return doc

    def test_returns_token_for_valid_credentials(self, client, user, settings):
        res = client.post("/api/auth", json={"email": "user1@gmail.com", "password": "123456"})

        assert res.status_code == 200
        decoded = jwt.decode(res.json(), settings.jwt_private_key, algorithms=["HS256"])
        assert decoded == {"_id": str(user["_id"]), "isAdmin": True}

    def test_returns_400_for_wrong_password(self, client, user):
        res = client.post("/api/auth", json={"email": "user1@gmail.com", "password": "wrong-password"})

        assert res.status_code == 400
        assert res.json()["detail"] == "Invalid email or password."

    def test_returns_400_for_unknown_email(self, client, user):
        res = client.post("/api/auth", json={"email": "nobody@gmail.com", "password": "123456"})

        assert res.status_code == 400


class TestErrorHandling:
    def test_unexpected_failure_is_500(self, settings):
        def broken_db():
            raise RuntimeError("connection refused")

        app.dependency_overrides[get_db] = broken_db
        app.dependency_overrides[get_settings] = lambda: settings
        try:
            res = TestClient(app, raise_server_exceptions=False).get("/api/genres")
        finally:
            app.dependency_overrides.clear()

        assert res.status_code == 500
        assert res.json() == {"detail": "Something failed."}
