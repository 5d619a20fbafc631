"""
Tests for the /users endpoints.
"""

from sqlalchemy import select

from backend.db.models import User
from backend.services.user_service import verify_password


class TestUsers:

    def test_create_hashes_password(self, client, session):
        response = client.post(
            "/users",
            json={"username": "kasir1", "password": "rahasia", "name": "Kasir Satu", "role": "admin"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["role"] == "ADMIN"
        assert data["isActive"] is True
        assert "password" not in data
        assert "passwordHash" not in data

        user = session.scalars(select(User).where(User.username == "kasir1")).one()
        assert user.password_hash != "rahasia"
        assert verify_password("rahasia", user.password_hash)

    def test_duplicate_username(self, client, make_user):
        make_user(username="taken")

        response = client.post("/users", json={"username": "taken", "password": "x"})

        assert response.status_code == 409
        assert response.json()["detail"]["details"] == "Username already exists"

    def test_missing_password(self, client):
        response = client.post("/users", json={"username": "nopass"})

        assert response.status_code == 400

    def test_list_filters_by_role(self, client, make_user):
        make_user(username="boss", role="ADMIN")
        make_user(username="clerk")

        data = client.get("/users", params={"role": "admin"}).json()

        assert [u["username"] for u in data["users"]] == ["boss"]
        assert data["pagination"]["total"] == 1
