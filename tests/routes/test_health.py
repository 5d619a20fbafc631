"""
Tests for the public health check.
"""


def test_health_requires_no_auth(anonymous_client):
    response = anonymous_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
