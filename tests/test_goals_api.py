"""
Goals API Tests

The flat /api/goals list and create endpoints.
"""
import pytest


class TestGoalsList:

    def test_empty_list(self, client, auth_headers):
        response = client.get("/api/goals", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {"goals": []}

    def test_lists_only_callers_goals(self, client, auth_headers, other_headers):
        client.post("/api/goals", json={"title": "Mine"}, headers=auth_headers)
        client.post("/api/goals", json={"title": "Theirs"}, headers=other_headers)
        goals = client.get("/api/goals", headers=auth_headers).json()["data"]["goals"]
        assert [g["title"] for g in goals] == ["Mine"]

    def test_requires_token(self, client):
        assert client.get("/api/goals").status_code == 401


class TestGoalsCreate:

    def test_create(self, client, auth_headers):
        response = client.post(
            "/api/goals",
            json={"title": "Read 12 books", "stage": "apple", "status": "active", "achievementValue": 25},
            headers=auth_headers,
        )
        assert response.status_code == 201
        goal = response.json()["data"]["goal"]
        assert goal["title"] == "Read 12 books"
        assert goal["stage"] == "apple"
        assert goal["achievementValue"] == 25

    @pytest.mark.parametrize("field, value, code", [
        ("stage", "", "INVALID_STAGE"),
        ("stage", None, "INVALID_STAGE"),
        ("status", "", "INVALID_STATUS"),
        ("status", None, "INVALID_STATUS"),
    ])
    def test_empty_or_null_enum_rejected(self, client, auth_headers, field, value, code):
        response = client.post("/api/goals", json={"title": "ok", field: value}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errorCode"] == code
        assert client.get("/api/goals", headers=auth_headers).json()["data"]["goals"] == []

    def test_create_validates_fields(self, client, auth_headers):
        response = client.post("/api/goals", json={"title": "ok", "status": "paused"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Status must be one of: active, completed, archived",
            "errorCode": "INVALID_STATUS",
        }

    def test_non_integer_value_is_invalid_request(self, client, auth_headers):
        response = client.post(
            "/api/goals", json={"title": "ok", "achievementValue": "lots"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["errorCode"] == "INVALID_REQUEST"
