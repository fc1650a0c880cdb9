"""Integration tests for conversation session and assistant panel endpoints"""

import httpx
from fastapi.testclient import TestClient
from settlement_gateway.api.dependencies import get_assistant_client
from settlement_gateway.infrastructure.clients.assistant import AssistantClient

CONVERSATION = [
    ({"user_input": "Guaranteed", "assistant_reply": "How often do you receive payments?"}, "payment-mode"),
    ({"user_input": "Monthly", "assistant_reply": "Do your payments have an annual increase?"}, "annual-increase"),
    ({"user_input": "0%", "assistant_reply": "How much is each payment?"}, "payment-amount"),
    ({"user_input": "1000", "assistant_reply": "When do your payments start and end?"}, "payment-dates"),
    (
        {
            "user_input": {"start_date": "2025-01-01", "end_date": "2030-01-01"},
            "assistant_reply": "Please review your details.",
        },
        "review",
    ),
]


def failing_assistant_client() -> AssistantClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "failed"})

    return AssistantClient(base_url="http://assistant.test", api_key="", transport=httpx.MockTransport(handler))


def test_start_session(client: TestClient):
    response = client.post("/v1/sessions")

    assert response.status_code == 201
    data = response.json()
    assert data["current_step"] == "payment-type"
    assert data["prompt"]
    assert data["offer"] is None


def test_start_session_rejects_bad_id(client: TestClient):
    response = client.post("/v1/sessions", params={"session_id": "not valid!"})
    assert response.status_code == 400


def test_guided_conversation_produces_offer(client: TestClient):
    """Test a full dialog over HTTP ends with an offer recorded in history"""
    session_id = client.post("/v1/sessions", params={"session_id": "api-walk"}).json()["session_id"]
    assert session_id == "api-walk"

    for body, expected_step in CONVERSATION:
        response = client.post(f"/v1/sessions/{session_id}/turns", json=body)
        assert response.status_code == 200
        assert response.json()["current_step"] == expected_step

    response = client.post(f"/v1/sessions/{session_id}/turns", json={"user_input": "Yes, calculate"})

    assert response.status_code == 200
    data = response.json()
    assert data["current_step"] == "offer"
    assert data["calculated"] is True
    assert 0 < data["offer"]["minimumOffer"] < data["offer"]["maximumOffer"]

    # unchanged fields reuse the stored offer
    repeat = client.post(f"/v1/sessions/{session_id}/turns", json={})
    assert repeat.json()["calculated"] is False

    history = client.get("/v1/offers/history", params={"session_id": session_id}).json()
    assert len(history["offers"]) == 1


def test_invalid_turn_input_reports_errors(client: TestClient):
    session_id = client.post("/v1/sessions").json()["session_id"]

    response = client.post(f"/v1/sessions/{session_id}/turns", json={"user_input": "no idea"})

    assert response.status_code == 200
    data = response.json()
    assert data["current_step"] == "payment-type"
    assert data["errors"][0]["field"] == "category"


def test_get_and_end_session(client: TestClient):
    session_id = client.post("/v1/sessions").json()["session_id"]

    assert client.get(f"/v1/sessions/{session_id}").status_code == 200
    assert client.delete(f"/v1/sessions/{session_id}").status_code == 204
    assert client.get(f"/v1/sessions/{session_id}").status_code == 404
    assert client.delete(f"/v1/sessions/{session_id}").status_code == 404


def test_turn_for_unknown_session(client: TestClient):
    response = client.post("/v1/sessions/missing/turns", json={"user_input": "Guaranteed"})

    assert response.status_code == 404
    assert response.json() == {"error": "Session not found"}


def test_assistant_failure_returns_bad_gateway(client: TestClient):
    """Test a failed assistant run surfaces as 502 and leaves the session unchanged"""
    client.app.dependency_overrides[get_assistant_client] = failing_assistant_client
    session_id = client.post("/v1/sessions").json()["session_id"]

    response = client.post(
        f"/v1/sessions/{session_id}/turns",
        json={"user_input": "Guaranteed", "conversation_handle": "conv-1"},
    )

    assert response.status_code == 502
    assert response.json() == {"error": "Assistant reply unavailable, please retry"}
    assert client.get(f"/v1/sessions/{session_id}").json()["current_step"] == "payment-type"


def test_assistant_panel_transcript(client: TestClient):
    welcome = client.post("/v1/assistant/panel-1/welcome", json={"flow_type": "guaranteed"})
    assert welcome.status_code == 200
    assert welcome.json()["messages"][0]["is_welcome"] is True

    response = client.post(
        "/v1/assistant/panel-1/messages",
        json={"text": "monthly please", "flow_type": "guaranteed", "step": "payment-mode"},
    )
    messages = response.json()["messages"]
    assert [m["sender"] for m in messages] == ["assistant", "user", "assistant"]

    assert len(client.get("/v1/assistant/panel-1/messages").json()["messages"]) == 3
    assert client.delete("/v1/assistant/panel-1/messages").status_code == 204
    assert client.get("/v1/assistant/panel-1/messages").json()["messages"] == []


def test_assistant_panel_connection_error(client: TestClient):
    client.app.dependency_overrides[get_assistant_client] = failing_assistant_client

    response = client.post(
        "/v1/assistant/panel-2/messages",
        json={"text": "why do you need this?", "conversation_handle": "conv-2"},
    )

    assert response.status_code == 200
    assert response.json()["messages"][-1]["is_error"] is True
