"""Unit tests for the assistant API client"""

import httpx
import pytest
from settlement_gateway.domain.exceptions import ExternalCollaboratorError
from settlement_gateway.infrastructure.clients.assistant import AssistantClient


def client_for(handler, **kwargs) -> AssistantClient:
    return AssistantClient(
        base_url="http://assistant.test",
        api_key=kwargs.pop("api_key", ""),
        poll_interval=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def test_polls_until_completed():
    """Test queued and in_progress runs are polled until the reply is ready"""
    statuses = iter(["queued", "in_progress", "completed"])
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        status = next(statuses)
        body = {"status": status}
        if status == "completed":
            body["reply"] = "How often do you receive payments?"
        return httpx.Response(200, json=body)

    reply = await client_for(handler).get_latest_reply("conv-1")

    assert reply == "How often do you receive payments?"
    assert calls == ["/v1/conversations/conv-1/latest-run"] * 3


@pytest.mark.parametrize("status", ["failed", "cancelled", "expired", "requires_action"])
async def test_non_completed_terminal_status_fails(status):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": status})

    with pytest.raises(ExternalCollaboratorError):
        await client_for(handler).get_latest_reply("conv-1")


async def test_http_error_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with pytest.raises(ExternalCollaboratorError) as exc_info:
        await client_for(handler).get_latest_reply("conv-1")
    assert "503" in str(exc_info.value)


async def test_invalid_body_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["not", "a", "run"])

    with pytest.raises(ExternalCollaboratorError):
        await client_for(handler).get_latest_reply("conv-1")


async def test_poll_timeout():
    """Test a run that never completes fails after the caller's timeout"""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "in_progress"})

    client = AssistantClient(
        base_url="http://assistant.test",
        poll_interval=0.01,
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(ExternalCollaboratorError):
        await client.get_latest_reply("conv-1", timeout=0.05)


async def test_sends_bearer_token_when_configured():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"status": "completed", "reply": "ok"})

    await client_for(handler, api_key="secret-key").get_latest_reply("conv-1")

    assert seen["auth"] == "Bearer secret-key"
