"""Unit tests for the side-panel assistant services"""

import pytest
from unittest.mock import AsyncMock
from settlement_gateway.domain.exceptions import ExternalCollaboratorError
from settlement_gateway.services.assistant import (
    CONNECTION_ERROR_TEXT,
    AssistantMessageService,
    AssistantOrchestrator,
    AssistantResponseService,
    AssistantStorageService,
)
from settlement_gateway.services.sessions import InMemorySessionStore


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def assistant(store, fixed_clock) -> AssistantOrchestrator:
    return AssistantOrchestrator(
        storage=AssistantStorageService(store),
        messages=AssistantMessageService(clock=fixed_clock),
        client=AsyncMock(),
    )


async def test_send_message_uses_canned_reply(assistant):
    messages = await assistant.send_message("s1", "It pays every month", flow_type="guaranteed", step="payment-mode")

    assert [m.sender for m in messages] == ["user", "assistant"]
    assert messages[1].text.startswith("Great! Monthly payments are very common")
    assert messages[1].is_bot


async def test_send_message_fetches_reply_by_handle(assistant):
    assistant.client.get_latest_reply.return_value = "Sure, happy to explain."

    messages = await assistant.send_message("s1", "why?", conversation_handle="conv-9")

    assert messages[-1].text == "Sure, happy to explain."
    assistant.client.get_latest_reply.assert_awaited_once_with("conv-9")


async def test_collaborator_failure_stores_error_message(assistant):
    """Test a failed fetch is recorded as a connection error instead of raising"""
    assistant.client.get_latest_reply.side_effect = ExternalCollaboratorError("run failed")

    messages = await assistant.send_message("s1", "why?", conversation_handle="conv-9")

    assert messages[-1].text == CONNECTION_ERROR_TEXT
    assert messages[-1].is_error
    assert len(assistant.get_messages("s1")) == 2


async def test_blank_message_ignored(assistant):
    assert await assistant.send_message("s1", "   ") == []


def test_welcome_message_added_once(assistant):
    first = assistant.add_welcome_message("s1", flow_type="lcp")
    second = assistant.add_welcome_message("s1", flow_type="lcp")

    assert len(first) == len(second) == 1
    assert first[0].is_welcome
    assert "Life-Contingent" in first[0].text


def test_transcript_stored_under_namespace(assistant, store):
    assistant.add_welcome_message("s1")

    assert store.get("assistant:s1") is not None
    assert store.get("s1") is None

    assistant.clear_messages("s1")
    assert assistant.get_messages("s1") == []


def test_unknown_flow_reply_echoes_input():
    reply = AssistantResponseService().reply("  hello  ", None, None)
    assert 'you said: "hello"' in reply


@pytest.mark.parametrize(
    "text,expected",
    [
        ("do I need to say if I smoke?", "Smoking status"),
        ("why my age?", "age and gender"),
        ("what else?", "body frame"),
    ],
)
def test_lcp_questionnaire_replies(text, expected):
    assert expected in AssistantResponseService().reply(text, "lcp", "life-contingent")
