import pytest
from conftest import FakeRecords, ScriptedCompletionClient, final, requested, tool_call

from chat_agent.infrastructure.data_models import MessageStoreError, SessionKey
from chat_agent.services.chat_service import ChatService, UnknownAssistantError
from chat_agent.services.message_log import InMemoryMessageStore
from chat_agent.services.renderer_service import render_prompt
from chat_agent.services.session_service import derive_title, get_session_with_messages


def _service(store: InMemoryMessageStore, client: ScriptedCompletionClient, records: FakeRecords | None = None) -> ChatService:
    return ChatService(store, client, records or FakeRecords())  # type: ignore[arg-type]


def test_derive_title() -> None:
    assert derive_title("Short question") == "Short question"
    exact = "x" * 50
    assert derive_title(exact) == exact
    long = "y" * 51
    assert derive_title(long) == "y" * 47 + "..."
    assert len(derive_title(long)) == 50


def test_render_prompt_fills_placeholders() -> None:
    prompt = render_prompt("marketing", {"company_name": "Acme", "industry": None})

    assert "Company: Acme" in prompt
    assert "Industry: Not specified" in prompt
    assert "${today}" not in prompt


async def test_turn_sets_title_once_and_persists(store: InMemoryMessageStore, session_key: SessionKey) -> None:
    client = ScriptedCompletionClient([final("Three briefings are pending."), final("Two were sent.")])
    service = _service(store, client)

    first = await service.submit_turn("operations", session_key, "How many briefings are pending today?")
    await service.submit_turn("operations", session_key, "And how many were sent?")

    assert first.text == "Three briefings are pending."
    info = await store.get_session(session_key)
    assert info is not None and info.title == "How many briefings are pending today?"
    messages = await store.list(session_key)
    assert [m.role for m in messages] == ["user", "assistant", "user", "assistant"]
    # The second turn sees the first turn's history behind the system prompt
    second_call = client.calls[1]["messages"]
    assert second_call[0].role == "system"
    assert [m.content for m in second_call[1:]] == [
        "How many briefings are pending today?",
        "Three briefings are pending.",
        "And how many were sent?",
    ]


async def test_marketing_turn_uses_tenant_profile(store: InMemoryMessageStore, session_key: SessionKey) -> None:
    records = FakeRecords({"tenants": [{"name": "Acme Bakery", "settings": {"industry": "food"}}]})
    client = ScriptedCompletionClient([
        requested(tool_call("generate_ad_copy", '{"platform": "meta", "goal": "spring sale"}')),
        final("Here is your ad."),
    ])

    result = await _service(store, client, records).submit_turn("marketing", session_key, "Write a Meta ad")

    assert result.text == "Here is your ad."
    system_prompt = client.calls[0]["messages"][0].content
    assert "Company: Acme Bakery" in system_prompt
    tool_msg = (await store.list(session_key))[2]
    assert "Acme Bakery" in tool_msg.content


async def test_unknown_assistant_and_blank_message(store: InMemoryMessageStore, session_key: SessionKey) -> None:
    service = _service(store, ScriptedCompletionClient([]))

    with pytest.raises(UnknownAssistantError):
        await service.submit_turn("support", session_key, "hi")
    with pytest.raises(ValueError):
        await service.submit_turn("operations", session_key, "   ")
    assert await store.list(session_key) == []


async def test_title_failure_does_not_fail_the_turn(session_key: SessionKey) -> None:
    class NoTitles(InMemoryMessageStore):
        async def set_title(self, key: SessionKey, title: str) -> None:
            raise MessageStoreError("title write failed")

    store = NoTitles()
    result = await _service(store, ScriptedCompletionClient([final("ok")])).submit_turn(
        "operations", session_key, "hi"
    )

    assert result.text == "ok"


async def test_session_view_hides_tool_traffic(store: InMemoryMessageStore, session_key: SessionKey) -> None:
    client = ScriptedCompletionClient([requested(tool_call("get_lead_metrics")), final("12 leads.")])
    await _service(store, client).submit_turn("operations", session_key, "Lead count?")

    session = await get_session_with_messages(store, session_key)

    assert session is not None
    assert session["messages"] == [
        {"role": "user", "content": "Lead count?"},
        {"role": "assistant", "content": "12 leads."},
    ]
