from datetime import datetime, timedelta, timezone

import pytest

from chathub.models import (
    AgentDataPayload,
    AgentResponsePayload,
    ChatPayload,
    MessageKind,
    RegisterPayload,
)
from chathub.services import ConnectionState, HistoryBuffer, IdentityRegistry, MessageRouter


@pytest.fixture
def router(memory, outbound):
    return MessageRouter(IdentityRegistry(), HistoryBuffer(capacity=100), memory, outbound)


async def _register(router, handle, username, kind="human", **extra):
    router.connect(handle)
    return await router.register(handle, RegisterPayload(username=username, type=kind, **extra))


@pytest.mark.asyncio
async def test_register_sends_history_and_session_then_announces_join(router, outbound):
    await _register(router, "ann", "Ann")

    assert outbound.received("ann", "history") == [[]]
    assert outbound.received("ann", "session_id") == ["test-session"]
    joins = outbound.of("message")
    assert len(joins) == 1
    assert joins[0].skip_sid == "ann"
    assert joins[0].data["type"] == "join"
    assert joins[0].data["content"] == "Ann (human) joined the chat"
    assert joins[0].data["metadata"]["joinedUser"] == "Ann"
    assert router.state_of("ann") is ConnectionState.REGISTERED


@pytest.mark.asyncio
async def test_blank_username_gets_generated_default(router):
    participant = await _register(router, "abcdef123", "   ")
    assert participant.username == "human-abcdef"


@pytest.mark.asyncio
async def test_second_register_on_same_connection_is_dropped(router, outbound):
    await _register(router, "ann", "Ann")
    outbound.clear()

    assert await router.register("ann", RegisterPayload(username="Impostor")) is None
    assert outbound.emissions == []


@pytest.mark.asyncio
async def test_chat_broadcasts_records_and_ingests(router, memory, outbound):
    await _register(router, "ann", "Ann")
    outbound.clear()

    message = await router.chat("ann", ChatPayload(content="hello", metadata={"mood": "sunny"}))
    await router.drain()

    broadcasts = outbound.of("message")
    assert len(broadcasts) == 1 and broadcasts[0].to is None and broadcasts[0].skip_sid is None
    wire = broadcasts[0].data
    assert wire["type"] == "chat" and wire["username"] == "Ann" and wire["content"] == "hello"
    assert wire["metadata"]["userId"] == "ann"
    assert wire["metadata"]["userType"] == "human"
    assert wire["metadata"]["mood"] == "sunny"
    assert "timestamp" in wire["metadata"]
    assert message.id == wire["id"]
    assert memory.ingested == [("Ann", "hello")]


@pytest.mark.asyncio
async def test_client_metadata_cannot_override_timestamp(router):
    await _register(router, "ann", "Ann")
    message = await router.chat("ann", ChatPayload(content="hi", metadata={"timestamp": "1999-01-01T00:00:00Z"}))
    assert message.timestamp.year != 1999


@pytest.mark.asyncio
async def test_events_from_unregistered_connection_are_dropped(router, memory, outbound):
    router.connect("ghost")

    assert await router.chat("ghost", ChatPayload(content="boo")) is None
    assert await router.agent_response("ghost", AgentResponsePayload(response="boo")) is None
    assert await router.agent_data("ghost", AgentDataPayload(broadcast=True)) is None
    await router.drain()

    assert outbound.emissions == []
    assert memory.ingested == []


@pytest.mark.asyncio
async def test_events_after_disconnect_are_dropped(router, outbound):
    await _register(router, "ann", "Ann")
    await router.disconnect("ann")
    outbound.clear()

    assert await router.chat("ann", ChatPayload(content="still here?")) is None
    assert await router.register("ann", RegisterPayload(username="Ann")) is None
    assert outbound.emissions == []
    assert router.state_of("ann") is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_humans_cannot_send_agent_only_events(router, outbound):
    await _register(router, "ann", "Ann")
    outbound.clear()

    assert await router.agent_response("ann", AgentResponsePayload(response="I am a bot")) is None
    assert await router.agent_data("ann", AgentDataPayload(broadcast=True, dataType="x")) is None
    assert outbound.emissions == []


@pytest.mark.asyncio
async def test_disconnect_broadcasts_leave_and_removes_peer(router, memory, outbound):
    await _register(router, "ann", "Ann")
    outbound.clear()

    participant = await router.disconnect("ann")
    await router.drain()

    assert participant.username == "Ann"
    leave = outbound.of("message")[0].data
    assert leave["type"] == "leave"
    assert leave["content"] == "Ann (human) left the chat"
    assert memory.called("remove_peer") == [("Ann",)]
    assert await router.disconnect("ann") is None


@pytest.mark.asyncio
async def test_agents_get_side_channel_for_chat_except_originator(router, outbound):
    await _register(router, "ann", "Ann")
    await _register(router, "bot1", "Socrates", kind="agent")
    await _register(router, "bot2", "Plato", kind="agent")
    outbound.clear()

    await router.chat("bot1", ChatPayload(content="Why?"))

    notices = outbound.of("agent_event")
    assert [notice.to for notice in notices] == ["bot2"]
    notice = notices[0].data
    assert notice["eventType"] == "chat_message"
    assert notice["message"]["content"] == "Why?"
    assert notice["context"]["totalUsers"] == 1
    assert notice["context"]["totalAgents"] == 2
    assert notice["context"]["recentHistory"][-1]["content"] == "Why?"


@pytest.mark.asyncio
async def test_side_channel_context_is_capped(memory, outbound):
    router = MessageRouter(IdentityRegistry(), HistoryBuffer(capacity=100), memory, outbound, agent_context_size=10)
    await _register(router, "ann", "Ann")
    await _register(router, "bot", "Socrates", kind="agent")
    for index in range(15):
        await router.chat("ann", ChatPayload(content=f"m{index}"))

    last_notice = outbound.of("agent_event")[-1].data
    assert len(last_notice["context"]["recentHistory"]) == 10


@pytest.mark.asyncio
async def test_agent_data_broadcast_goes_to_everyone_and_history(router, outbound):
    await _register(router, "ann", "Ann")
    await _register(router, "bot", "Socrates", kind="agent")
    await _register(router, "bot2", "Plato", kind="agent")
    outbound.clear()

    message = await router.agent_data(
        "bot",
        AgentDataPayload(content="chart", dataType="chart", processedData={"x": 1}, broadcast=True),
    )

    broadcasts = outbound.of("message")
    assert len(broadcasts) == 1 and broadcasts[0].to is None
    assert broadcasts[0].data["metadata"]["dataType"] == "chart"
    assert broadcasts[0].data["metadata"]["processedData"] == {"x": 1}
    assert router._history.recent(1)[0].id == message.id
    assert [notice.to for notice in outbound.of("agent_event")] == ["bot2"]
    assert outbound.of("agent_event")[0].data["eventType"] == "agent_data"


@pytest.mark.asyncio
async def test_agent_data_targets_only_listed_connected_handles(router, outbound):
    await _register(router, "ann", "Ann")
    await _register(router, "bob", "Bob")
    await _register(router, "bot", "Socrates", kind="agent")
    history_size = len(router._history)
    outbound.clear()

    await router.agent_data("bot", AgentDataPayload(content="psst", dataType="note", targets=["bob", "gone"]))

    deliveries = outbound.of("message")
    assert [delivery.to for delivery in deliveries] == ["bob"]
    assert len(router._history) == history_size


@pytest.mark.asyncio
async def test_agent_data_to_missing_target_delivers_nothing(router, outbound):
    await _register(router, "bot", "Socrates", kind="agent")
    outbound.clear()

    await router.agent_data("bot", AgentDataPayload(content="psst", dataType="note", targets=["X"]))

    assert outbound.of("message") == []


@pytest.mark.asyncio
async def test_agent_response_broadcasts_and_ingests(router, memory, outbound):
    await _register(router, "bot", "Socrates", kind="agent")
    outbound.clear()

    await router.agent_response(
        "bot",
        AgentResponsePayload(response="Know thyself", responseType="advice", confidence=0.9, referencedMessage="m1"),
    )
    await router.drain()

    wire = outbound.of("message")[0].data
    assert wire["type"] == "agent_response"
    assert wire["metadata"]["responseType"] == "advice"
    assert wire["metadata"]["confidence"] == 0.9
    assert wire["metadata"]["referencedMessage"] == "m1"
    assert outbound.of("agent_event") == []
    assert ("Socrates", "Know thyself") in memory.ingested


@pytest.mark.asyncio
async def test_ingestion_failure_does_not_block_delivery(router, memory, outbound):
    memory.fail_ingest = True
    await _register(router, "ann", "Ann")
    outbound.clear()

    message = await router.chat("ann", ChatPayload(content="hello"))
    await router.drain()

    assert message is not None
    assert outbound.of("message")[0].data["content"] == "hello"
    assert router._history.recent(1)[0].content == "hello"


@pytest.mark.asyncio
async def test_peer_registration_failure_keeps_participant(router, memory):
    memory.fail_register = True
    participant = await _register(router, "ann", "Ann")
    await router.drain()

    assert router._registry.lookup("ann") is participant


@pytest.mark.asyncio
async def test_agents_join_memory_as_observers(router, memory):
    await _register(router, "bot", "Socrates", kind="agent")
    await router.drain()

    assert memory.called("register_peer") == [("Socrates", False, True)]


@pytest.mark.asyncio
async def test_stored_observation_preference_is_preserved(router, memory):
    memory.stored_configs["Ann"] = {"observe_me": False}
    participant = await _register(router, "ann", "Ann")
    assert participant.observe_me is True
    await router.drain()

    assert memory.called("register_peer") == [("Ann", None, False)]
    assert participant.observe_me is False


@pytest.mark.asyncio
async def test_explicit_observation_preference_wins(router, memory):
    memory.stored_configs["Ann"] = {"observe_me": True}
    participant = await _register(router, "ann", "Ann", observe_me=False)
    await router.drain()

    assert memory.called("register_peer") == [("Ann", False, False)]
    assert participant.observe_me is False


@pytest.mark.asyncio
async def test_timestamps_never_go_backwards(memory, outbound):
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    ticks = iter([base, base - timedelta(seconds=5), base + timedelta(seconds=1)])
    router = MessageRouter(
        IdentityRegistry(), HistoryBuffer(capacity=10), memory, outbound, clock=lambda: next(ticks)
    )
    await _register(router, "ann", "Ann")
    await router.chat("ann", ChatPayload(content="one"))
    await router.chat("ann", ChatPayload(content="two"))

    stamps = [event.timestamp for event in router._history]
    assert stamps == sorted(stamps)


@pytest.mark.asyncio
async def test_chat_invokes_on_chat_hook(memory, outbound):
    calls = []
    router = MessageRouter(
        IdentityRegistry(), HistoryBuffer(capacity=10), memory, outbound, on_chat=lambda: calls.append(1)
    )
    await _register(router, "ann", "Ann")
    await router.chat("ann", ChatPayload(content="hi"))

    assert calls == [1]
    assert router._history.recent(1)[0].kind is MessageKind.CHAT


@pytest.mark.asyncio
async def test_connection_churn_keeps_bounded_state(memory, outbound):
    registry = IdentityRegistry()
    router = MessageRouter(registry, HistoryBuffer(capacity=100), memory, outbound, closed_handle_limit=50)

    for index in range(1000):
        await _register(router, f"sid-{index}", f"user{index}")
        await router.disconnect(f"sid-{index}")
    await router.drain()

    assert len(registry) == 0
    assert router._states == {}
    assert len(router._closed) == 50


@pytest.mark.asyncio
async def test_recently_closed_connection_still_drops_late_events(memory, outbound):
    router = MessageRouter(IdentityRegistry(), HistoryBuffer(capacity=10), memory, outbound, closed_handle_limit=2)
    await _register(router, "ann", "Ann")
    await router.disconnect("ann")
    router.connect("ann")

    assert router.state_of("ann") is ConnectionState.DISCONNECTED
    assert await router.register("ann", RegisterPayload(username="Ann")) is None

    for handle in ("b", "c"):
        router.connect(handle)
        await router.disconnect(handle)
    assert router.state_of("ann") is ConnectionState.UNREGISTERED
