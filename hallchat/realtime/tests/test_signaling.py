import pytest

from hallchat.realtime.events import calls
from hallchat.realtime.exceptions import CallAlreadyActive
from hallchat.realtime.exceptions import CalleeUnreachable
from hallchat.realtime.exceptions import NoSuchSession
from hallchat.realtime.exceptions import SelfCall
from hallchat.realtime.hub import RealtimeHub
from hallchat.realtime.signaling import CallSignalingRelay
from hallchat.realtime.signaling import CallState
from hallchat.realtime.tests.utils import FakeClock
from hallchat.realtime.tests.utils import events_by_connection
from hallchat.realtime.tests.utils import names

OFFER = {"type": "offer", "sdp": "v=0 offer"}
ANSWER = {"type": "answer", "sdp": "v=0 answer"}


@pytest.fixture
def call_parties(connect):
    connect("a1", "alice")
    connect("b1", "bob")
    connect("b2", "bob")
    connect("c1", "carol")


@pytest.fixture
def relay(hub, call_parties):
    return hub.relay


def test_initiate_rings_every_callee_device(hub, relay):
    relay.initiate("alice", "bob", OFFER)

    grouped = events_by_connection(hub.outbox.drain())
    assert set(grouped) == {"b1", "b2"}
    for events in grouped.values():
        assert names(events) == [calls.CALL_INCOMING]
        assert events[0].payload == {"fromUserId": "alice", "sessionDescription": OFFER}
    assert relay.state_for("bob", "alice") is CallState.OFFERED


def test_initiate_twice_for_same_pair_is_rejected(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    hub.outbox.drain()

    with pytest.raises(CallAlreadyActive):
        relay.initiate("alice", "bob", OFFER)
    with pytest.raises(CallAlreadyActive):
        relay.initiate("bob", "alice", OFFER)

    assert hub.outbox.drain() == []
    assert relay.active_count() == 1


def test_initiate_to_unreachable_callee(hub, relay):
    with pytest.raises(CalleeUnreachable):
        relay.initiate("alice", "dave", OFFER)
    assert relay.state_for("alice", "dave") is CallState.IDLE


def test_cannot_call_yourself(relay):
    with pytest.raises(SelfCall):
        relay.initiate("alice", "alice", OFFER)


def test_candidates_are_buffered_until_accept_then_flushed_in_order(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    assert relay.relay_candidate("alice", "bob", "cand-1") is False
    assert relay.relay_candidate("alice", "bob", "cand-2") is False
    assert relay.relay_candidate("bob", "alice", "cand-b") is False

    assert events_by_connection(hub.outbox.drain()).get("a1") is None

    relay.accept("bob", "alice", ANSWER)

    grouped = events_by_connection(hub.outbox.drain())
    assert names(grouped["a1"]) == [calls.CALL_ACCEPTED, calls.CALL_CANDIDATE]
    assert grouped["a1"][0].payload == {"fromUserId": "bob", "sessionDescription": ANSWER}
    assert grouped["a1"][1].payload == {"fromUserId": "bob", "candidate": "cand-b"}
    assert [e.payload["candidate"] for e in grouped["b1"]] == ["cand-1", "cand-2"]
    assert grouped["b2"] == grouped["b1"]
    assert relay.state_for("alice", "bob") is CallState.ACTIVE


def test_candidates_flow_directly_once_active(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    relay.accept("bob", "alice", ANSWER)
    hub.outbox.drain()

    assert relay.relay_candidate("bob", "alice", "late") is True
    grouped = events_by_connection(hub.outbox.drain())
    assert set(grouped) == {"a1"}
    assert grouped["a1"][0].payload == {"fromUserId": "bob", "candidate": "late"}


def test_only_the_callee_can_accept(hub, relay):
    relay.initiate("alice", "bob", OFFER)

    with pytest.raises(NoSuchSession):
        relay.accept("alice", "bob", ANSWER)
    with pytest.raises(NoSuchSession):
        relay.accept("carol", "alice", ANSWER)

    assert relay.state_for("alice", "bob") is CallState.OFFERED


def test_accept_twice_is_rejected(relay):
    relay.initiate("alice", "bob", OFFER)
    relay.accept("bob", "alice", ANSWER)

    with pytest.raises(NoSuchSession):
        relay.accept("bob", "alice", ANSWER)


def test_candidate_without_session(relay):
    with pytest.raises(NoSuchSession):
        relay.relay_candidate("alice", "bob", "cand")


def test_end_notifies_peer_and_removes_session(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    relay.accept("bob", "alice", ANSWER)
    hub.outbox.drain()

    relay.end("bob", "alice")

    grouped = events_by_connection(hub.outbox.drain())
    assert set(grouped) == {"a1"}
    assert grouped["a1"][0].payload == {
        "fromUserId": "bob",
        "reason": calls.END_REASON_HANGUP,
    }
    assert relay.active_count() == 0
    with pytest.raises(NoSuchSession):
        relay.end("alice", "bob")


def test_ended_pair_can_call_again(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    relay.end("alice", "bob")

    relay.initiate("bob", "alice", OFFER)
    assert relay.session_for("alice", "bob").caller_id == "bob"


def test_disconnect_ends_call_exactly_once(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    relay.accept("bob", "alice", ANSWER)
    hub.outbox.drain()

    hub.disconnect("a1")

    grouped = events_by_connection(hub.outbox.drain())
    assert set(grouped) == {"b1", "b2"}
    for events in grouped.values():
        assert names(events) == [calls.CALL_ENDED]
        assert events[0].payload["reason"] == calls.END_REASON_DISCONNECTED
    with pytest.raises(NoSuchSession):
        relay.end("bob", "alice")


def test_disconnect_of_one_device_keeps_call_alive(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    relay.accept("bob", "alice", ANSWER)
    hub.outbox.drain()

    hub.disconnect("b2")

    assert hub.outbox.drain() == []
    assert relay.state_for("alice", "bob") is CallState.ACTIVE


def test_calls_with_different_peers_are_independent(hub, relay):
    relay.initiate("alice", "bob", OFFER)
    relay.initiate("carol", "alice", OFFER)
    assert relay.active_count() == 2

    relay.end("alice", "bob")

    assert relay.state_for("alice", "carol") is CallState.OFFERED


def test_unanswered_call_times_out(store, directory):
    clock = FakeClock()
    hub = RealtimeHub(store, directory)
    hub.relay = relay = CallSignalingRelay(
        hub.registry, hub.router, ring_timeout=30, clock=clock
    )
    for cid, uid in (("a1", "alice"), ("b1", "bob")):
        hub.registry.attach(cid)
        hub.registry.announce(cid, uid)

    relay.initiate("alice", "bob", OFFER)
    hub.outbox.drain()

    clock.now += 29
    assert relay.expire_unanswered() == []

    clock.now += 1
    expired = relay.expire_unanswered()

    assert [s.caller_id for s in expired] == ["alice"]
    grouped = events_by_connection(hub.outbox.drain())
    assert grouped["a1"][0].payload == {
        "fromUserId": "bob",
        "reason": calls.END_REASON_TIMEOUT,
    }
    assert grouped["b1"][0].payload == {
        "fromUserId": "alice",
        "reason": calls.END_REASON_TIMEOUT,
    }
    assert relay.active_count() == 0


def test_accepted_call_never_times_out(hub):
    clock = FakeClock()
    relay = CallSignalingRelay(hub.registry, hub.router, ring_timeout=5, clock=clock)
    for cid, uid in (("a1", "alice"), ("b1", "bob")):
        hub.registry.attach(cid)
        hub.registry.announce(cid, uid)
    relay.initiate("alice", "bob", OFFER)
    relay.accept("bob", "alice", ANSWER)

    clock.now += 3600

    assert relay.expire_unanswered() == []
    assert relay.state_for("alice", "bob") is CallState.ACTIVE


def test_ring_timeout_disabled_by_default(relay):
    relay.initiate("alice", "bob", OFFER)
    assert relay.expire_unanswered() == []
