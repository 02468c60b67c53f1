import pytest

from strangerchat.connections import ConnectionRegistry
from strangerchat.rooms import REASON_EXPIRED, RoomRegistry


@pytest.fixture
def registry():
    connections = ConnectionRegistry()
    for pid in ("a", "b", "c"):
        connections.register(pid, avatar=f"{pid}-avatar", nickname=pid.upper())
    return connections


@pytest.fixture
def rooms(registry, notifier, clock, room_ids):
    return RoomRegistry(registry, notifier, clock, room_ids)


def test_create_assigns_both_members(rooms, registry, clock):
    room = rooms.create("a", "b")
    assert room.members == ("a", "b")
    assert room.created_at == clock.now
    assert registry.get("a").room_id == room.room_id
    assert registry.get("b").room_id == room.room_id


def test_create_rejects_single_member(rooms):
    with pytest.raises(ValueError):
        rooms.create("a", "a")


def test_terminated_room_is_gone_for_later_lookups(rooms, notifier):
    room = rooms.create("a", "b")
    rooms.terminate(room.room_id)
    notifier.clear()

    assert rooms.get(room.room_id) is None
    assert rooms.partner_of(room.room_id, "a") is None
    assert rooms.relay(room.room_id, "a", "hello?") is False
    assert rooms.set_typing(room.room_id, "b", True) is False
    assert rooms.leave("a", room.room_id) is False
    assert rooms.terminate(room.room_id) is False
    assert notifier.sent == []
    assert rooms.create("a", "c").room_id != room.room_id


def test_room_id_collision_with_active_room_is_retried(registry, notifier, clock):
    ids = iter(["dup", "dup", "fresh"])
    registry.register("d")
    rooms = RoomRegistry(registry, notifier, clock, lambda: next(ids))
    rooms.create("a", "b")
    assert rooms.create("c", "d").room_id == "fresh"


def test_relay_reaches_only_the_partner(rooms, notifier, clock):
    room = rooms.create("a", "b")
    assert rooms.relay(room.room_id, "a", "hello") is True
    [(pid, event)] = notifier.sent
    assert pid == "b"
    assert event.type == "newMessage"
    assert event.content == "hello"
    assert event.sender == "partner"
    assert event.timestamp.timestamp() == clock.now


def test_relay_message_ids_increase(rooms, notifier):
    room = rooms.create("a", "b")
    rooms.relay(room.room_id, "a", "one")
    rooms.relay(room.room_id, "b", "two")
    ids = [e.id for _, e in notifier.sent]
    assert ids == sorted(ids) and len(set(ids)) == 2


def test_relay_from_non_member_is_dropped(rooms, notifier):
    room = rooms.create("a", "b")
    assert rooms.relay(room.room_id, "c", "sneaky") is False
    assert rooms.relay("missing", "a", "hello") is False
    assert notifier.sent == []


def test_typing_goes_to_partner(rooms, notifier):
    room = rooms.create("a", "b")
    assert rooms.set_typing(room.room_id, "b", True) is True
    assert rooms.set_typing(room.room_id, "c", True) is False
    [(pid, event)] = notifier.sent
    assert pid == "a" and event.isTyping is True


def test_leave_deletes_room_and_notifies_partner(rooms, registry, notifier):
    room = rooms.create("a", "b")
    assert rooms.leave("a", room.room_id) is True
    assert rooms.get(room.room_id) is None
    assert len(rooms) == 0
    assert registry.get("a").room_id is None
    assert registry.get("b").room_id is None
    assert [(pid, e.type) for pid, e in notifier.sent] == [("b", "partnerDisconnected")]


def test_leave_by_non_member_is_noop(rooms, notifier):
    room = rooms.create("a", "b")
    assert rooms.leave("c", room.room_id) is False
    assert rooms.get(room.room_id) is room
    assert notifier.sent == []


def test_terminate_notifies_connected_members(rooms, registry, notifier):
    room = rooms.create("a", "b")
    registry.remove("b")
    assert rooms.terminate(room.room_id, "bye") is True
    assert [(pid, e.type, e.reason) for pid, e in notifier.sent] == [("a", "chatEnded", "bye")]
    assert registry.get("a").room_id is None
    assert rooms.terminate(room.room_id, "bye") is False


def test_reap_uses_creation_age_only(rooms, clock, notifier):
    # current behaviour: an ongoing conversation is still cut off at max age
    old = rooms.create("a", "b")
    clock.now += 3000
    rooms.relay(old.room_id, "a", "still chatting")
    clock.now += 601
    notifier.clear()
    assert rooms.reap(3600) == [old.room_id]
    assert [(pid, e.reason) for pid, e in notifier.of_type("chatEnded")] == [
        ("a", REASON_EXPIRED), ("b", REASON_EXPIRED)]


def test_reap_keeps_rooms_at_exact_max_age(rooms, clock):
    room = rooms.create("a", "b")
    clock.now += 3600
    assert rooms.reap(3600) == []
    assert rooms.get(room.room_id) is room
