import asyncio

from strangerchat.core import ChatService
from strangerchat.rooms import REASON_EXPIRED


class PrintNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, participant_id, event):
        self.sent.append((participant_id, event))
        print(f"-> {participant_id}: {event.model_dump_json()}")

    def broadcast(self, participant_ids, event):
        for pid in participant_ids:
            self.notify(pid, event)

    def broadcast_all(self, event):
        self.notify("*", event)


async def main():
    now = [1000.0]
    notifier = PrintNotifier()
    chat = ChatService(notifier, clock=lambda: now[0], room_max_age_seconds=3600)

    await chat.connect("peer1")
    await chat.connect("peer2")
    await chat.find_match("peer1", "cat", "One")
    room = await chat.find_match("peer2", "dog", "Two")
    assert room is not None, "Peers should be paired"

    # Keep the conversation busy right up to the limit
    now[0] += 3600
    await chat.send_message("peer1", room.room_id, "still here")
    if await chat.reap():
        raise SystemExit("FAIL: Room reaped before exceeding max age")
    print("OK: Room kept at exactly max age")

    now[0] += 1
    reaped = await chat.reap()
    if reaped != [room.room_id]:
        raise SystemExit(f"FAIL: Expected {room.room_id} to be reaped, got {reaped}")
    ended = [e for _, e in notifier.sent if e.type == "chatEnded"]
    if len(ended) != 2 or any(e.reason != REASON_EXPIRED for e in ended):
        raise SystemExit("FAIL: Both members should be told the chat expired")
    if await chat.reap():
        raise SystemExit("FAIL: Room reaped twice")
    print("OK: Room reaped once after max age, despite recent activity")

if __name__ == "__main__":
    asyncio.run(main())
