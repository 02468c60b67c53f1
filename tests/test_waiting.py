from strangerchat.waiting import WaitingQueue


async def _noop(entry):
    pass


def test_candidates_keep_insertion_order(scheduler, clock):
    queue = WaitingQueue(scheduler, clock)
    for pid in ("c", "a", "b"):
        queue.enqueue(pid, _noop)
    assert queue.candidates() == ["c", "a", "b"]


def test_enqueue_records_timestamp_and_timer(scheduler, clock):
    queue = WaitingQueue(scheduler, clock, timeout_seconds=30)
    entry = queue.enqueue("a", _noop)
    assert entry.enqueued_at == clock.now
    assert scheduler.pending[0].due == clock.now + 30


def test_remove_cancels_timer(scheduler, clock):
    queue = WaitingQueue(scheduler, clock)
    entry = queue.enqueue("a", _noop)
    timer = entry.timer
    assert queue.remove("a") is True
    assert timer.cancelled
    assert "a" not in queue


def test_remove_absent_is_noop(scheduler, clock):
    queue = WaitingQueue(scheduler, clock)
    assert queue.remove("ghost") is False
    assert len(queue) == 0


def test_reenqueue_replaces_entry_and_cancels_old_timer(scheduler, clock):
    queue = WaitingQueue(scheduler, clock)
    first = queue.enqueue("a", _noop)
    old_timer = first.timer
    second = queue.enqueue("a", _noop)
    assert old_timer.cancelled
    assert queue.get("a") is second
    assert queue.expire(first) is False
    assert queue.expire(second) is True
    assert len(queue) == 0


async def test_timeout_callback_receives_its_entry(scheduler, clock):
    fired = []

    async def on_timeout(entry):
        fired.append(entry.participant_id)
        queue.expire(entry)

    queue = WaitingQueue(scheduler, clock, timeout_seconds=30)
    queue.enqueue("a", on_timeout)
    await scheduler.advance(29)
    assert fired == []
    await scheduler.advance(1)
    assert fired == ["a"]
    assert "a" not in queue
