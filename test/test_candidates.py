"""Remote candidate queue: ordering and exactly-once delivery."""

from rtc_signaling.negotiation.candidates import IceCandidateQueue
from rtc_signaling.shared import IceCandidate


def _candidate(n: int) -> IceCandidate:
    return IceCandidate("0", 0, f"candidate:{n} 1 udp 2122260223 10.0.0.{n} 5000{n} typ host")


def test_add_before_start_applies_immediately():
    applied = []
    queue = IceCandidateQueue(applied.append)

    queue.add(_candidate(1))

    assert applied == [_candidate(1)]
    assert not queue.is_queuing


def test_queued_candidates_drain_fifo_exactly_once():
    applied = []
    queue = IceCandidateQueue(applied.append)
    queue.start()

    candidates = [_candidate(n) for n in range(5)]
    for candidate in candidates:
        queue.add(candidate)

    assert applied == []
    assert queue.pending == candidates

    assert queue.drain() == 5
    assert applied == candidates
    assert queue.pending == []
    assert queue.drain() == 0
    assert applied == candidates


def test_add_after_drain_bypasses_queue():
    applied = []
    queue = IceCandidateQueue(applied.append)
    queue.start()
    queue.add(_candidate(1))
    queue.drain()

    queue.add(_candidate(2))

    assert applied == [_candidate(1), _candidate(2)]


def test_reset_discards_without_applying():
    applied = []
    queue = IceCandidateQueue(applied.append)
    queue.start()
    queue.add(_candidate(1))

    queue.reset()

    assert applied == []
    assert queue.drain() == 0


def test_start_begins_fresh_round():
    applied = []
    queue = IceCandidateQueue(applied.append)
    queue.start()
    queue.add(_candidate(1))
    queue.start()

    assert queue.pending == []
