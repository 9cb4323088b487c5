"""Tests for progress fan-out and the JSONL progress sink."""
import asyncio

from enforcement_scraper.jobs.progress import ProgressBroadcaster, ProgressEvent
from enforcement_scraper.parse.models import Agency


def event(session_id, page=1, **counts):
    return ProgressEvent(session_id=session_id, agency=Agency.HSE, page=page, status="running", **counts)


def test_events_reach_session_and_global_subscribers(tmp_path):
    broadcaster = ProgressBroadcaster(sink_path=tmp_path / "progress.jsonl")

    async def scenario():
        mine = broadcaster.subscribe("s1")
        other = broadcaster.subscribe("s2")
        everything = broadcaster.subscribe()
        await broadcaster.publish(event("s1", found=3, created=3))
        return mine.qsize(), other.qsize(), everything.qsize(), mine.get_nowait()

    mine, other, everything, received = asyncio.run(scenario())
    assert (mine, other, everything) == (1, 0, 1)
    assert received.created == 3


def test_full_subscriber_drops_events_without_blocking(tmp_path):
    """A slow subscriber loses events; publishing never waits on it."""
    broadcaster = ProgressBroadcaster(maxsize=2, sink_path=tmp_path / "progress.jsonl")

    async def scenario():
        queue = broadcaster.subscribe("s1")
        for page in range(1, 6):
            await broadcaster.publish(event("s1", page=page))
        return queue.qsize()

    assert asyncio.run(scenario()) == 2
    assert broadcaster.dropped == 3


def test_unsubscribed_queue_gets_nothing():
    broadcaster = ProgressBroadcaster(sink_path=None)

    async def scenario():
        queue = broadcaster.subscribe("s1")
        broadcaster.unsubscribe(queue, "s1")
        await broadcaster.publish(event("s1"))
        return queue.qsize()

    assert asyncio.run(scenario()) == 0


def test_tail_reads_back_latest_events(tmp_path):
    sink = tmp_path / "progress.jsonl"
    broadcaster = ProgressBroadcaster(sink_path=sink)

    async def scenario():
        for page in range(1, 4):
            await broadcaster.publish(event("s1", page=page))
        await broadcaster.publish(event("s2", page=9))
        return await broadcaster.tail(limit=2, session_id="s1"), await broadcaster.tail()

    latest, everything = asyncio.run(scenario())
    assert [e["page"] for e in latest] == [2, 3]
    assert len(everything) == 4
    assert everything[-1]["session_id"] == "s2"


def test_tail_without_sink_is_empty(tmp_path):
    assert asyncio.run(ProgressBroadcaster(sink_path=tmp_path / "missing.jsonl").tail()) == []
