import pytest

from bizpulse.logic.analytics import AnalyticsService
from bizpulse.realtime import AnalyticsBroadcaster, refresh_subscribers


@pytest.mark.asyncio
async def test_publish_reaches_only_that_users_queues():
    hub = AnalyticsBroadcaster()
    mine = hub.subscribe("u1")
    theirs = hub.subscribe("u2")

    assert await hub.publish("u1", {"n": 1}) == 1
    assert mine.get_nowait() == {"n": 1}
    assert theirs.empty()

    hub.unsubscribe("u1", mine)
    assert hub.users() == ["u2"]


@pytest.mark.asyncio
async def test_slow_consumer_drops_oldest():
    hub = AnalyticsBroadcaster(queue_size=2)
    queue = hub.subscribe("u1")
    for n in range(3):
        await hub.publish("u1", {"n": n})
    assert [queue.get_nowait()["n"] for _ in range(2)] == [1, 2]


@pytest.mark.asyncio
async def test_refresh_pushes_overview(seeded_repo, today):
    hub = AnalyticsBroadcaster()
    queue = hub.subscribe("u-premium")
    hub.subscribe("ghost")

    published = await refresh_subscribers(hub, AnalyticsService(seeded_repo), today=today)

    assert published == 1
    payload = queue.get_nowait()
    assert payload["type"] == "overview"
    assert payload["data"]["total_views"] == 5
    assert payload["data"]["period_end"] == "2024-06-30"
