import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from bizpulse.api.main import app, get_broadcaster, get_engine
from bizpulse.logic import export_csv
from bizpulse.realtime import AnalyticsBroadcaster


@pytest.fixture()
def api(seeded_engine):
    app.dependency_overrides[get_engine] = lambda: seeded_engine
    yield AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    app.dependency_overrides.clear()


def _as(user_id):
    return {"X-User-Id": user_id}


@pytest.mark.asyncio
async def test_overview(api):
    async with api as client:
        response = await client.get("/analytics/overview", headers=_as("u-premium"))
    assert response.status_code == 200
    body = response.json()
    assert [b["business_name"] for b in body["businesses"]] == ["Harbour Coffee", "Lagoon Bakery"]
    assert body["has_advanced_analytics"] is True
    assert len(body["views_series"]) == 30


@pytest.mark.asyncio
async def test_error_kinds_map_to_status_codes(api):
    async with api as client:
        missing_header = await client.get("/analytics/overview")
        unknown = await client.get("/analytics/overview", headers=_as("ghost"))
        free = await client.get("/analytics/overview", headers=_as("u-free"))
        foreign = await client.get("/analytics/businesses/4", headers=_as("u-premium"))
        absent = await client.get("/analytics/businesses/999", headers=_as("u-premium"))
        bad_days = await client.get("/analytics/views", params={"days": 0}, headers=_as("u-premium"))

    assert missing_header.status_code == 400
    assert missing_header.json()["detail"]["code"] == "USER_REQUIRED"
    assert unknown.status_code == 404
    assert free.status_code == 403
    assert foreign.status_code == 403
    assert foreign.json()["detail"]["code"] == "ACCESS_DENIED"
    assert absent.status_code == 404
    assert bad_days.status_code == 400
    assert bad_days.json()["detail"]["field"] == "days"


@pytest.mark.asyncio
async def test_charts_and_series(api):
    async with api as client:
        views = await client.get("/analytics/charts/views", params={"days": 7, "platform": "Web"}, headers=_as("u-basic"))
        reviews = await client.get("/analytics/reviews", params={"days": 14}, headers=_as("u-basic"))
    assert views.status_code == 200
    assert len(views.json()["labels"]) == 7
    assert views.json()["datasets"][0]["borderColor"] == "#33658a"
    assert len(reviews.json()) == 14


@pytest.mark.asyncio
async def test_compare_and_tier_gate(api):
    async with api as client:
        premium = await client.post(
            "/analytics/compare", json={"comparison_type": "WeekOverWeek"}, headers=_as("u-premium")
        )
        basic = await client.post(
            "/analytics/compare", json={"comparison_type": "WeekOverWeek"}, headers=_as("u-basic")
        )
        invalid = await client.post(
            "/analytics/compare", json={"comparison_type": "Sideways"}, headers=_as("u-premium")
        )
    assert premium.status_code == 200
    assert premium.json()["metrics"]["key_changes"]
    assert basic.status_code == 403
    assert invalid.status_code == 400


@pytest.mark.asyncio
async def test_compare_unknown_platform_is_bad_request(api):
    async with api as client:
        response = await client.post(
            "/analytics/compare",
            json={"comparison_type": "WeekOverWeek", "platform": "Telex"},
            headers=_as("u-premium"),
        )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_PLATFORM"


@pytest.mark.asyncio
async def test_business_endpoints(api):
    async with api as client:
        detail = await client.get("/analytics/businesses/1", headers=_as("u-premium"))
        growth = await client.get("/analytics/businesses/1/growth", params={"current_days": 7}, headers=_as("u-premium"))
        trends = await client.get("/analytics/businesses/1/trends", params={"aggregation": "monthly"}, headers=_as("u-premium"))
    assert detail.status_code == 200
    assert detail.json()["growth"]["business_id"] == 1
    assert growth.status_code == 200
    assert trends.json() == []


@pytest.mark.asyncio
async def test_benchmarks_and_competitors(api):
    async with api as client:
        bakery = await client.get("/analytics/benchmarks", params={"category": "Bakery"}, headers=_as("u-premium"))
        competitors = await client.get("/analytics/competitors", headers=_as("u-premium"))
    assert bakery.status_code == 200
    assert bakery.json() is None
    assert [c["business_id"] for c in competitors.json()] == [1]


@pytest.mark.asyncio
async def test_share_and_resolve(api, monkeypatch):
    monkeypatch.setenv("SIGNING_SECRET", "api-secret")
    async with api as client:
        created = await client.post(
            "/analytics/share", json={"dashboard_type": "Business", "business_id": 1}, headers=_as("u-premium")
        )
        shared = await client.get(created.json()["url"])
        tampered = await client.get("/shared/not-a-token")
    assert created.status_code == 200
    assert shared.status_code == 200
    assert shared.json()["data"]["business_name"] == "Harbour Coffee"
    assert tampered.status_code == 403


@pytest.mark.asyncio
async def test_export_csv_download(api, tmp_path, monkeypatch):
    monkeypatch.setattr(export_csv, "OUTPUT_DIR", tmp_path)
    async with api as client:
        response = await client.get("/analytics/export.csv", headers=_as("u-premium"))
        denied = await client.get("/analytics/export.csv", headers=_as("u-basic"))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "Harbour Coffee" in response.text
    assert denied.status_code == 403


class PrimedBroadcaster(AnalyticsBroadcaster):
    def subscribe(self, user_id):
        queue = super().subscribe(user_id)
        queue.put_nowait({"type": "overview", "data": {"user_id": user_id}})
        return queue


def test_websocket_forwards_updates_and_unsubscribes_on_close():
    hub = PrimedBroadcaster()
    app.dependency_overrides[get_broadcaster] = lambda: hub
    try:
        client = TestClient(app)
        with client.websocket_connect("/ws/analytics?user_id=u-premium") as socket:
            assert socket.receive_json() == {"type": "overview", "data": {"user_id": "u-premium"}}
        assert hub.users() == []
    finally:
        app.dependency_overrides.clear()
