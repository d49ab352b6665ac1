from datetime import timedelta

import httpx
import pytest
from sqlalchemy import select, update

from bizpulse.db.tables import analytics_snapshots, sends, users
from bizpulse.jobs import daily, weekly
from bizpulse.logic import charts
from bizpulse.utils.esp import RESEND_URL


@pytest.mark.asyncio
async def test_weekly_reports_e2e(monkeypatch, tmp_path, seeded_engine, today):
    sent_messages = []

    monkeypatch.setattr(charts, "OUTPUT_DIR", tmp_path / "charts")
    monkeypatch.setenv("ESP_PROVIDER", "log")
    monkeypatch.setenv("SIGNING_SECRET", "secret")
    monkeypatch.setattr(weekly, "create_engine_from_env", lambda: seeded_engine)

    class DummyEmailProvider:
        async def send(self, message):
            sent_messages.append(message)

    monkeypatch.setattr(weekly, "EmailProvider", lambda: DummyEmailProvider())

    sent = await weekly.run_weekly_reports(as_of=today)

    assert sent == 1
    assert [m.to for m in sent_messages] == ["premium@example.com"]
    assert "Harbour Coffee" in sent_messages[0].html
    assert "token=" in sent_messages[0].html
    assert list(charts.OUTPUT_DIR.glob("*.png"))
    with seeded_engine.connect() as conn:
        rows = conn.execute(select(sends.c.user_id, sends.c.kind, sends.c.status)).all()
    assert rows == [("u-premium", "weekly_report", "sent")]


@pytest.mark.asyncio
async def test_daily_snapshots_e2e(monkeypatch, seeded_engine, today):
    yesterday = today - timedelta(days=1)
    monkeypatch.setattr(daily, "create_engine_from_env", lambda: seeded_engine)

    assert await daily.run_daily_snapshots(as_of=yesterday) == 6
    assert await daily.run_daily_snapshots(as_of=yesterday) == 0

    with seeded_engine.connect() as conn:
        views = dict(
            conn.execute(
                select(analytics_snapshots.c.business_id, analytics_snapshots.c.total_views)
            ).all()
        )
    assert views[4] == 10
    assert views[1] == 2
    assert 7 not in views


@pytest.mark.asyncio
async def test_failed_send_does_not_stop_weekly_reports(monkeypatch, tmp_path, seeded_engine, today):
    with seeded_engine.begin() as conn:
        conn.execute(update(users).where(users.c.id == "u-basic").values(email_reports=True))

    delivered = []

    class FlakyEmailProvider:
        async def send(self, message):
            if message.to == "basic@example.com":
                request = httpx.Request("POST", RESEND_URL)
                raise httpx.HTTPStatusError("rejected", request=request, response=httpx.Response(422, request=request))
            delivered.append(message.to)

    monkeypatch.setattr(charts, "OUTPUT_DIR", tmp_path / "charts")
    monkeypatch.setenv("SIGNING_SECRET", "secret")
    monkeypatch.setattr(weekly, "create_engine_from_env", lambda: seeded_engine)
    monkeypatch.setattr(weekly, "EmailProvider", lambda: FlakyEmailProvider())

    assert await weekly.run_weekly_reports(as_of=today) == 1
    assert delivered == ["premium@example.com"]
    with seeded_engine.connect() as conn:
        rows = conn.execute(select(sends.c.user_id, sends.c.status).order_by(sends.c.id)).all()
    assert rows == [("u-basic", "failed"), ("u-premium", "sent")]
