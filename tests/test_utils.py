import json
import logging

import httpx
import pytest
import respx
from itsdangerous import BadSignature
from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool

from bizpulse.db.migrate import run_migrations
from bizpulse.db.session import create_engine_from_env
from bizpulse.db.tables import metadata
from bizpulse.email.render import EmailRenderError, render_email
from bizpulse.utils import retry
from bizpulse.utils.esp import RESEND_URL, EmailMessage, EmailProvider
from bizpulse.utils.logs import JSONFormatter, request_logger
from bizpulse.utils.urls import generate_share_token, load_share_token, sign_path, verify_token


def test_share_token_round_trip(monkeypatch):
    monkeypatch.setenv("SIGNING_SECRET", "unit-secret")
    token = generate_share_token("u1", "Business", 4)
    assert load_share_token(token) == {"user_id": "u1", "dashboard_type": "Business", "business_id": 4}

    with pytest.raises(BadSignature):
        load_share_token(token[:-2] + "xx")
    with pytest.raises(ValueError):
        generate_share_token("u1", "Everything")


def test_share_token_rejected_under_other_secret(monkeypatch):
    monkeypatch.setenv("SIGNING_SECRET", "first")
    token = generate_share_token("u1", "Overview")
    monkeypatch.setenv("SIGNING_SECRET", "second")
    with pytest.raises(BadSignature):
        load_share_token(token)


def test_signed_path(monkeypatch):
    monkeypatch.setenv("SIGNING_SECRET", "unit-secret")
    url = sign_path("/charts/a.png", expires_in=60)
    token = url.split("token=")[1].split("&")[0]
    assert verify_token(token) == "/charts/a.png"
    assert url.endswith("&expires=60")


@pytest.mark.asyncio
async def test_resend_provider_posts_message(monkeypatch):
    monkeypatch.setenv("ESP_PROVIDER", "resend")
    monkeypatch.setenv("RESEND_API_KEY", "re_test")
    async with respx.mock(assert_all_called=True) as router:
        route = router.post(RESEND_URL).mock(return_value=httpx.Response(200, json={"id": "msg_1"}))
        await EmailProvider().send(EmailMessage(to="a@example.com", subject="Hi", html="<p>Hi</p>"))

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer re_test"
    assert json.loads(request.content)["to"] == ["a@example.com"]


@pytest.mark.asyncio
async def test_resend_retries_transport_errors(monkeypatch):
    monkeypatch.setenv("ESP_PROVIDER", "resend")
    monkeypatch.setenv("RESEND_API_KEY", "re_test")

    async def no_sleep(_):
        return None

    monkeypatch.setattr(retry.asyncio, "sleep", no_sleep)
    async with respx.mock(assert_all_called=True) as router:
        route = router.post(RESEND_URL)
        route.side_effect = [httpx.ConnectError("boom"), httpx.Response(200, json={"id": "msg_2"})]
        await EmailProvider().send(EmailMessage(to="a@example.com", subject="Hi", html="<p>Hi</p>"))
    assert route.call_count == 2


@pytest.mark.asyncio
async def test_log_provider_does_not_call_out(monkeypatch, caplog):
    monkeypatch.setenv("ESP_PROVIDER", "log")
    with caplog.at_level(logging.INFO, logger="bizpulse.utils.esp"):
        await EmailProvider().send(EmailMessage(to="a@example.com", subject="Weekly", html=""))
    assert "a@example.com" in caplog.text


def test_request_logger_appends_context(caplog):
    log = request_logger(logging.getLogger("bizpulse.test"), user_id="u1", business_id=None, operation="overview")
    with caplog.at_level(logging.INFO, logger="bizpulse.test"):
        log.info("Built overview")
    record = caplog.records[-1]
    assert record.getMessage() == "Built overview [user_id=u1 operation=overview]"
    assert record.context == {"user_id": "u1", "operation": "overview"}
    assert json.loads(JSONFormatter().format(record))["user_id"] == "u1"


def test_render_unknown_email_kind():
    with pytest.raises(EmailRenderError):
        render_email("monthly_digest", {})


def test_in_memory_sqlite_engine_shares_one_connection(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    engine = create_engine_from_env()
    run_migrations(engine)
    assert isinstance(engine.pool, StaticPool)
    assert set(metadata.tables) <= set(inspect(engine).get_table_names())
    engine.dispose()
