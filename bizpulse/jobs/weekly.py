"""Weekly report and retention jobs."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

import httpx
from dotenv import load_dotenv

from bizpulse.db.repository import AnalyticsRepository
from bizpulse.db.session import create_engine_from_env
from bizpulse.email.render import EmailRenderError, render_email
from bizpulse.logic import constants
from bizpulse.logic.analytics import AnalyticsService, Overview
from bizpulse.logic.charts import render_activity_chart
from bizpulse.logic.results import Invalid
from bizpulse.logic.snapshots import SnapshotService
from bizpulse.utils.dates import format_date, today_utc
from bizpulse.utils.esp import EmailMessage, EmailProvider
from bizpulse.utils.urls import sign_path

logger = logging.getLogger(__name__)


async def run_weekly_reports(as_of: date | None = None) -> int:
    """E-mail an overview to every user who opted into reports. Returns the number sent."""
    load_dotenv()
    engine = create_engine_from_env()
    repo = AnalyticsRepository(engine)
    service = AnalyticsService(repo)
    provider = EmailProvider()
    target = as_of or today_utc()

    sent = 0
    for user in await repo.get_report_recipients():
        result = await service.get_overview(user.id, today=target)
        if isinstance(result, Invalid):
            logger.info("Skipping report for %s: %s", user.id, result.code)
            continue
        try:
            subject, html = render_email("weekly_report", _report_context(result.value))
        except EmailRenderError:
            logger.exception("Could not render report for %s", user.id)
            continue
        try:
            await provider.send(EmailMessage(to=user.email, subject=subject, html=html))
        except httpx.HTTPError:
            logger.exception("Failed to send weekly report to %s", user.id)
            await repo.record_send(user.id, kind="weekly_report", status="failed")
            continue
        await repo.record_send(user.id, kind="weekly_report", status="sent")
        sent += 1
    logger.info("Sent %s weekly reports for %s", sent, target)
    return sent


def _report_context(overview: Overview) -> dict[str, object]:
    chart_url = None
    if overview.views_series:
        chart = render_activity_chart(f"user-{overview.user_id}", overview.views_series, overview.reviews_series)
        chart_url = sign_path(f"/charts/{chart.path.name}")
    return {
        "subject": f"Your weekly BizPulse report — {format_date(overview.period_end)}",
        "overview": overview,
        "period_start": format_date(overview.period_start),
        "period_end": format_date(overview.period_end),
        "chart_url": chart_url,
        "dashboard_url": sign_path("/analytics/overview"),
    }


async def run_cleanup(retention_days: int | None = None) -> int:
    load_dotenv()
    engine = create_engine_from_env()
    service = SnapshotService(AnalyticsRepository(engine))
    return await service.cleanup_old_snapshots(retention_days or constants.SNAPSHOT_RETENTION_DAYS)


if __name__ == "__main__":
    from bizpulse.utils.logs import configure_logging

    configure_logging()
    asyncio.run(run_weekly_reports())
