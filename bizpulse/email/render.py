"""Email rendering utilities."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent
ENV = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",)),
)

TEMPLATES = {"weekly_report": "report.html"}


class EmailRenderError(RuntimeError):
    pass


def render_email(kind: str, context: dict[str, Any]) -> tuple[str, str]:
    template_name = TEMPLATES.get(kind)
    if template_name is None:
        raise EmailRenderError(f"Unknown email kind: {kind}")
    subject = context.get("subject", "Your weekly BizPulse report")
    try:
        html = ENV.get_template(template_name).render(subject=subject, **{k: v for k, v in context.items() if k != "subject"})
    except TemplateError as exc:
        logger.error("Failed to render %s email: %s", kind, exc)
        raise EmailRenderError(str(exc)) from exc
    return subject, html
