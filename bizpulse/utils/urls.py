"""Signed URL and shareable dashboard link utilities."""

from __future__ import annotations

import os

from itsdangerous import URLSafeTimedSerializer

DEFAULT_EXPIRY = int(os.environ.get("SHARE_LINK_EXPIRY", 60 * 60 * 24 * 7))
SHARE_PURPOSE = "analytics-share"
DASHBOARD_TYPES = ("Overview", "Business", "Benchmarks", "Competitors")


def _serializer() -> URLSafeTimedSerializer:
    secret = os.environ.get("SIGNING_SECRET", "change-me")
    return URLSafeTimedSerializer(secret_key=secret)


def sign_path(path: str, *, expires_in: int = DEFAULT_EXPIRY) -> str:
    serializer = _serializer()
    token = serializer.dumps(path)
    return f"{path}?token={token}&expires={expires_in}"


def verify_token(token: str, max_age: int = DEFAULT_EXPIRY) -> str:
    serializer = _serializer()
    return serializer.loads(token, max_age=max_age)


def generate_share_token(user_id: str, dashboard_type: str, business_id: int | None = None) -> str:
    if dashboard_type not in DASHBOARD_TYPES:
        raise ValueError(f"Unknown dashboard type: {dashboard_type}")
    payload = {"user_id": user_id, "dashboard_type": dashboard_type, "business_id": business_id}
    return _serializer().dumps(payload, salt=SHARE_PURPOSE)


def load_share_token(token: str, max_age: int = DEFAULT_EXPIRY) -> dict[str, object]:
    """Decode a share token.

    Raises ``itsdangerous.SignatureExpired`` or ``BadSignature`` for stale or
    tampered tokens.
    """
    data = _serializer().loads(token, max_age=max_age, salt=SHARE_PURPOSE)
    if not isinstance(data, dict):
        raise TypeError("Invalid token payload")
    return data
