from __future__ import annotations

import ipaddress
import json
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.requests import HTTPConnection

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY = "api_key"


def generate_api_key() -> str:
    return "ak_" + uuid.uuid4().hex[:8] + uuid.uuid4().hex[:8]


def is_valid_ip(value: str | None) -> bool:
    if not value:
        return False
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def get_real_ip(conn: HTTPConnection) -> str:
    """
    Best-effort client address: first valid X-Forwarded-For hop,
    then X-Real-IP, then the socket peer.
    """
    xff = conn.headers.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if is_valid_ip(first):
            return first

    xri = (conn.headers.get("x-real-ip") or "").strip()
    if is_valid_ip(xri):
        return xri

    if conn.client is None:
        return ""
    return conn.client.host


def encode_properties(properties: dict[str, Any] | None) -> str:
    # insertion order is kept, so the same payload always yields the same text
    return json.dumps(properties or {}, separators=(",", ":"), ensure_ascii=False)


def decode_properties(text: str | None) -> dict[str, Any]:
    if not text:
        return {}
    value = json.loads(text)
    return value if isinstance(value, dict) else {}


def isoformat(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    # SQLite hands back naive datetimes; everything is stored in UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def serialize_event(event) -> dict[str, Any]:
    return {
        "id": event.id,
        "project_id": event.project_id,
        "session_id": event.session_id,
        "user_id": event.user_id,
        "event_type": event.event_type,
        "event_name": event.event_name,
        "properties": decode_properties(event.properties),
        "page_url": event.page_url,
        "page_title": event.page_title,
        "referrer": event.referrer,
        "user_agent": event.user_agent,
        "ip_address": event.ip_address,
        "country": event.country,
        "city": event.city,
        "screen_width": event.screen_width,
        "screen_height": event.screen_height,
        "language": event.language,
        "platform": event.platform,
        "created_at": isoformat(event.created_at),
    }
