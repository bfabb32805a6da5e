from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from .models import parse_timestamp


def format_relative(created_at: datetime | str | int, now: Optional[datetime] = None) -> str:
    """Return a relative-age label such as ``"5m ago"`` for ``created_at``.

    Future timestamps (clock skew) read as ``"just now"``. Every bucket uses
    floor division.
    """

    created = parse_timestamp(created_at)
    current = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    delta_s = (current - created).total_seconds()
    if delta_s < 60:
        return "just now"
    minutes = int(delta_s // 60)
    if minutes < 60:
        return f"{minutes}m ago"
    hours = int(delta_s // 3600)
    if hours < 24:
        return f"{hours}h ago"
    return f"{int(delta_s // 86400)}d ago"
