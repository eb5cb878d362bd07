"""Column default factories shared by all record models."""
import uuid
from datetime import datetime, timezone
from typing import Optional


def new_id() -> str:
    """Stable record id: 32 lowercase hex chars, same shape the remote issues."""
    return uuid.uuid4().hex


def now_iso(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with microseconds.

    All stored timestamps use this exact shape so that string comparison
    (watermarks, retention cutoffs) matches chronological order.
    """
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")
