# revision_planner/utils/planner_utils.py
import copy
import json
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Optional

from revision_planner.config import PLANNER_TIMEZONE

DAY_ORDER = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DAYS_PER_WEEK = len(DAY_ORDER)

CONTINUOUS_REVISION = "continuous_revision"
ACTIVE_CONTINUOUS_REVISION = "active_continuous_revision"
BACK_REVISION = "back_revision"


def now_local(tz: tzinfo = PLANNER_TIMEZONE) -> datetime:
    return datetime.now(tz)


def start_of_day(value: datetime | date, tz: tzinfo = PLANNER_TIMEZONE) -> datetime:
    """Midnight of the calendar day `value` falls on in the reference timezone."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz)
        local_day = value.astimezone(tz).date()
    else:
        local_day = value
    return datetime.combine(local_day, time.min, tzinfo=tz)


def start_of_iso_week(value: datetime | date, tz: tzinfo = PLANNER_TIMEZONE) -> datetime:
    day = start_of_day(value, tz)
    return day - timedelta(days=day.weekday())


def end_of_iso_week(value: datetime | date, tz: tzinfo = PLANNER_TIMEZONE) -> datetime:
    """Last representable instant of the ISO week (Sunday 23:59:59.999)."""
    return start_of_iso_week(value, tz) + timedelta(days=DAYS_PER_WEEK, milliseconds=-1)


def same_day(left: datetime, right: datetime, tz: tzinfo = PLANNER_TIMEZONE) -> bool:
    return start_of_day(left, tz) == start_of_day(right, tz)


def weekday_name(value: datetime, tz: tzinfo = PLANNER_TIMEZONE) -> str:
    return DAY_ORDER[start_of_day(value, tz).weekday()]


def topic_name(record: Dict[str, Any]) -> str:
    return str((record.get("topic") or {}).get("name") or "").strip()


def topic_key(record: Dict[str, Any]) -> str:
    """Case-insensitive identity of a topic inside one day."""
    return topic_name(record).lower()


def activation_date(user: Dict[str, Any]) -> Optional[datetime]:
    """Free-trial activation wins over the paid subscription's activation."""
    trial = user.get("free_trial") or {}
    subscription = user.get("subscription") or {}
    return trial.get("date_of_activation") or subscription.get("date_of_activation")


def is_active_subscriber(user: Dict[str, Any]) -> bool:
    subscription = user.get("subscription") or {}
    trial = user.get("free_trial") or {}
    return subscription.get("status") == "active" or bool(trial.get("active"))


def stamp_study_event(record: Dict[str, Any], when: datetime) -> Dict[str, Any]:
    """Return a snapshot of `record` with a pending study event and bumped frequency.

    The efficiency is 0 until the student is evaluated on the day.
    """
    snapshot = copy.deepcopy(record)
    topic = snapshot.setdefault("topic", {})
    studied_at: List[Dict[str, Any]] = topic.get("studied_at") or []
    studied_at.append({"date": when, "efficiency": 0})
    topic["studied_at"] = studied_at
    topic["planner_frequency"] = int(topic.get("planner_frequency") or 0) + 1
    return snapshot


def unique_by_topic(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    unique: List[Dict[str, Any]] = []
    for record in records:
        key = topic_key(record)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_payload(payload: Any) -> Any:
    """JSON-safe copy of a stored document (datetimes as ISO strings, ObjectIds as str)."""
    return json.loads(json.dumps(payload, default=_json_default))
