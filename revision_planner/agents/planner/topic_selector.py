"""Daily topic placement.

Picks which pending revision topics land on a single day. The function is
pure: it never mutates its inputs and never touches storage. Callers remove
the returned topics from their pools before asking for the next day and are
responsible for stamping study events.
"""

from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from revision_planner.config import MAX_BACK_PER_DAY, MAX_CONTINUOUS_PER_DAY, MAX_TOPICS_PER_SUBJECT
from revision_planner.utils.planner_utils import topic_key

Topic = Dict[str, Any]


def _subject(record: Topic) -> str:
    return str(record.get("subject") or "").strip().lower()


def _subject_priority(user: Dict[str, Any]) -> Dict[str, int]:
    """Rank the student's subjects weakest first."""
    subjects = ((user.get("academic") or {}).get("subjects")) or []
    ranked = sorted(
        (s for s in subjects if isinstance(s, dict) and s.get("name")),
        key=lambda s: float(s.get("overall_efficiency") or 0),
    )
    return {str(s["name"]).strip().lower(): idx for idx, s in enumerate(ranked)}


def _created_key(record: Topic) -> Tuple[int, Any]:
    created = record.get("created_at")
    if isinstance(created, datetime):
        return (0, created.timestamp())
    return (1, 0)


def _weakness_key(record: Topic) -> Tuple[float, int]:
    topic = record.get("topic") or {}
    return (float(topic.get("overall_efficiency") or 0), int(topic.get("planner_frequency") or 0))


def _interleave(records: Sequence[Topic], priority: Dict[str, int]) -> List[Topic]:
    """Round-robin across subjects so one subject cannot fill the whole day."""
    buckets: "OrderedDict[str, List[Topic]]" = OrderedDict()
    for record in records:
        buckets.setdefault(_subject(record), []).append(record)

    order = sorted(buckets, key=lambda name: (priority.get(name, len(priority)), name))
    interleaved: List[Topic] = []
    depth = 0
    while len(interleaved) < len(records):
        for name in order:
            bucket = buckets[name]
            if depth < len(bucket):
                interleaved.append(bucket[depth])
        depth += 1
    return interleaved


def _take(
    candidates: Sequence[Topic],
    limit: int,
    per_subject: Dict[str, int],
    chosen_names: Set[str],
    max_per_subject: int,
) -> List[Topic]:
    picked: List[Topic] = []
    for record in candidates:
        if len(picked) >= limit:
            break
        key = topic_key(record)
        if not key or key in chosen_names:
            continue
        subject = _subject(record)
        if per_subject.get(subject, 0) >= max_per_subject:
            continue
        picked.append(record)
        chosen_names.add(key)
        per_subject[subject] = per_subject.get(subject, 0) + 1
    return picked


def select_daily_topics(
    pending_continuous: Sequence[Topic],
    pending_back: Sequence[Topic],
    user: Dict[str, Any],
    *,
    max_continuous: Optional[int] = None,
    max_back: Optional[int] = None,
    max_per_subject: Optional[int] = None,
) -> Tuple[List[Topic], List[Topic]]:
    """Return (daily_continuous, daily_back) for one day.

    Continuous topics go oldest first, back topics weakest first. The
    per-subject cap is shared by both lists and topic names are unique within
    the day (case-insensitive).
    """
    max_continuous = MAX_CONTINUOUS_PER_DAY if max_continuous is None else max_continuous
    max_back = MAX_BACK_PER_DAY if max_back is None else max_back
    max_per_subject = MAX_TOPICS_PER_SUBJECT if max_per_subject is None else max_per_subject

    priority = _subject_priority(user)
    per_subject: Dict[str, int] = {}
    chosen_names: Set[str] = set()

    continuous = _interleave(sorted(pending_continuous, key=_created_key), priority)
    back = _interleave(sorted(pending_back, key=_weakness_key), priority)

    daily_continuous = _take(continuous, max_continuous, per_subject, chosen_names, max_per_subject)
    daily_back = _take(back, max_back, per_subject, chosen_names, max_per_subject)
    return daily_continuous, daily_back
