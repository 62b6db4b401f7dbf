import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Sequence

from revision_planner.agents.planner.question_assembler import QuestionAssembler
from revision_planner.agents.planner.topic_selector import select_daily_topics
from revision_planner.config import PLANNER_TIMEZONE
from revision_planner.errors import PlannerError, PreconditionFailed, ValidationError
from revision_planner.services.planner_store import PlannerStoreProtocol
from revision_planner.services.topic_store import TopicStoreProtocol
from revision_planner.utils.planner_utils import (
    ACTIVE_CONTINUOUS_REVISION,
    CONTINUOUS_REVISION,
    DAY_ORDER,
    DAYS_PER_WEEK,
    activation_date,
    end_of_iso_week,
    now_local,
    stamp_study_event,
    start_of_day,
    start_of_iso_week,
)

logger = logging.getLogger(__name__)


def student_id_of(user: Dict[str, Any]) -> str:
    student_id = user.get("id")
    if not isinstance(student_id, str) or not student_id.strip():
        raise ValidationError("User identity is missing a valid id.")
    return student_id


def planner_start_date(activated_at: datetime, now: datetime, *, next_week: bool = False) -> datetime:
    """First day of the planner being built.

    A student activated on/after the reference week's Monday starts on the
    activation day; everybody else starts on that Monday.
    """
    week_start = start_of_iso_week(now)
    if next_week:
        week_start += timedelta(days=DAYS_PER_WEEK)
    activation_day = start_of_day(activated_at)
    return activation_day if activation_day >= week_start else week_start


def _remove(pool: List[Dict[str, Any]], picked: Sequence[Dict[str, Any]]) -> None:
    picked_ids = {id(record) for record in picked}
    pool[:] = [record for record in pool if id(record) not in picked_ids]


class WeeklyPlannerBuilder:
    """Builds and persists a student's seven-day revision planner."""

    def __init__(
        self,
        topics: TopicStoreProtocol,
        planners: PlannerStoreProtocol,
        assembler: QuestionAssembler,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.topics = topics
        self.planners = planners
        self.assembler = assembler
        self.clock = clock

    def build(
        self,
        user: Dict[str, Any],
        back_revision_topics: Sequence[Dict[str, Any]],
        *,
        next_week: bool = False,
    ) -> Dict[str, Any]:
        student_id = student_id_of(user)
        activated_at = activation_date(user)
        if not activated_at:
            raise PreconditionFailed("Not subscribed")

        now = self.clock().astimezone(PLANNER_TIMEZONE)
        start_date = planner_start_date(activated_at, now, next_week=next_week)
        end_date = start_date + timedelta(days=DAYS_PER_WEEK - 1)

        existing = self.planners.find_for_week(student_id, start_of_iso_week(start_date), end_of_iso_week(start_date))
        if existing:
            logger.info("Planner already exists for %s (week of %s)", student_id, start_date.date())
            return {"created": False, "message": "Planner already exists for this week.", "planner": existing}

        yesterday = start_of_day(now) - timedelta(days=1)
        continuous_pool = self.topics.find_by_tag_since(student_id, CONTINUOUS_REVISION, yesterday)

        remaining_continuous = list(continuous_pool)
        remaining_back = list(back_revision_topics)
        study_events: Dict[str, List[datetime]] = defaultdict(list)
        days: List[Dict[str, Any]] = []

        for index, day_name in enumerate(DAY_ORDER):
            day_date = start_date + timedelta(days=index)

            daily_continuous, daily_back = select_daily_topics(remaining_continuous, remaining_back, user)
            _remove(remaining_continuous, daily_continuous)
            _remove(remaining_back, daily_back)

            for record in [*daily_continuous, *daily_back]:
                if record.get("id"):
                    study_events[record["id"]].append(day_date)

            continuous_snapshots = [stamp_study_event(record, day_date) for record in daily_continuous]
            back_snapshots = [stamp_study_event(record, day_date) for record in daily_back]
            questions = self.assembler.assemble(
                student_id, day_name, day_date, [*continuous_snapshots, *back_snapshots]
            )

            days.append(
                {
                    "day": day_name,
                    "date": day_date,
                    "continuous_revision_topics": continuous_snapshots,
                    "back_revision_topics": back_snapshots,
                    "questions": questions,
                }
            )

        if remaining_continuous or remaining_back:
            logger.info(
                "Planner for %s left %d continuous and %d back topics unscheduled",
                student_id,
                len(remaining_continuous),
                len(remaining_back),
            )

        planner = self.planners.create(
            {
                "student_id": student_id,
                "start_date": start_date,
                "end_date": end_date,
                "days": days,
            }
        )

        try:
            self.topics.record_study_events(dict(study_events))
            self.topics.set_tag([record["id"] for record in continuous_pool if record.get("id")], ACTIVE_CONTINUOUS_REVISION)
        except PlannerError as exc:
            # Study events already written by a successful record_study_events are not undone.
            logger.error(
                "Rolling back planner %s for %s after topic update failure: %s", planner["id"], student_id, exc.message
            )
            try:
                self.planners.delete(planner["id"])
            except PlannerError as rollback_exc:
                logger.error("Rollback of planner %s failed: %s", planner["id"], rollback_exc.message)
                raise exc from rollback_exc
            raise

        logger.info("Planner created for %s (%s -> %s)", student_id, start_date.date(), end_date.date())
        return {"created": True, "message": "Planner created successfully.", "planner": planner}
