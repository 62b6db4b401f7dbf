import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from revision_planner.agents.planner.question_assembler import QuestionAssembler
from revision_planner.agents.planner.topic_selector import select_daily_topics
from revision_planner.agents.planner.weekly_builder import student_id_of
from revision_planner.config import PLANNER_TIMEZONE
from revision_planner.errors import PlannerNotFound
from revision_planner.services.planner_store import PlannerStoreProtocol
from revision_planner.services.topic_store import TopicStoreProtocol
from revision_planner.utils.planner_utils import (
    ACTIVE_CONTINUOUS_REVISION,
    CONTINUOUS_REVISION,
    end_of_iso_week,
    now_local,
    same_day,
    stamp_study_event,
    start_of_day,
    start_of_iso_week,
    topic_key,
    weekday_name,
)

logger = logging.getLogger(__name__)

NOTHING_NEW_MESSAGE = "Topics are already added for the next day."


def find_day(planner: Dict[str, Any], target: datetime) -> Optional[Dict[str, Any]]:
    for day in planner.get("days") or []:
        day_date = day.get("date")
        if isinstance(day_date, datetime) and same_day(day_date, target):
            return day
    return None


class DailyPlannerUpdater:
    """Folds today's new continuous topics into tomorrow's slot of the current planner."""

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

    def update(self, user: Dict[str, Any]) -> Dict[str, Any]:
        student_id = student_id_of(user)
        now = self.clock().astimezone(PLANNER_TIMEZONE)
        today = start_of_day(now)
        tomorrow = today + timedelta(days=1)

        planner = self.planners.find_for_week(student_id, start_of_iso_week(now), end_of_iso_week(now))
        if not planner:
            raise PlannerNotFound(f"Planner not found for user {student_id} for the date {tomorrow.date()}")

        target_day = find_day(planner, tomorrow)
        if target_day is None:
            raise PlannerNotFound(f"Planner for user {student_id} has no day for {tomorrow.date()}")

        todays_topics = self.topics.find_by_tag_since(student_id, CONTINUOUS_REVISION, today)
        candidates, _ = select_daily_topics(todays_topics, [], user)

        existing_names = {
            topic_key(record)
            for record in [
                *(target_day.get("continuous_revision_topics") or []),
                *(target_day.get("back_revision_topics") or []),
            ]
        }
        new_topics = [record for record in candidates if topic_key(record) not in existing_names]

        if not new_topics:
            self._finalize(todays_topics)
            logger.info("No new topics for %s on %s", student_id, tomorrow.date())
            return {"updated": False, "message": NOTHING_NEW_MESSAGE, "planner": planner}

        snapshots = [stamp_study_event(record, tomorrow) for record in new_topics]
        questions = self.assembler.assemble(student_id, target_day.get("day") or weekday_name(tomorrow), tomorrow, snapshots)
        merged_questions: Dict[str, List[Dict[str, Any]]] = {**(target_day.get("questions") or {}), **questions}

        updated = self.planners.push_day_topics(planner["id"], target_day["date"], snapshots, merged_questions)
        self.topics.record_study_events({record["id"]: [tomorrow] for record in new_topics if record.get("id")})
        self._finalize(todays_topics)

        logger.info("Planner updated for %s: %d topics added to %s", student_id, len(new_topics), tomorrow.date())
        return {
            "updated": True,
            "message": f"Planner Updated for {tomorrow.date().isoformat()}",
            "planner": updated or planner,
        }

    def _finalize(self, loaded: List[Dict[str, Any]]) -> None:
        self.topics.set_tag([record["id"] for record in loaded if record.get("id")], ACTIVE_CONTINUOUS_REVISION)
