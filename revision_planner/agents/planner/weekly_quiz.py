import logging
from datetime import datetime
from typing import Any, Callable, Dict

from revision_planner.agents.planner.question_assembler import QuestionAssembler
from revision_planner.agents.planner.weekly_builder import student_id_of
from revision_planner.config import PLANNER_TIMEZONE
from revision_planner.errors import PlannerNotFound, PreconditionFailed
from revision_planner.services.planner_store import PlannerStoreProtocol
from revision_planner.services.quiz_store import QuizStoreProtocol
from revision_planner.utils.planner_utils import (
    activation_date,
    end_of_iso_week,
    now_local,
    start_of_iso_week,
    unique_by_topic,
)

logger = logging.getLogger(__name__)


class WeeklyQuizGenerator:
    """Builds an end-of-week quiz over every topic in the current planner."""

    def __init__(
        self,
        planners: PlannerStoreProtocol,
        quizzes: QuizStoreProtocol,
        assembler: QuestionAssembler,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.planners = planners
        self.quizzes = quizzes
        self.assembler = assembler
        self.clock = clock

    def create(self, user: Dict[str, Any]) -> Dict[str, Any]:
        student_id = student_id_of(user)
        if not activation_date(user):
            raise PreconditionFailed("Not subscribed")

        now = self.clock().astimezone(PLANNER_TIMEZONE)
        week_start = start_of_iso_week(now)
        week_end = end_of_iso_week(now)

        planner = self.planners.find_for_week(student_id, week_start, week_end)
        if not planner:
            raise PlannerNotFound("Planner for current week does not exist!")

        weekly_topics = unique_by_topic(
            record
            for day in planner.get("days") or []
            for record in [*(day.get("continuous_revision_topics") or []), *(day.get("back_revision_topics") or [])]
        )
        questions = self.assembler.assemble(student_id, "Weekly", week_start, weekly_topics)

        quiz = self.quizzes.create(
            {
                "user_id": student_id,
                "quiz_type": "weekly",
                "questions": questions,
                "start_date": week_start,
                "end_date": week_end,
            }
        )
        logger.info("Weekly quiz created for %s with %d topics", student_id, len(questions))
        return quiz
