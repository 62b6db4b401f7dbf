"""revision_planner/agents/planner_agent.py

PlannerAgent is the entry point the HTTP routes and scheduled jobs use to:
- Build a student's weekly revision planner (seven days of topics + questions).
- Fold newly surfaced continuous-revision topics into tomorrow's slot.
- Fetch the planner covering the current week.
- Generate the weekly quiz over the week's topics.

All persistence goes through the store protocols so the scheduling logic
stays independent of MongoDB; `get_planner_agent()` wires the Mongo-backed
stores.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from pymongo.errors import PyMongoError

from revision_planner.agents.planner.daily_updater import DailyPlannerUpdater
from revision_planner.agents.planner.question_assembler import QuestionAssembler
from revision_planner.agents.planner.weekly_builder import WeeklyPlannerBuilder, student_id_of
from revision_planner.agents.planner.weekly_quiz import WeeklyQuizGenerator
from revision_planner.config import PLANNER_TIMEZONE
from revision_planner.errors import PlannerNotFound, PreconditionFailed
from revision_planner.services.planner_store import MongoPlannerStore, PlannerStoreProtocol
from revision_planner.services.question_bank import (
    MongoQuestionBank,
    MongoSolvedQuestionStore,
    QuestionBankProtocol,
    SolvedQuestionStoreProtocol,
)
from revision_planner.services.quiz_store import MongoQuizStore, QuizStoreProtocol
from revision_planner.services.topic_store import MongoTopicStore, TopicStoreProtocol
from revision_planner.services.user_store import UserStoreProtocol, get_user_store
from revision_planner.utils.planner_utils import (
    activation_date,
    end_of_iso_week,
    now_local,
    start_of_iso_week,
)

logger = logging.getLogger(__name__)


class PlannerAgent:
    """Composite agent that orchestrates planner building, updates and quizzes."""

    def __init__(
        self,
        *,
        topics: TopicStoreProtocol,
        planners: PlannerStoreProtocol,
        question_bank: QuestionBankProtocol,
        solved_questions: SolvedQuestionStoreProtocol,
        quizzes: QuizStoreProtocol,
        users: UserStoreProtocol,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.topics = topics
        self.planners = planners
        self.users = users
        self.solved_questions = solved_questions
        self.clock = clock

        self.assembler = QuestionAssembler(question_bank, solved_questions)
        self.builder = WeeklyPlannerBuilder(topics, planners, self.assembler, clock=clock)
        self.updater = DailyPlannerUpdater(topics, planners, self.assembler, clock=clock)
        self.quiz_generator = WeeklyQuizGenerator(planners, quizzes, self.assembler, clock=clock)

    # ------------------------------------------------------------------
    # Weekly planner
    # ------------------------------------------------------------------
    def load_back_revision_topics(self, user: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not activation_date(user):
            raise PreconditionFailed("Not subscribed")
        return self.topics.find_back_revision(student_id_of(user))

    def create_planner(
        self,
        user: Dict[str, Any],
        back_revision_topics: Optional[Sequence[Dict[str, Any]]] = None,
        *,
        next_week: bool = False,
    ) -> Dict[str, Any]:
        if back_revision_topics is None:
            back_revision_topics = self.load_back_revision_topics(user)

        result = self.builder.build(user, back_revision_topics, next_week=next_week)
        if result["created"]:
            self.users.mark_planner_enabled(student_id_of(user))
        return result

    # ------------------------------------------------------------------
    # Daily update
    # ------------------------------------------------------------------
    def update_daily_planner(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return self.updater.update(user)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get_planner(self, user: Dict[str, Any]) -> Dict[str, Any]:
        now = self.clock().astimezone(PLANNER_TIMEZONE)
        planner = self.planners.find_for_week(student_id_of(user), start_of_iso_week(now), end_of_iso_week(now))
        if not planner:
            raise PlannerNotFound("Planner not exists for the current week")
        return planner

    def create_weekly_quiz(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return self.quiz_generator.create(user)

    def record_solved_question(self, user: Dict[str, Any], question: Dict[str, Any], *, is_correct: bool) -> None:
        """Solved questions are never drawn again for this student."""
        self.solved_questions.record(student_id_of(user), question, is_correct=is_correct)


_AGENT: Optional[PlannerAgent] = None


def get_planner_agent() -> PlannerAgent:
    """Return a cached PlannerAgent bound to the Mongo-backed stores."""
    global _AGENT
    if _AGENT is None:
        try:
            _AGENT = PlannerAgent(
                topics=MongoTopicStore(),
                planners=MongoPlannerStore(),
                question_bank=MongoQuestionBank(),
                solved_questions=MongoSolvedQuestionStore(),
                quizzes=MongoQuizStore(),
                users=get_user_store(),
            )
        except PyMongoError as exc:
            raise RuntimeError("Unable to initialize planner stores. Verify MongoDB connectivity.") from exc
    return _AGENT
