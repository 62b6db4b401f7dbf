import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from revision_planner.config import QUESTION_TIERS, QUESTIONS_PER_TOPIC
from revision_planner.services.question_bank import QuestionBankProtocol, SolvedQuestionStoreProtocol
from revision_planner.utils.planner_utils import topic_name

logger = logging.getLogger(__name__)


class QuestionAssembler:
    """Draws practice questions for a day's topics from the question bank.

    Tiers are walked in order (easiest first). Each draw excludes questions
    already seen for the topic; a drawn question the student has solved
    before is discarded and sampling carries on, so only accepted questions
    count towards the target.
    """

    def __init__(
        self,
        question_bank: QuestionBankProtocol,
        solved_questions: SolvedQuestionStoreProtocol,
        *,
        per_topic: int = QUESTIONS_PER_TOPIC,
        tiers: Optional[Sequence[str]] = None,
    ) -> None:
        self.question_bank = question_bank
        self.solved_questions = solved_questions
        self.per_topic = per_topic
        self.tiers = list(tiers or QUESTION_TIERS)

    def assemble(
        self,
        student_id: str,
        day: str,
        date: datetime,
        topics: Sequence[Dict[str, Any]],
    ) -> Dict[str, List[Dict[str, Any]]]:
        results: Dict[str, List[Dict[str, Any]]] = {}
        for record in topics:
            name = topic_name(record)
            if not name or name in results:
                continue
            results[name] = self._questions_for_topic(student_id, name)
        logger.debug(
            "Assembled %d questions across %d topics for %s (%s)",
            sum(len(items) for items in results.values()),
            len(results),
            day,
            date.date().isoformat(),
        )
        return results

    def _questions_for_topic(self, student_id: str, name: str) -> List[Dict[str, Any]]:
        accepted: List[Dict[str, Any]] = []
        seen: List[str] = []
        for tier in self.tiers:
            while len(accepted) < self.per_topic:
                remaining = self.per_topic - len(accepted)
                drawn = [q for q in self.question_bank.sample(name, tier, remaining, exclude_ids=seen)
                         if q.get("id") not in seen]
                if not drawn:
                    break
                for question in drawn:
                    seen.append(question.get("id"))
                    if len(accepted) >= self.per_topic:
                        break
                    if self.solved_questions.has_solved(student_id, question.get("question")):
                        continue
                    accepted.append(question)
            if len(accepted) >= self.per_topic:
                break
        return accepted
