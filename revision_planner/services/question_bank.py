from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from revision_planner.errors import RetrievalError
from revision_planner.services.mongo import get_collection, get_questions_database

logger = logging.getLogger(__name__)


class QuestionBankProtocol(Protocol):
    def sample(self, topic: str, tier: str, size: int, exclude_ids: Iterable[str] = ()) -> List[Dict[str, Any]]:
        ...


class SolvedQuestionStoreProtocol(Protocol):
    def has_solved(self, student_id: str, question_body: Any) -> bool:
        ...

    def record(self, student_id: str, question: Dict[str, Any], *, is_correct: bool) -> None:
        ...


class MongoQuestionBank:
    """Random draws from the question bank collection."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection: Collection = (
            collection if collection is not None else get_questions_database()["questionbanks"]
        )

    @staticmethod
    def _normalize(doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def sample(self, topic: str, tier: str, size: int, exclude_ids: Iterable[str] = ()) -> List[Dict[str, Any]]:
        if size <= 0:
            return []
        match: Dict[str, Any] = {"topics": topic, "level": tier}
        excluded = [ObjectId(qid) if ObjectId.is_valid(qid) else qid for qid in exclude_ids]
        if excluded:
            match["_id"] = {"$nin": excluded}
        pipeline = [{"$match": match}, {"$sample": {"size": size}}]
        try:
            return [self._normalize(doc) for doc in self.collection.aggregate(pipeline)]
        except PyMongoError as exc:
            logger.error("question_bank: sampling failed for %s/%s: %s", topic, tier, exc)
            raise RetrievalError("Question bank unavailable.") from exc


class MongoSolvedQuestionStore:
    """Questions a student has already answered."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection: Collection = collection if collection is not None else get_collection("solvedquestions")
        self.collection.create_index([("student_id", ASCENDING), ("question.question", ASCENDING)])

    def has_solved(self, student_id: str, question_body: Any) -> bool:
        try:
            doc = self.collection.find_one(
                {"student_id": student_id, "question.question": question_body},
                {"_id": 1},
            )
        except PyMongoError as exc:
            logger.error("solved_questions: lookup failed for %s: %s", student_id, exc)
            raise RetrievalError("Unable to check solved questions.") from exc
        return doc is not None

    def record(self, student_id: str, question: Dict[str, Any], *, is_correct: bool) -> None:
        doc = {
            "student_id": student_id,
            "question": question,
            "is_correct": is_correct,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            self.collection.insert_one(doc)
        except PyMongoError as exc:
            logger.error("solved_questions: failed to record answer for %s: %s", student_id, exc)
            raise RetrievalError("Unable to record solved question.") from exc
