from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from revision_planner.errors import RetrievalError
from revision_planner.services.mongo import get_collection

logger = logging.getLogger(__name__)


class QuizStoreProtocol(Protocol):
    def create(self, quiz: Dict[str, Any]) -> Dict[str, Any]:
        ...


class MongoQuizStore:
    """Persist generated quizzes."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection: Collection = collection if collection is not None else get_collection("quizzes")
        self.collection.create_index([("user_id", ASCENDING), ("quiz_type", ASCENDING), ("start_date", ASCENDING)])

    def create(self, quiz: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(quiz)
        doc.setdefault("created_at", datetime.now(timezone.utc))
        try:
            inserted = self.collection.insert_one(doc)
        except PyMongoError as exc:
            logger.error("quiz_store: failed to persist %s quiz: %s", doc.get("quiz_type"), exc)
            raise RetrievalError("Unable to save quiz.") from exc
        doc.pop("_id", None)
        doc["id"] = str(inserted.inserted_id)
        return doc
