from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from revision_planner.errors import PlannerExists, RetrievalError
from revision_planner.services.mongo import get_collection

logger = logging.getLogger(__name__)


class PlannerStoreProtocol(Protocol):
    def find_for_week(self, student_id: str, week_start: datetime, week_end: datetime) -> Optional[Dict[str, Any]]:
        ...

    def create(self, planner: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def delete(self, planner_id: str) -> None:
        ...

    def push_day_topics(
        self,
        planner_id: str,
        day_date: datetime,
        topics: List[Dict[str, Any]],
        questions: Dict[str, List[Dict[str, Any]]],
    ) -> Optional[Dict[str, Any]]:
        ...


class MongoPlannerStore:
    """Mongo-backed weekly planner documents, one per student per week."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection: Collection = collection if collection is not None else get_collection("planners")
        self.collection.create_index([("student_id", ASCENDING), ("start_date", ASCENDING)], unique=True)

    @staticmethod
    def _normalize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not doc:
            return None
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def find_for_week(self, student_id: str, week_start: datetime, week_end: datetime) -> Optional[Dict[str, Any]]:
        query = {"student_id": student_id, "start_date": {"$gte": week_start, "$lte": week_end}}
        try:
            doc = self.collection.find_one(query, sort=[("start_date", DESCENDING)])
        except PyMongoError as exc:
            logger.error("planner_store: failed to fetch planner for %s: %s", student_id, exc)
            raise RetrievalError("Unable to load planner.") from exc
        return self._normalize(doc)

    def create(self, planner: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(planner)
        doc.pop("id", None)
        doc.setdefault("created_at", datetime.now(timezone.utc))
        try:
            inserted = self.collection.insert_one(doc)
        except DuplicateKeyError as exc:
            raise PlannerExists("Planner already exists for this week.") from exc
        except PyMongoError as exc:
            logger.error("planner_store: failed to persist planner: %s", exc)
            raise RetrievalError("Unable to save planner.") from exc
        doc["_id"] = inserted.inserted_id
        return self._normalize(doc)

    def delete(self, planner_id: str) -> None:
        try:
            self.collection.delete_one({"_id": ObjectId(planner_id)})
        except PyMongoError as exc:
            logger.error("planner_store: failed to delete planner %s: %s", planner_id, exc)
            raise RetrievalError("Unable to roll back planner.") from exc

    def push_day_topics(
        self,
        planner_id: str,
        day_date: datetime,
        topics: List[Dict[str, Any]],
        questions: Dict[str, List[Dict[str, Any]]],
    ) -> Optional[Dict[str, Any]]:
        """Targeted update of one Day sub-document; the rest of the week is untouched."""
        try:
            self.collection.update_one(
                {"_id": ObjectId(planner_id), "days.date": day_date},
                {
                    "$push": {"days.$.continuous_revision_topics": {"$each": topics}},
                    "$set": {"days.$.questions": questions},
                },
            )
            doc = self.collection.find_one({"_id": ObjectId(planner_id)})
        except PyMongoError as exc:
            logger.error("planner_store: failed to update day %s of %s: %s", day_date, planner_id, exc)
            raise RetrievalError("Unable to update planner.") from exc
        return self._normalize(doc)
