from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol

from bson import ObjectId
from pymongo import ASCENDING, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from revision_planner.errors import RetrievalError
from revision_planner.services.mongo import get_collection
from revision_planner.utils.planner_utils import BACK_REVISION

logger = logging.getLogger(__name__)


class TopicStoreProtocol(Protocol):
    def find_by_tag_since(self, user_id: str, tag: str, since: datetime) -> List[Dict[str, Any]]:
        ...

    def find_back_revision(self, user_id: str) -> List[Dict[str, Any]]:
        ...

    def record_study_events(self, events: Dict[str, List[datetime]]) -> None:
        ...

    def set_tag(self, topic_ids: Iterable[str], tag: str) -> int:
        ...


def _object_id(value: Any) -> Any:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


class MongoTopicStore:
    """Mongo-backed store for per-student revision topic records."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection: Collection = collection if collection is not None else get_collection("studydata")
        self.collection.create_index([("user_id", ASCENDING), ("tag", ASCENDING), ("created_at", ASCENDING)])

    @staticmethod
    def _normalize(doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return doc

    def find_by_tag_since(self, user_id: str, tag: str, since: datetime) -> List[Dict[str, Any]]:
        query = {"user_id": user_id, "tag": tag, "created_at": {"$gte": since}}
        try:
            cursor = self.collection.find(query).sort("created_at", ASCENDING)
            return [self._normalize(doc) for doc in cursor]
        except PyMongoError as exc:
            logger.error("topic_store: failed to load '%s' topics for %s: %s", tag, user_id, exc)
            raise RetrievalError("Unable to load revision topics.") from exc

    def find_back_revision(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.find({"user_id": user_id, "tag": BACK_REVISION}).sort(
                [("topic.overall_efficiency", ASCENDING), ("topic.planner_frequency", ASCENDING)]
            )
            return [self._normalize(doc) for doc in cursor]
        except PyMongoError as exc:
            logger.error("topic_store: failed to load back revision topics for %s: %s", user_id, exc)
            raise RetrievalError("Unable to load back revision topics.") from exc

    def record_study_events(self, events: Dict[str, List[datetime]]) -> None:
        """Append pending study events and bump the planner frequency per topic."""
        operations = [
            UpdateOne(
                {"_id": _object_id(topic_id)},
                {
                    "$push": {"topic.studied_at": {"$each": [{"date": when, "efficiency": 0} for when in dates]}},
                    "$inc": {"topic.planner_frequency": len(dates)},
                    "$set": {"updated_at": max(dates)},
                },
            )
            for topic_id, dates in events.items()
            if dates
        ]
        if not operations:
            return
        try:
            self.collection.bulk_write(operations, ordered=False)
        except PyMongoError as exc:
            logger.error("topic_store: failed to record study events: %s", exc)
            raise RetrievalError("Unable to record study events.") from exc

    def set_tag(self, topic_ids: Iterable[str], tag: str) -> int:
        ids = [_object_id(topic_id) for topic_id in topic_ids]
        if not ids:
            return 0
        try:
            result = self.collection.update_many({"_id": {"$in": ids}}, {"$set": {"tag": tag}})
        except PyMongoError as exc:
            logger.error("topic_store: failed to set tag '%s': %s", tag, exc)
            raise RetrievalError("Unable to update topic tags.") from exc
        return result.modified_count
