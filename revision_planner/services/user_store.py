from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

import bcrypt
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from revision_planner.config import FREE_TRIAL_DAYS, SESSION_TTL_HOURS
from revision_planner.errors import PlannerNotFound, PreconditionFailed, RetrievalError
from revision_planner.services.mongo import get_collection

logger = logging.getLogger(__name__)

ELIGIBLE_USERS_QUERY = {
    "$or": [
        {"subscription.status": "active", "subscription.date_of_activation": {"$exists": True, "$ne": None}},
        {"free_trial.active": True},
    ]
}


class UserStoreProtocol(Protocol):
    def create_user(
        self,
        *,
        firstname: str,
        email: str,
        password: str,
        lastname: Optional[str] = None,
        standard: Optional[int] = None,
        subjects: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        ...

    def verify_credentials(self, email: str, password: str) -> Dict[str, Any]:
        ...

    def create_session(self, user_id: str) -> str:
        ...

    def drop_session(self, token: str) -> None:
        ...

    def resolve_token(self, token: str) -> Optional[Dict[str, Any]]:
        ...

    def public_view(self, user: Dict[str, Any]) -> Dict[str, Any]:
        ...

    def list_eligible(self) -> List[Dict[str, Any]]:
        ...

    def activate_free_trial(self, user_id: str) -> Dict[str, Any]:
        ...

    def mark_planner_enabled(self, user_id: str) -> None:
        ...


class MongoUserStore:
    """Mongo-backed student/session store."""

    def __init__(
        self,
        session_ttl_hours: int = SESSION_TTL_HOURS,
        users: Optional[Collection] = None,
        sessions: Optional[Collection] = None,
    ) -> None:
        self.session_ttl = timedelta(hours=session_ttl_hours)
        self.users: Collection = users if users is not None else get_collection("users")
        self.sessions: Collection = sessions if sessions is not None else get_collection("sessions")
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        self.users.create_index("email", unique=True)
        self.users.create_index("id", unique=True)
        ttl_seconds = int(self.session_ttl.total_seconds())
        self.sessions.create_index("created_at", expireAfterSeconds=ttl_seconds)

    @staticmethod
    def _normalize_user(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not doc:
            return None
        doc = dict(doc)
        doc.pop("_id", None)
        return doc

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        email = email.lower().strip()
        doc = self.users.find_one({"email": email})
        return self._normalize_user(doc)

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc = self.users.find_one({"id": user_id})
        return self._normalize_user(doc)

    def create_user(
        self,
        *,
        firstname: str,
        email: str,
        password: str,
        lastname: Optional[str] = None,
        standard: Optional[int] = None,
        subjects: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        email = email.lower().strip()
        if self.get_user_by_email(email):
            raise ValueError("An account with this email already exists.")

        if len(password) < 6:
            raise ValueError("Password must be at least 6 characters long.")

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user_doc: Dict[str, Any] = {
            "id": f"user_{uuid4().hex}",
            "firstname": firstname.strip(),
            "lastname": lastname.strip() if lastname else None,
            "email": email,
            "password_hash": password_hash,
            "academic": {
                "standard": standard,
                "subjects": [{"name": name.strip(), "overall_efficiency": 0} for name in subjects or []],
            },
            "subscription": {"status": None, "date_of_activation": None, "plan_id": None},
            "free_trial": {"availed": False, "active": False, "date_of_activation": None, "date_of_deactivation": None},
            "category": None,
            "planner": False,
            "created_at": datetime.now(timezone.utc),
        }

        self.users.insert_one(user_doc)
        return self._normalize_user(user_doc)

    def verify_credentials(self, email: str, password: str) -> Dict[str, Any]:
        user = self.get_user_by_email(email)
        if not user:
            raise ValueError("Invalid email or password.")

        stored_hash = user.get("password_hash")
        if not stored_hash:
            raise ValueError("Password not set for this account.")

        if not bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8")):
            raise ValueError("Invalid email or password.")
        return user

    def create_session(self, user_id: str) -> str:
        for _ in range(3):
            token = secrets.token_urlsafe(32)
            try:
                self.sessions.insert_one({
                    "_id": token,
                    "user_id": user_id,
                    "created_at": datetime.now(timezone.utc),
                })
                return token
            except DuplicateKeyError:
                continue
        raise RuntimeError("Failed to create session token")

    def drop_session(self, token: str) -> None:
        self.sessions.delete_one({"_id": token})

    def resolve_token(self, token: str) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        session = self.sessions.find_one({"_id": token})
        if not session:
            return None

        user = self.get_user_by_id(session.get("user_id"))
        if not user:
            self.sessions.delete_one({"_id": token})
            return None
        return user

    def public_view(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": user.get("id"),
            "firstname": user.get("firstname"),
            "lastname": user.get("lastname"),
            "email": user.get("email"),
            "academic": user.get("academic"),
            "subscription": user.get("subscription"),
            "free_trial": user.get("free_trial"),
            "category": user.get("category"),
            "planner": bool(user.get("planner")),
        }

    def list_eligible(self) -> List[Dict[str, Any]]:
        """Students with an active subscription (with a known start) or an active free trial."""
        try:
            return [self._normalize_user(doc) for doc in self.users.find(ELIGIBLE_USERS_QUERY)]
        except PyMongoError as exc:
            logger.error("user_store: failed to list eligible users: %s", exc)
            raise RetrievalError("Unable to load eligible users.") from exc

    def activate_free_trial(self, user_id: str) -> Dict[str, Any]:
        user = self.get_user_by_id(user_id)
        if not user:
            raise PlannerNotFound("User not found")
        if (user.get("free_trial") or {}).get("availed"):
            raise PreconditionFailed("Free trial has already been availed.")

        activated_at = datetime.now(timezone.utc)
        self.users.update_one(
            {"id": user_id},
            {
                "$set": {
                    "free_trial.active": True,
                    "free_trial.availed": True,
                    "free_trial.date_of_activation": activated_at,
                    "free_trial.date_of_deactivation": activated_at + timedelta(days=FREE_TRIAL_DAYS),
                    "category": "free",
                }
            },
        )
        return self.get_user_by_id(user_id)

    def mark_planner_enabled(self, user_id: str) -> None:
        self.users.update_one({"id": user_id}, {"$set": {"planner": True}})


_USER_STORE: Optional[UserStoreProtocol] = None


def get_user_store() -> UserStoreProtocol:
    global _USER_STORE
    if _USER_STORE is None:
        try:
            _USER_STORE = MongoUserStore()
        except PyMongoError as exc:
            raise RuntimeError("Unable to initialize Mongo-backed user store. Verify MongoDB connectivity.") from exc
    return _USER_STORE
