"""
revision_planner/services/mongo.py

One process-wide MongoClient shared by every store. Datetimes come back
timezone-aware in PLANNER_TIMEZONE so day arithmetic never mixes naive and
aware values. Planner data and the question bank may live in different
databases on the same cluster.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import certifi
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from revision_planner.config import (
    MONGODB_DB,
    MONGODB_QUESTIONS_DB,
    MONGODB_SELECTION_TIMEOUT_MS,
    MONGODB_TLS_ALLOW_INVALID_CERTS,
    MONGODB_TLS_CA_FILE,
    MONGODB_URI,
    PLANNER_TIMEZONE,
)

logger = logging.getLogger(__name__)

_CLIENT: Optional[MongoClient] = None


def tls_options(uri: str) -> Dict[str, Any]:
    """TLS kwargs for `uri`: an explicit CA file wins, Atlas-style URIs get certifi's bundle."""
    lowered = uri.lower()
    options: Dict[str, Any] = {}
    if MONGODB_TLS_CA_FILE:
        options["tlsCAFile"] = MONGODB_TLS_CA_FILE
    elif lowered.startswith("mongodb+srv://") or "tls=true" in lowered or "ssl=true" in lowered:
        options["tlsCAFile"] = certifi.where()
    if MONGODB_TLS_ALLOW_INVALID_CERTS:
        options["tlsAllowInvalidCertificates"] = True
    return options


def get_mongo_client() -> MongoClient:
    global _CLIENT
    if _CLIENT is None:
        _CLIENT = MongoClient(
            MONGODB_URI,
            serverSelectionTimeoutMS=MONGODB_SELECTION_TIMEOUT_MS,
            tz_aware=True,
            tzinfo=PLANNER_TIMEZONE,
            **tls_options(MONGODB_URI),
        )
    return _CLIENT


def close_mongo_client() -> None:
    global _CLIENT
    if _CLIENT is not None:
        _CLIENT.close()
        _CLIENT = None
        logger.info("mongo: client closed")


def get_database(db_name: Optional[str] = None) -> Database:
    return get_mongo_client()[db_name or MONGODB_DB]


def get_questions_database() -> Database:
    return get_database(MONGODB_QUESTIONS_DB)


def get_collection(name: str, db_name: Optional[str] = None) -> Collection:
    return get_database(db_name)[name]
