"""
MongoDB client singleton for database operations.
Provides connection management and collection access.
"""

import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from conservation.config import get_settings


logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None


def get_mongodb_client() -> MongoClient:
    """
    Get MongoDB client singleton.
    Datetimes come back timezone-aware (UTC).
    """
    global _client
    if _client is None:
        settings = get_settings()
        _client = MongoClient(
            settings.mongodb_uri,
            serverSelectionTimeoutMS=2000,
            tz_aware=True,
        )
    return _client


def get_database() -> Database:
    """Get the configured database."""
    settings = get_settings()
    return get_mongodb_client()[settings.mongodb_database]


def get_collection(collection_name: str) -> Collection:
    """Get a specific collection from the database."""
    return get_database()[collection_name]


def close_mongodb_client() -> None:
    """Close the MongoDB client connection."""
    global _client
    if _client is not None:
        _client.close()
        _client = None


# Collection names as constants
class Collections:
    """MongoDB collection names."""
    AGENTS = "agents"
    CLIENTS = "clients"
    CONSERVATION_ALERTS = "conservation_alerts"
    NOTIFICATIONS = "notifications"
