"""Base Repository - Shared store handle and change publishing"""
from typing import Any, Dict, Optional
from pymongo.collection import Collection
from pymongo.database import Database

from .mongo_client import get_database, strip_id
from ..domain.enums import ChangeEventType
from ..realtime.change_feed import ChangeFeed, get_change_feed


class BaseRepository:
    """
    Holds the database handle and the change feed writes are published to

    Both default to the process-wide instances; tests pass their own.
    """

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self._db: Database = database if database is not None else get_database()
        self._feed: ChangeFeed = feed if feed is not None else get_change_feed()

    def _collection(self, name: str) -> Collection:
        return self._db[name]

    def _publish(
        self,
        table: str,
        event_type: ChangeEventType,
        old: Optional[Dict[str, Any]] = None,
        new: Optional[Dict[str, Any]] = None
    ) -> None:
        self._feed.publish_change(table, event_type, old=strip_id(old), new=strip_id(new))
