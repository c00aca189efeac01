"""MongoDB Client - Connection and Collection Management"""
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional
from pydantic import BaseModel
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from ..config.settings import settings
from ..domain.enums import FlowKind
from ..domain.errors import StoreError
from ..utils.logger import get_logger
from ..utils.time import to_storage

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


# Collection names per flow kind
FLOW_COLLECTIONS: Dict[FlowKind, str] = {
    FlowKind.SALE: "reservation_flows",
    FlowKind.PAYMENT: "commission_flows",
}

FLOW_TEMPLATE_COLLECTIONS: Dict[FlowKind, str] = {
    FlowKind.SALE: "sale_flows",
    FlowKind.PAYMENT: "payment_flows",
}

STAGE_COLLECTIONS: Dict[FlowKind, str] = {
    FlowKind.SALE: "sale_flow_stages",
    FlowKind.PAYMENT: "payment_flow_stages",
}

TASK_TEMPLATE_COLLECTIONS: Dict[FlowKind, str] = {
    FlowKind.SALE: "sale_flow_tasks",
    FlowKind.PAYMENT: "payment_flow_tasks",
}

TASK_INSTANCE_COLLECTIONS: Dict[FlowKind, str] = {
    FlowKind.SALE: "reservation_flow_tasks",
    FlowKind.PAYMENT: "commission_flow_tasks",
}

TASK_ASSIGNMENTS = "task_assignments"
TASK_ASSIGNMENT_HISTORY = "task_assignment_history"
TASK_COMMENTS = "task_comments"
COLLAPSED_TASKS = "collapsed_tasks"
DEFAULT_TASK_ASSIGNMENTS = "default_task_assignments"
PROFILES = "profiles"
RESERVATIONS = "reservations"
BROKER_COMMISSIONS = "broker_commissions"


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes(database: Optional[Database] = None) -> None:
    """Create all required indexes"""
    db = database if database is not None else get_database()
    logger.info("Creating MongoDB indexes...")

    # Flow instances
    reservation_flows = db[FLOW_COLLECTIONS[FlowKind.SALE]]
    reservation_flows.create_index("reservation_id")
    reservation_flows.create_index("status")

    commission_flows = db[FLOW_COLLECTIONS[FlowKind.PAYMENT]]
    commission_flows.create_index([("broker_commission_id", ASCENDING), ("is_second_payment", ASCENDING)])
    commission_flows.create_index("status")

    # Templates
    for kind in FlowKind:
        db[FLOW_TEMPLATE_COLLECTIONS[kind]].create_index("name")
        db[STAGE_COLLECTIONS[kind]].create_index([("flow_template_id", ASCENDING), ("order", ASCENDING)])
        db[TASK_TEMPLATE_COLLECTIONS[kind]].create_index([("stage_id", ASCENDING), ("order", ASCENDING)])

    # Task instances: one per (flow, template task)
    for kind in FlowKind:
        instances = db[TASK_INSTANCE_COLLECTIONS[kind]]
        instances.create_index([("flow_id", ASCENDING), ("task_id", ASCENDING)], unique=True)
        instances.create_index([("assignee_id", ASCENDING), ("status", ASCENDING)])

    # Assignments: one row per (task instance, user)
    task_assignments = db[TASK_ASSIGNMENTS]
    task_assignments.create_index(
        [("flow_kind", ASCENDING), ("flow_id", ASCENDING), ("task_id", ASCENDING), ("user_id", ASCENDING)],
        unique=True
    )
    task_assignments.create_index([("user_id", ASCENDING), ("flow_kind", ASCENDING)])

    history = db[TASK_ASSIGNMENT_HISTORY]
    history.create_index([("flow_id", ASCENDING), ("task_id", ASCENDING)])
    history.create_index([("user_id", ASCENDING), ("removed_at", DESCENDING)])

    comments = db[TASK_COMMENTS]
    comments.create_index([("task_instance_id", ASCENDING), ("created_at", DESCENDING)])

    collapsed = db[COLLAPSED_TASKS]
    collapsed.create_index([("user_id", ASCENDING), ("expires_at", ASCENDING)])
    collapsed.create_index("task_assignment_id")
    collapsed.create_index("expires_at", background=True)

    defaults = db[DEFAULT_TASK_ASSIGNMENTS]
    defaults.create_index([("flow_kind", ASCENDING), ("task_id", ASCENDING)])

    db[BROKER_COMMISSIONS].create_index("reservation_id")
    db[PROFILES].create_index("user_type")

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except PyMongoError as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }


@contextmanager
def store_operation(action: str) -> Iterator[None]:
    """
    Wrap a store call so driver failures surface as StoreError

    Duplicate-key errors pass through untouched; callers use them to detect a
    concurrent lazy create.
    """
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error(f"Store operation failed ({action}): {e}", exc_info=True, extra={"action": action})
        raise StoreError(str(e), details={"action": action})


def _storage_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_storage(value)
    if isinstance(value, dict):
        return {k: _storage_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_storage_value(v) for v in value]
    return value


def to_document(model: BaseModel) -> Dict[str, Any]:
    """
    Convert a model into a storable document keyed by its id

    Don't use mode="json" - it converts datetime to strings, breaking range queries.
    """
    doc = _storage_value(model.model_dump())
    doc["_id"] = doc["id"]
    return doc


def to_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Normalise a $set payload (enums to values, datetimes to storage form)"""
    return _storage_value(updates)


def strip_id(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Drop the Mongo _id so the document validates into a model"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc
