"""Collapsed Task Repository - Per-user suppression markers"""
from datetime import datetime
from typing import List, Optional

from .base import BaseRepository
from .mongo_client import COLLAPSED_TASKS, store_operation, strip_id, to_document
from ..domain.models import CollapsedTask
from ..domain.enums import ChangeEventType
from ..utils.logger import get_logger
from ..utils.time import to_storage

logger = get_logger(__name__)


class CollapsedTaskRepository(BaseRepository):
    """Repository for collapsed_tasks"""

    def create_marker(self, marker: CollapsedTask) -> CollapsedTask:
        doc = to_document(marker)
        with store_operation("ocultar tarea"):
            self._collection(COLLAPSED_TASKS).insert_one(doc)
        logger.info(
            f"Collapsed assignment {marker.task_assignment_id} until {marker.expires_at.isoformat()}",
            extra={"user_id": marker.user_id, "action": "collapse"}
        )
        self._publish(COLLAPSED_TASKS, ChangeEventType.INSERT, new=doc)
        return marker

    def get_marker(self, collapsed_id: str) -> Optional[CollapsedTask]:
        with store_operation("cargar tarea oculta"):
            doc = self._collection(COLLAPSED_TASKS).find_one({"id": collapsed_id})
        return CollapsedTask.model_validate(strip_id(doc)) if doc else None

    def delete_marker(self, collapsed_id: str) -> bool:
        with store_operation("mostrar tarea"):
            old = self._collection(COLLAPSED_TASKS).find_one_and_delete({"id": collapsed_id})
        if old is None:
            return False
        logger.info(f"Expanded collapsed task {collapsed_id}", extra={"user_id": old.get("user_id"), "action": "expand"})
        self._publish(COLLAPSED_TASKS, ChangeEventType.DELETE, old=old)
        return True

    def list_active_for_user(self, user_id: str, now: datetime) -> List[CollapsedTask]:
        """Markers of the user that have not expired at `now` (expires_at >= now)"""
        with store_operation("cargar tareas ocultas"):
            cursor = self._collection(COLLAPSED_TASKS).find({
                "user_id": user_id,
                "expires_at": {"$gte": to_storage(now)}
            })
            return [CollapsedTask.model_validate(strip_id(doc)) for doc in cursor]

    def purge_expired(self, now: datetime) -> int:
        """Delete every marker that expired before `now`; returns how many went"""
        query = {"expires_at": {"$lt": to_storage(now)}}
        collection = self._collection(COLLAPSED_TASKS)
        with store_operation("limpiar tareas ocultas"):
            expired = list(collection.find(query))
            if not expired:
                return 0
            collection.delete_many({"id": {"$in": [doc["id"] for doc in expired]}})

        for old in expired:
            self._publish(COLLAPSED_TASKS, ChangeEventType.DELETE, old=old)
        logger.info(f"Purged {len(expired)} expired collapsed tasks", extra={"action": "purge_collapsed"})
        return len(expired)
