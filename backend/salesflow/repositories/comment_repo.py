"""Comment Repository - Task comment threads"""
from typing import Dict, List, Optional, Sequence
from pymongo import DESCENDING

from .base import BaseRepository
from .mongo_client import TASK_COMMENTS, store_operation, strip_id, to_document
from ..domain.models import TaskComment
from ..domain.enums import ChangeEventType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CommentRepository(BaseRepository):
    """Repository for task_comments"""

    def create_comment(self, comment: TaskComment) -> TaskComment:
        doc = to_document(comment)
        with store_operation("agregar comentario"):
            self._collection(TASK_COMMENTS).insert_one(doc)
        logger.info(
            f"Added comment {comment.id} to task instance {comment.task_instance_id}",
            extra={"comment_id": comment.id, "user_id": comment.user_id, "action": "comment"}
        )
        self._publish(TASK_COMMENTS, ChangeEventType.INSERT, new=doc)
        return comment

    def get_comment(self, comment_id: str) -> Optional[TaskComment]:
        with store_operation("cargar comentario"):
            doc = self._collection(TASK_COMMENTS).find_one({"id": comment_id})
        return TaskComment.model_validate(strip_id(doc)) if doc else None

    def list_for_instance(self, task_instance_id: str) -> List[TaskComment]:
        """Comments of a task instance, most recent first"""
        with store_operation("cargar comentarios"):
            cursor = self._collection(TASK_COMMENTS).find(
                {"task_instance_id": task_instance_id}
            ).sort("created_at", DESCENDING)
            return [TaskComment.model_validate(strip_id(doc)) for doc in cursor]

    def count_for_instances(self, task_instance_ids: Sequence[str]) -> Dict[str, int]:
        """Comment count per task instance id (instances without comments are omitted)"""
        if not task_instance_ids:
            return {}
        pipeline = [
            {"$match": {"task_instance_id": {"$in": list(task_instance_ids)}}},
            {"$group": {"_id": "$task_instance_id", "count": {"$sum": 1}}},
        ]
        with store_operation("contar comentarios"):
            return {row["_id"]: row["count"] for row in self._collection(TASK_COMMENTS).aggregate(pipeline)}

    def delete_comment(self, comment_id: str) -> bool:
        """Hard-delete a comment; False when it did not exist"""
        with store_operation("eliminar comentario"):
            old = self._collection(TASK_COMMENTS).find_one_and_delete({"id": comment_id})
        if old is None:
            return False
        logger.info(f"Deleted comment {comment_id}", extra={"comment_id": comment_id, "action": "delete_comment"})
        self._publish(TASK_COMMENTS, ChangeEventType.DELETE, old=old)
        return True
