"""Comment Service - Task comment threads"""
from typing import Iterable, List, Optional
from pymongo.database import Database

from ..domain.models import ActorContext, TaskComment
from ..domain.enums import FlowKind
from ..domain.errors import CommentNotFoundError, ValidationError
from ..engine.permission_guard import PermissionGuard
from ..realtime.change_feed import ChangeFeed
from ..repositories.comment_repo import CommentRepository
from ..repositories.flow_repo import FlowRepository
from ..repositories.task_repo import TaskInstanceRepository
from ..repositories.template_repo import TemplateRepository
from ..utils.idgen import generate_comment_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CommentService:
    """Append-only comments with administrator-only deletion"""

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self.flow_repo = FlowRepository(database, feed)
        self.template_repo = TemplateRepository(database, feed)
        self.task_repo = TaskInstanceRepository(database, feed)
        self.comment_repo = CommentRepository(database, feed)
        self.permission_guard = PermissionGuard()

    def add_comment(
        self,
        kind: FlowKind,
        flow_id: str,
        task_id: str,
        actor: ActorContext,
        body: str,
        mentioned_user_ids: Iterable[str] = ()
    ) -> TaskComment:
        """Append a comment, creating the task instance on first touch"""
        content = (body or "").strip()
        if not content:
            raise ValidationError("El comentario no puede estar vacío")

        self.flow_repo.get_flow_or_raise(kind, flow_id)
        self.template_repo.get_task_template_or_raise(kind, task_id)

        instance, _ = self.task_repo.ensure_instance(kind, flow_id, task_id)

        mentioned: List[str] = []
        for user_id in mentioned_user_ids:
            if user_id and user_id not in mentioned:
                mentioned.append(user_id)

        comment = TaskComment(
            id=generate_comment_id(),
            flow_kind=kind,
            task_instance_id=instance.id,
            user_id=actor.user_id,
            content=content,
            mentioned_users=mentioned,
            created_at=utc_now()
        )
        return self.comment_repo.create_comment(comment)

    def list_comments(self, kind: FlowKind, flow_id: str, task_id: str) -> List[TaskComment]:
        """Comments of a task, most recent first; empty when the task was never touched"""
        instance = self.task_repo.get_instance(kind, flow_id, task_id)
        if instance is None:
            return []
        return self.comment_repo.list_for_instance(instance.id)

    def delete_comment(self, comment_id: str, actor: ActorContext) -> None:
        self.permission_guard.ensure_can_delete_comment(actor, comment_id)
        if not self.comment_repo.delete_comment(comment_id):
            raise CommentNotFoundError(f"Comment {comment_id} not found")
        logger.info(
            f"Comment {comment_id} deleted by {actor.user_id}",
            extra={"comment_id": comment_id, "user_id": actor.user_id, "action": "delete_comment"}
        )
