"""Permission Guard - Authorization enforcement for workflow actions"""
from typing import Optional

from ..config.settings import settings
from ..domain.models import ActorContext, TaskInstance
from ..domain.enums import TaskStatus
from ..domain.errors import PermissionDeniedError
from ..utils.logger import get_logger

logger = get_logger(__name__)


COMPLETED_TASK_MESSAGE = "Solo los administradores pueden modificar tareas completadas"
DELETE_COMMENT_MESSAGE = "Solo los administradores pueden eliminar comentarios"
ADMIN_ONLY_MESSAGE = "Solo los administradores pueden realizar esta acción"


def is_admin_user_type(user_type: Optional[str]) -> bool:
    """A user is an administrator iff their profile user_type is the administrator type"""
    return user_type == settings.admin_user_type


class PermissionGuard:
    """
    Permission enforcement for task workflow operations

    Rules:
    - Anyone authenticated may change status, assign, and comment on tasks
    - Only administrators may mutate a task whose current status is completed
    - Only administrators may delete comments
    - Only administrators may rescind reservations or edit default assignees
    """

    def can_mutate_task(self, actor: ActorContext, instance: Optional[TaskInstance]) -> bool:
        """A task with no instance yet is not completed, so anyone may touch it"""
        if instance is None or instance.status != TaskStatus.COMPLETED:
            return True
        return actor.is_admin

    def ensure_can_mutate_task(self, actor: ActorContext, instance: Optional[TaskInstance]) -> None:
        if not self.can_mutate_task(actor, instance):
            logger.warning(
                f"Non-admin {actor.user_id} tried to modify completed task {instance.id}",
                extra={"user_id": actor.user_id, "flow_id": instance.flow_id, "task_id": instance.task_id}
            )
            raise PermissionDeniedError(
                COMPLETED_TASK_MESSAGE,
                details={"task_instance_id": instance.id}
            )

    def ensure_can_delete_comment(self, actor: ActorContext, comment_id: str) -> None:
        if not actor.is_admin:
            logger.warning(
                f"Non-admin {actor.user_id} tried to delete comment {comment_id}",
                extra={"user_id": actor.user_id, "comment_id": comment_id}
            )
            raise PermissionDeniedError(DELETE_COMMENT_MESSAGE, details={"comment_id": comment_id})

    def ensure_admin(self, actor: ActorContext, action: str) -> None:
        if not actor.is_admin:
            logger.warning(
                f"Non-admin {actor.user_id} tried admin-only action {action}",
                extra={"user_id": actor.user_id, "action": action}
            )
            raise PermissionDeniedError(ADMIN_ONLY_MESSAGE, details={"action": action})
