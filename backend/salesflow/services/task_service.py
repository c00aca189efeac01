"""Task Service - Task status transitions"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from pymongo.database import Database

from ..domain.models import ActorContext, TaskInstance
from ..domain.enums import FlowKind, TaskStatus
from ..engine.permission_guard import PermissionGuard
from ..engine.rollup import build_task_view, stage_is_completed
from ..engine.status_rules import status_updates
from ..realtime.change_feed import ChangeFeed
from ..repositories.flow_repo import FlowRepository
from ..repositories.task_repo import TaskInstanceRepository
from ..repositories.template_repo import TemplateRepository
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TaskTransitionResult:
    """Outcome of a status change"""
    instance: TaskInstance
    stage_id: str
    stage_is_completed: bool
    # Comment threads of the task should be re-read after a status flip
    refresh_comments: bool = True


class TaskService:
    """Service for task instance state"""

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self.flow_repo = FlowRepository(database, feed)
        self.template_repo = TemplateRepository(database, feed)
        self.task_repo = TaskInstanceRepository(database, feed)
        self.permission_guard = PermissionGuard()

    def set_task_status(
        self,
        kind: FlowKind,
        flow_id: str,
        task_id: str,
        new_status: TaskStatus,
        actor: ActorContext,
        completed_at: Optional[datetime] = None
    ) -> TaskTransitionResult:
        """
        Move a task through its status lifecycle

        Creates the instance on first touch. Completing stamps completed_at
        (the explicit value for administrators, now otherwise) and clears the
        direct assignee; leaving completed clears completed_at. Only
        administrators may change a task that is currently completed.
        """
        self.flow_repo.get_flow_or_raise(kind, flow_id)
        task = self.template_repo.get_task_template_or_raise(kind, task_id)

        instance = self.task_repo.get_instance(kind, flow_id, task_id)
        self.permission_guard.ensure_can_mutate_task(actor, instance)

        if completed_at is not None and not actor.is_admin:
            logger.info(
                f"Ignoring explicit completion date from non-admin {actor.user_id}",
                extra={"flow_id": flow_id, "task_id": task_id, "user_id": actor.user_id}
            )
            completed_at = None

        updates = status_updates(new_status, utc_now(), completed_at)

        if instance is None:
            fields = {k: v for k, v in updates.items() if k != "status"}
            fields["assignee_id"] = None
            instance, created = self.task_repo.ensure_instance(
                kind, flow_id, task_id, status=new_status, **fields
            )
            if not created:
                # Lost the creation race; apply the transition to the winner's row
                self.permission_guard.ensure_can_mutate_task(actor, instance)
                instance = self.task_repo.update_instance(kind, instance.id, updates)
        else:
            instance = self.task_repo.update_instance(kind, instance.id, updates)

        logger.info(
            f"Task {task_id} in flow {flow_id} set to {new_status.value}",
            extra={
                "flow_id": flow_id, "flow_kind": kind.value, "task_id": task_id,
                "user_id": actor.user_id, "status": new_status.value, "action": "set_status"
            }
        )

        return TaskTransitionResult(
            instance=instance,
            stage_id=task.stage_id,
            stage_is_completed=self.stage_completion(kind, flow_id, task.stage_id)
        )

    def stage_completion(self, kind: FlowKind, flow_id: str, stage_id: str) -> bool:
        """Recompute a stage's completion for one flow from current task state"""
        tasks = self.template_repo.list_tasks_for_stages(kind, [stage_id]).get(stage_id, [])
        instances = {i.task_id: i for i in self.task_repo.list_for_flow(kind, flow_id)}
        views = [build_task_view(task, instances.get(task.id), [], {}) for task in tasks]
        return stage_is_completed(views)
