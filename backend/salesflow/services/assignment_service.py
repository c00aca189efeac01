"""Assignment Service - Assignee reconciliation and default assignees"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..domain.models import (
    ActorContext, AssignmentHistoryEntry, DefaultTaskAssignment, TaskAssignment, TaskInstance
)
from ..domain.enums import FlowKind
from ..domain.errors import ValidationError
from ..engine.permission_guard import PermissionGuard
from ..engine.status_rules import diff_assignees, single_assignee
from ..realtime.change_feed import ChangeFeed
from ..repositories.assignment_repo import AssignmentRepository
from ..repositories.flow_repo import FlowRepository
from ..repositories.task_repo import TaskInstanceRepository
from ..repositories.template_repo import TemplateRepository
from ..utils.idgen import generate_assignment_id, generate_history_id, generate_default_assignment_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of an assignee reconciliation"""
    instance: TaskInstance
    assigned_user_ids: List[str]
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    # Number of store writes issued; zero when the desired set was already in place
    writes: int = 0


def _normalise_user_ids(user_ids: Iterable[str]) -> List[str]:
    cleaned = []
    for user_id in user_ids:
        if not user_id or not str(user_id).strip():
            raise ValidationError("Los usuarios asignados no pueden estar vacíos")
        if user_id not in cleaned:
            cleaned.append(user_id)
    return cleaned


class AssignmentService:
    """Service for task assignments"""

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self.flow_repo = FlowRepository(database, feed)
        self.template_repo = TemplateRepository(database, feed)
        self.task_repo = TaskInstanceRepository(database, feed)
        self.assignment_repo = AssignmentRepository(database, feed)
        self.permission_guard = PermissionGuard()

    def reconcile_assignees(
        self,
        kind: FlowKind,
        flow_id: str,
        task_id: str,
        desired_user_ids: Iterable[str],
        actor: ActorContext
    ) -> ReconcileResult:
        """
        Replace a task's assignee set with the desired set using set differences

        Removed users are deleted one by one, each followed by its history row;
        added users are inserted; the direct assignee is written last and only
        when it changes. Any store failure aborts with StoreError before the
        direct assignee is touched.
        """
        desired = _normalise_user_ids(desired_user_ids)
        self.flow_repo.get_flow_or_raise(kind, flow_id)
        self.template_repo.get_task_template_or_raise(kind, task_id)

        writes = 0
        instance = self.task_repo.get_instance(kind, flow_id, task_id)
        self.permission_guard.ensure_can_mutate_task(actor, instance)
        if instance is None:
            instance, created = self.task_repo.ensure_instance(kind, flow_id, task_id)
            if created:
                writes += 1

        current = {a.user_id: a for a in self.assignment_repo.list_for_task(kind, flow_id, task_id)}
        to_remove, to_add = diff_assignees(current.keys(), desired)
        now = utc_now()

        removed: List[str] = []
        for user_id in to_remove:
            assignment = current[user_id]
            if not self.assignment_repo.delete_assignment(assignment.id):
                # Someone else removed it (and logged it) first
                continue
            writes += 1
            self.assignment_repo.append_history(AssignmentHistoryEntry(
                id=generate_history_id(),
                flow_kind=kind,
                flow_id=flow_id,
                task_id=task_id,
                user_id=user_id,
                assigned_by=assignment.assigned_by,
                assigned_at=assignment.assigned_at,
                removed_by=actor.user_id,
                removed_at=now,
                status=instance.status
            ))
            writes += 1
            removed.append(user_id)

        added: List[str] = []
        for user_id in to_add:
            try:
                self.assignment_repo.insert_assignment(TaskAssignment(
                    id=generate_assignment_id(),
                    flow_kind=kind,
                    flow_id=flow_id,
                    task_id=task_id,
                    user_id=user_id,
                    assigned_by=actor.user_id,
                    assigned_at=now
                ))
            except DuplicateKeyError:
                logger.info(
                    f"User {user_id} already assigned to {flow_id}/{task_id}",
                    extra={"flow_id": flow_id, "task_id": task_id, "user_id": user_id}
                )
                continue
            writes += 1
            added.append(user_id)

        assignee_id = single_assignee(desired)
        if instance.assignee_id != assignee_id:
            instance = self.task_repo.update_instance(kind, instance.id, {"assignee_id": assignee_id})
            writes += 1

        logger.info(
            f"Reconciled assignees for {flow_id}/{task_id}: +{len(added)} -{len(removed)} ({writes} writes)",
            extra={
                "flow_id": flow_id, "flow_kind": kind.value, "task_id": task_id,
                "user_id": actor.user_id, "action": "reconcile_assignees"
            }
        )
        return ReconcileResult(
            instance=instance,
            assigned_user_ids=sorted(desired),
            added=added,
            removed=removed,
            writes=writes
        )

    def list_assignees(self, kind: FlowKind, flow_id: str, task_id: str) -> List[TaskAssignment]:
        return self.assignment_repo.list_for_task(kind, flow_id, task_id)

    def list_history(self, kind: FlowKind, flow_id: str, task_id: str) -> List[AssignmentHistoryEntry]:
        return self.assignment_repo.list_history(kind, flow_id, task_id)

    # =========================================================================
    # Default assignees
    # =========================================================================

    def list_default_assignees(self, kind: FlowKind, task_id: str) -> List[DefaultTaskAssignment]:
        return self.assignment_repo.list_defaults(kind, [task_id]).get(task_id, [])

    def set_default_assignees(
        self,
        kind: FlowKind,
        task_id: str,
        user_ids: Iterable[str],
        actor: ActorContext
    ) -> List[DefaultTaskAssignment]:
        """Replace the template task's default assignees (administrators only)"""
        self.permission_guard.ensure_admin(actor, "set_default_assignees")
        users = _normalise_user_ids(user_ids)
        self.template_repo.get_task_template_or_raise(kind, task_id)

        now = utc_now()
        defaults = [
            DefaultTaskAssignment(
                id=generate_default_assignment_id(),
                flow_kind=kind,
                task_id=task_id,
                user_id=user_id,
                created_by=actor.user_id,
                updated_by=actor.user_id,
                created_at=now
            )
            for user_id in users
        ]
        return self.assignment_repo.replace_defaults(kind, task_id, defaults)

    def apply_default_assignees(
        self,
        kind: FlowKind,
        flow_id: str,
        flow_template_id: str,
        actor: ActorContext
    ) -> Dict[str, ReconcileResult]:
        """Seed a new flow's tasks with their template default assignees"""
        tasks = self.template_repo.list_tasks_for_template(kind, flow_template_id)
        defaults = self.assignment_repo.list_defaults(kind, [t.id for t in tasks])

        results: Dict[str, ReconcileResult] = {}
        for task in tasks:
            user_ids = [d.user_id for d in defaults.get(task.id, [])]
            if not user_ids:
                continue
            results[task.id] = self.reconcile_assignees(kind, flow_id, task.id, user_ids, actor)

        logger.info(
            f"Applied default assignees to {len(results)} tasks of flow {flow_id}",
            extra={"flow_id": flow_id, "flow_kind": kind.value, "action": "apply_defaults"}
        )
        return results
