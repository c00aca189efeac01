"""Assignment Repository - Task assignments, removal history and default assignees"""
from typing import Dict, List, Optional, Sequence
from pymongo import DESCENDING

from .base import BaseRepository
from .mongo_client import (
    TASK_ASSIGNMENTS, TASK_ASSIGNMENT_HISTORY, DEFAULT_TASK_ASSIGNMENTS,
    store_operation, strip_id, to_document
)
from ..domain.models import TaskAssignment, AssignmentHistoryEntry, DefaultTaskAssignment
from ..domain.enums import ChangeEventType, FlowKind
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AssignmentRepository(BaseRepository):
    """Repository for task_assignments and task_assignment_history"""

    # =========================================================================
    # Assignments
    # =========================================================================

    def list_for_task(self, kind: FlowKind, flow_id: str, task_id: str) -> List[TaskAssignment]:
        """Current assignment rows for a (flow, template task) pair"""
        with store_operation("cargar asignaciones"):
            cursor = self._collection(TASK_ASSIGNMENTS).find({
                "flow_kind": kind.value, "flow_id": flow_id, "task_id": task_id
            })
            return [TaskAssignment.model_validate(strip_id(doc)) for doc in cursor]

    def list_for_flow(self, kind: FlowKind, flow_id: str) -> List[TaskAssignment]:
        with store_operation("cargar asignaciones del flujo"):
            cursor = self._collection(TASK_ASSIGNMENTS).find({"flow_kind": kind.value, "flow_id": flow_id})
            return [TaskAssignment.model_validate(strip_id(doc)) for doc in cursor]

    def list_for_user(self, user_id: str, kind: Optional[FlowKind] = None) -> List[TaskAssignment]:
        query = {"user_id": user_id}
        if kind is not None:
            query["flow_kind"] = kind.value
        with store_operation("cargar asignaciones del usuario"):
            cursor = self._collection(TASK_ASSIGNMENTS).find(query)
            return [TaskAssignment.model_validate(strip_id(doc)) for doc in cursor]

    def get_assignment(self, assignment_id: str) -> Optional[TaskAssignment]:
        with store_operation("cargar asignación"):
            doc = self._collection(TASK_ASSIGNMENTS).find_one({"id": assignment_id})
        return TaskAssignment.model_validate(strip_id(doc)) if doc else None

    def insert_assignment(self, assignment: TaskAssignment) -> TaskAssignment:
        """Insert one assignment row; DuplicateKeyError propagates when the user is already assigned"""
        doc = to_document(assignment)
        with store_operation("asignar usuario"):
            self._collection(TASK_ASSIGNMENTS).insert_one(doc)
        logger.info(
            f"Assigned {assignment.user_id} to {assignment.flow_id}/{assignment.task_id}",
            extra={
                "flow_id": assignment.flow_id, "task_id": assignment.task_id,
                "user_id": assignment.user_id, "action": "assign"
            }
        )
        self._publish(TASK_ASSIGNMENTS, ChangeEventType.INSERT, new=doc)
        return assignment

    def delete_assignment(self, assignment_id: str) -> bool:
        """Delete one assignment row; False when it was already gone"""
        with store_operation("desasignar usuario"):
            old = self._collection(TASK_ASSIGNMENTS).find_one_and_delete({"id": assignment_id})
        if old is None:
            return False
        logger.info(
            f"Removed assignment {assignment_id}",
            extra={
                "flow_id": old.get("flow_id"), "task_id": old.get("task_id"),
                "user_id": old.get("user_id"), "action": "unassign"
            }
        )
        self._publish(TASK_ASSIGNMENTS, ChangeEventType.DELETE, old=old)
        return True

    # =========================================================================
    # History
    # =========================================================================

    def append_history(self, entry: AssignmentHistoryEntry) -> AssignmentHistoryEntry:
        doc = to_document(entry)
        with store_operation("registrar historial de asignación"):
            self._collection(TASK_ASSIGNMENT_HISTORY).insert_one(doc)
        self._publish(TASK_ASSIGNMENT_HISTORY, ChangeEventType.INSERT, new=doc)
        return entry

    def list_history(self, kind: FlowKind, flow_id: str, task_id: str) -> List[AssignmentHistoryEntry]:
        """Removal history for a task, newest first"""
        with store_operation("cargar historial de asignación"):
            cursor = self._collection(TASK_ASSIGNMENT_HISTORY).find({
                "flow_kind": kind.value, "flow_id": flow_id, "task_id": task_id
            }).sort("removed_at", DESCENDING)
            return [AssignmentHistoryEntry.model_validate(strip_id(doc)) for doc in cursor]

    # =========================================================================
    # Default assignees (template level)
    # =========================================================================

    def list_defaults(self, kind: FlowKind, task_ids: Sequence[str]) -> Dict[str, List[DefaultTaskAssignment]]:
        """Default assignees grouped by template task id"""
        grouped: Dict[str, List[DefaultTaskAssignment]] = {task_id: [] for task_id in task_ids}
        if not task_ids:
            return grouped
        with store_operation("cargar asignaciones por defecto"):
            cursor = self._collection(DEFAULT_TASK_ASSIGNMENTS).find({
                "flow_kind": kind.value, "task_id": {"$in": list(task_ids)}
            })
            for doc in cursor:
                default = DefaultTaskAssignment.model_validate(strip_id(doc))
                grouped.setdefault(default.task_id, []).append(default)
        return grouped

    def replace_defaults(
        self,
        kind: FlowKind,
        task_id: str,
        defaults: Sequence[DefaultTaskAssignment]
    ) -> List[DefaultTaskAssignment]:
        """Replace a template task's default assignees wholesale"""
        collection = self._collection(DEFAULT_TASK_ASSIGNMENTS)
        query = {"flow_kind": kind.value, "task_id": task_id}
        with store_operation("actualizar asignaciones por defecto"):
            removed = list(collection.find(query))
            collection.delete_many(query)
            docs = [to_document(d) for d in defaults]
            if docs:
                collection.insert_many(docs)

        logger.info(
            f"Replaced default assignees for {kind.value} task {task_id}: {len(removed)} -> {len(docs)}",
            extra={"task_id": task_id, "flow_kind": kind.value, "action": "default_assignees"}
        )
        for old in removed:
            self._publish(DEFAULT_TASK_ASSIGNMENTS, ChangeEventType.DELETE, old=old)
        for new in docs:
            self._publish(DEFAULT_TASK_ASSIGNMENTS, ChangeEventType.INSERT, new=new)
        return list(defaults)
