"""Task Instance Repository - Per-flow task state"""
from typing import Any, Dict, List, Optional, Tuple
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from .base import BaseRepository
from .mongo_client import TASK_INSTANCE_COLLECTIONS, store_operation, strip_id, to_document, to_updates
from ..domain.models import TaskInstance
from ..domain.enums import ChangeEventType, FlowKind, TaskStatus, INACTIVE_TASK_STATUSES
from ..domain.errors import NotFoundError, StoreError
from ..utils.idgen import generate_task_instance_id
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class TaskInstanceRepository(BaseRepository):
    """Repository for reservation_flow_tasks / commission_flow_tasks"""

    def _validate(self, kind: FlowKind, doc: Dict[str, Any]) -> TaskInstance:
        return TaskInstance.model_validate({**strip_id(doc), "flow_kind": kind})

    def get_instance(self, kind: FlowKind, flow_id: str, task_id: str) -> Optional[TaskInstance]:
        """Instance for a (flow, template task) pair, None when nobody has touched the task yet"""
        with store_operation("cargar tarea"):
            doc = self._collection(TASK_INSTANCE_COLLECTIONS[kind]).find_one(
                {"flow_id": flow_id, "task_id": task_id}
            )
        return self._validate(kind, doc) if doc else None

    def get_instance_by_id(self, kind: FlowKind, instance_id: str) -> Optional[TaskInstance]:
        with store_operation("cargar tarea"):
            doc = self._collection(TASK_INSTANCE_COLLECTIONS[kind]).find_one({"id": instance_id})
        return self._validate(kind, doc) if doc else None

    def list_for_flow(self, kind: FlowKind, flow_id: str) -> List[TaskInstance]:
        with store_operation("cargar tareas del flujo"):
            cursor = self._collection(TASK_INSTANCE_COLLECTIONS[kind]).find({"flow_id": flow_id})
            return [self._validate(kind, doc) for doc in cursor]

    def insert_instance(self, instance: TaskInstance) -> TaskInstance:
        """Insert a new instance; DuplicateKeyError propagates when one already exists"""
        table = TASK_INSTANCE_COLLECTIONS[instance.flow_kind]
        doc = to_document(instance)
        with store_operation("crear tarea"):
            self._collection(table).insert_one(doc)
        logger.info(
            f"Created task instance: {instance.id}",
            extra={"flow_id": instance.flow_id, "task_id": instance.task_id, "status": instance.status.value}
        )
        self._publish(table, ChangeEventType.INSERT, new=doc)
        return instance

    def ensure_instance(
        self,
        kind: FlowKind,
        flow_id: str,
        task_id: str,
        status: TaskStatus = TaskStatus.PENDING,
        **fields: Any
    ) -> Tuple[TaskInstance, bool]:
        """
        Find-or-create the instance for a (flow, template task) pair

        Returns the instance and whether this call created it. A concurrent
        creator wins the unique index race and its row is re-read.
        """
        existing = self.get_instance(kind, flow_id, task_id)
        if existing:
            return existing, False

        now = utc_now()
        instance = TaskInstance(
            id=generate_task_instance_id(),
            flow_kind=kind,
            flow_id=flow_id,
            task_id=task_id,
            status=status,
            created_at=now,
            updated_at=now,
            **fields
        )
        try:
            return self.insert_instance(instance), True
        except DuplicateKeyError:
            logger.info(
                f"Task instance for {flow_id}/{task_id} created concurrently, re-reading",
                extra={"flow_id": flow_id, "task_id": task_id}
            )
            existing = self.get_instance(kind, flow_id, task_id)
            if existing is None:
                raise StoreError(f"Task instance for {flow_id}/{task_id} vanished after duplicate insert")
            return existing, False

    def update_instance(self, kind: FlowKind, instance_id: str, updates: Dict[str, Any]) -> TaskInstance:
        """Apply a partial update and return the stored instance"""
        table = TASK_INSTANCE_COLLECTIONS[kind]
        updates = {**updates, "updated_at": utc_now()}
        with store_operation("actualizar tarea"):
            old = self._collection(table).find_one({"id": instance_id})
            if old is None:
                raise NotFoundError(f"Task instance {instance_id} not found")
            new = self._collection(table).find_one_and_update(
                {"id": instance_id},
                {"$set": to_updates(updates)},
                return_document=ReturnDocument.AFTER
            )
        if new is None:
            raise NotFoundError(f"Task instance {instance_id} not found")

        logger.info(
            f"Updated task instance: {instance_id}",
            extra={"flow_id": new.get("flow_id"), "task_id": new.get("task_id"), "status": new.get("status")}
        )
        self._publish(table, ChangeEventType.UPDATE, old=old, new=new)
        return self._validate(kind, new)

    def list_active_for_assignee(self, kind: FlowKind, user_id: str) -> List[TaskInstance]:
        """Instances directly assigned to the user that are neither completed nor blocked"""
        with store_operation("cargar tareas asignadas"):
            cursor = self._collection(TASK_INSTANCE_COLLECTIONS[kind]).find({
                "assignee_id": user_id,
                "status": {"$nin": [s.value for s in INACTIVE_TASK_STATUSES]}
            })
            return [self._validate(kind, doc) for doc in cursor]
