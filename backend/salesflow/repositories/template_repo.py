"""Template Repository - Read access to flow, stage and task templates"""
from typing import Dict, List, Optional, Sequence
from pymongo import ASCENDING

from .base import BaseRepository
from .mongo_client import (
    FLOW_TEMPLATE_COLLECTIONS, STAGE_COLLECTIONS, TASK_TEMPLATE_COLLECTIONS,
    store_operation, strip_id
)
from ..domain.models import FlowTemplate, StageTemplate, TaskTemplate
from ..domain.enums import FlowKind
from ..domain.errors import StageNotFoundError, TaskNotFoundError, NotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TemplateRepository(BaseRepository):
    """Templates are shared by every flow of a kind and never written here"""

    # =========================================================================
    # Flow templates
    # =========================================================================

    def get_flow_template(self, kind: FlowKind, template_id: str) -> Optional[FlowTemplate]:
        with store_operation("cargar plantilla de flujo"):
            doc = self._collection(FLOW_TEMPLATE_COLLECTIONS[kind]).find_one({"id": template_id})
        if doc:
            return FlowTemplate.model_validate({**strip_id(doc), "kind": kind})
        return None

    def get_flow_template_or_raise(self, kind: FlowKind, template_id: str) -> FlowTemplate:
        template = self.get_flow_template(kind, template_id)
        if not template:
            raise NotFoundError(f"Flow template {template_id} not found")
        return template

    def find_flow_template_by_name(self, kind: FlowKind, name: str) -> Optional[FlowTemplate]:
        with store_operation("buscar plantilla de flujo"):
            doc = self._collection(FLOW_TEMPLATE_COLLECTIONS[kind]).find_one({"name": name})
        if doc:
            return FlowTemplate.model_validate({**strip_id(doc), "kind": kind})
        return None

    # =========================================================================
    # Stages
    # =========================================================================

    def list_stages(self, kind: FlowKind, flow_template_id: str) -> List[StageTemplate]:
        """Stages of a template in display order"""
        with store_operation("cargar etapas"):
            cursor = self._collection(STAGE_COLLECTIONS[kind]).find(
                {"flow_template_id": flow_template_id}
            ).sort("order", ASCENDING)
            return [StageTemplate.model_validate(strip_id(doc)) for doc in cursor]

    def get_stage(self, kind: FlowKind, stage_id: str) -> Optional[StageTemplate]:
        with store_operation("cargar etapa"):
            doc = self._collection(STAGE_COLLECTIONS[kind]).find_one({"id": stage_id})
        if doc:
            return StageTemplate.model_validate(strip_id(doc))
        return None

    def get_stage_or_raise(self, kind: FlowKind, stage_id: str) -> StageTemplate:
        stage = self.get_stage(kind, stage_id)
        if not stage:
            raise StageNotFoundError(f"Stage {stage_id} not found")
        return stage

    # =========================================================================
    # Tasks
    # =========================================================================

    def list_tasks_for_stages(self, kind: FlowKind, stage_ids: Sequence[str]) -> Dict[str, List[TaskTemplate]]:
        """Template tasks grouped by stage, each group in display order"""
        grouped: Dict[str, List[TaskTemplate]] = {stage_id: [] for stage_id in stage_ids}
        if not stage_ids:
            return grouped
        with store_operation("cargar tareas"):
            cursor = self._collection(TASK_TEMPLATE_COLLECTIONS[kind]).find(
                {"stage_id": {"$in": list(stage_ids)}}
            ).sort("order", ASCENDING)
            for doc in cursor:
                task = TaskTemplate.model_validate(strip_id(doc))
                grouped.setdefault(task.stage_id, []).append(task)
        return grouped

    def list_tasks_for_template(self, kind: FlowKind, flow_template_id: str) -> List[TaskTemplate]:
        stages = self.list_stages(kind, flow_template_id)
        grouped = self.list_tasks_for_stages(kind, [s.id for s in stages])
        return [task for stage in stages for task in grouped.get(stage.id, [])]

    def get_task_template(self, kind: FlowKind, task_id: str) -> Optional[TaskTemplate]:
        with store_operation("cargar tarea"):
            doc = self._collection(TASK_TEMPLATE_COLLECTIONS[kind]).find_one({"id": task_id})
        if doc:
            return TaskTemplate.model_validate(strip_id(doc))
        return None

    def get_task_template_or_raise(self, kind: FlowKind, task_id: str) -> TaskTemplate:
        task = self.get_task_template(kind, task_id)
        if not task:
            raise TaskNotFoundError(f"Task {task_id} not found")
        return task
