"""Settings Routes - Template-level default assignees"""

from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..deps import get_current_user_dep, get_database_dep, get_change_feed_dep
from .schemas import AssigneesRequest, DefaultAssigneesResponse
from ...domain.models import ActorContext
from ...domain.enums import FlowKind
from ...realtime.change_feed import ChangeFeed
from ...services.assignment_service import AssignmentService

router = APIRouter()


@router.get("/tasks/{kind}/{task_id}/default-assignees", response_model=DefaultAssigneesResponse)
def get_default_assignees(
    kind: FlowKind,
    task_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    items = AssignmentService(database, feed).list_default_assignees(kind, task_id)
    return DefaultAssigneesResponse(task_id=task_id, items=items)


@router.put("/tasks/{kind}/{task_id}/default-assignees", response_model=DefaultAssigneesResponse)
def set_default_assignees(
    kind: FlowKind,
    task_id: str,
    request: AssigneesRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    """Replace the users new flows assign to this template task (administrators only)"""
    items = AssignmentService(database, feed).set_default_assignees(kind, task_id, request.user_ids, actor)
    return DefaultAssigneesResponse(task_id=task_id, items=items)
