"""
Task Routes

Endpoints for one task of a flow:
- Status change
- Assignee reconciliation and removal history
- Comment thread
"""

from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..deps import get_current_user_dep, get_database_dep, get_change_feed_dep
from .schemas import (
    AddCommentRequest, AssigneesRequest, AssignmentHistoryResponse, CommentListResponse,
    ReconcileAssigneesResponse, SetTaskStatusRequest, TaskStatusResponse
)
from ...domain.models import ActorContext, TaskComment
from ...domain.enums import FlowKind
from ...realtime.change_feed import ChangeFeed
from ...services.assignment_service import AssignmentService
from ...services.comment_service import CommentService
from ...services.task_service import TaskService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# =============================================================================
# Status
# =============================================================================

@router.put("/{kind}/{flow_id}/tasks/{task_id}/status", response_model=TaskStatusResponse)
def set_task_status(
    kind: FlowKind,
    flow_id: str,
    task_id: str,
    request: SetTaskStatusRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    """
    Change a task's status.

    Only administrators may change a completed task or back-date completion.
    """
    result = TaskService(database, feed).set_task_status(
        kind, flow_id, task_id, request.status, actor, completed_at=request.completed_at
    )
    return TaskStatusResponse(
        instance=result.instance,
        stage_id=result.stage_id,
        stage_is_completed=result.stage_is_completed,
        refresh_comments=result.refresh_comments
    )


# =============================================================================
# Assignees
# =============================================================================

@router.put("/{kind}/{flow_id}/tasks/{task_id}/assignees", response_model=ReconcileAssigneesResponse)
def reconcile_assignees(
    kind: FlowKind,
    flow_id: str,
    task_id: str,
    request: AssigneesRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    """Replace the task's assignees with the submitted set"""
    result = AssignmentService(database, feed).reconcile_assignees(
        kind, flow_id, task_id, request.user_ids, actor
    )
    return ReconcileAssigneesResponse(
        instance=result.instance,
        assigned_user_ids=result.assigned_user_ids,
        added=result.added,
        removed=result.removed,
        writes=result.writes
    )


@router.get("/{kind}/{flow_id}/tasks/{task_id}/assignment-history", response_model=AssignmentHistoryResponse)
def get_assignment_history(
    kind: FlowKind,
    flow_id: str,
    task_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    items = AssignmentService(database, feed).list_history(kind, flow_id, task_id)
    return AssignmentHistoryResponse(items=items)


# =============================================================================
# Comments
# =============================================================================

@router.get("/{kind}/{flow_id}/tasks/{task_id}/comments", response_model=CommentListResponse)
def list_comments(
    kind: FlowKind,
    flow_id: str,
    task_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    items = CommentService(database, feed).list_comments(kind, flow_id, task_id)
    return CommentListResponse(items=items, total=len(items))


@router.post("/{kind}/{flow_id}/tasks/{task_id}/comments", response_model=TaskComment, status_code=201)
def add_comment(
    kind: FlowKind,
    flow_id: str,
    task_id: str,
    request: AddCommentRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    return CommentService(database, feed).add_comment(
        kind, flow_id, task_id, actor, request.content, request.mentioned_users
    )
