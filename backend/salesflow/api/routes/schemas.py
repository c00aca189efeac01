"""
Workflow Schemas

Request and response models for the workflow API endpoints.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ...domain.models import (
    AssignmentHistoryEntry, BrokerCommission, CollapsedTask, DefaultTaskAssignment,
    Flow, Reservation, TaskComment, TaskInstance, UtcDatetime
)
from ...domain.enums import PopupSize, TaskStatus


# =============================================================================
# Flow Schemas
# =============================================================================

class CreateSaleFlowRequest(BaseModel):
    """Request to create the sale flow of a reservation"""
    reservation_id: str = Field(..., min_length=1)
    flow_template_id: str = Field(..., min_length=1)


class EnsurePaymentFlowRequest(BaseModel):
    """Request to open (or create) a commission's payment flow"""
    broker_commission_id: str = Field(..., min_length=1)


class EnsurePaymentFlowResponse(BaseModel):
    flow: Flow
    created: bool


class SetCurrentStageRequest(BaseModel):
    stage_id: str = Field(..., min_length=1)


# =============================================================================
# Task Schemas
# =============================================================================

class SetTaskStatusRequest(BaseModel):
    """Request to change a task's status"""
    status: TaskStatus
    completed_at: Optional[UtcDatetime] = Field(
        None,
        description="Completion date to record (administrators only; zone-less values are UTC)"
    )


class TaskStatusResponse(BaseModel):
    instance: TaskInstance
    stage_id: str
    stage_is_completed: bool
    refresh_comments: bool


class AssigneesRequest(BaseModel):
    """Desired assignee set"""
    user_ids: List[str] = Field(default_factory=list)


class ReconcileAssigneesResponse(BaseModel):
    instance: TaskInstance
    assigned_user_ids: List[str]
    added: List[str]
    removed: List[str]
    writes: int


class AssignmentHistoryResponse(BaseModel):
    items: List[AssignmentHistoryEntry]


# =============================================================================
# Comment Schemas
# =============================================================================

class AddCommentRequest(BaseModel):
    content: str = Field(..., max_length=5000)
    mentioned_users: List[str] = Field(default_factory=list)


class CommentListResponse(BaseModel):
    """Comments, most recent first"""
    items: List[TaskComment]
    total: int


# =============================================================================
# Settings Schemas
# =============================================================================

class DefaultAssigneesResponse(BaseModel):
    task_id: str
    items: List[DefaultTaskAssignment]


# =============================================================================
# Reservation Schemas
# =============================================================================

class RescindReservationRequest(BaseModel):
    """Request to rescind a reservation"""
    reason: str = Field(..., max_length=2000)
    confirmation_text: str = Field(..., description='Must be "CONFIRMAR" or "CONFIRMACIÓN"')
    penalize: bool = False


class RescindReservationResponse(BaseModel):
    reservation: Reservation
    commission: Optional[BrokerCommission] = None
    penalty_amount: Optional[float] = None


# =============================================================================
# Notification Schemas
# =============================================================================

class TaskCountResponse(BaseModel):
    user_id: str
    count: int


class CollapseTaskRequest(BaseModel):
    task_assignment_id: str = Field(..., min_length=1)
    hours: Optional[int] = Field(None, description="Defaults to the configured collapse window")


class CollapsedListResponse(BaseModel):
    items: List[CollapsedTask]


class PopupResponse(BaseModel):
    """Current popup of the user's session"""
    is_open: bool
    content: Optional[Dict[str, Any]] = None
    title: Optional[str] = None
    size: PopupSize = PopupSize.MD


class ActionResponse(BaseModel):
    """Generic action response"""
    success: bool
    message: str
