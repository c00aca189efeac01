"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from .enums import ChangeEventType, FlowKind, FlowStatus, TaskStatus
from ..utils.time import ensure_utc


# MongoDB returns naive UTC datetimes; models always carry aware ones
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


# ============================================================================
# Identity
# ============================================================================

class Profile(BaseModel):
    """User profile row"""
    model_config = ConfigDict(extra="ignore")

    id: str
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    position: Optional[str] = None
    avatar_url: Optional[str] = None
    user_type: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ActorContext(BaseModel):
    """Current actor context resolved from the bearer token and the profile"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="Auth user id (token sub)")
    email: Optional[str] = Field(None, description="User email")
    display_name: str = Field("", description="User display name")
    user_type: Optional[str] = Field(None, description="Profile user_type")
    is_admin: bool = Field(False, description="True when user_type is the administrator type")


# ============================================================================
# Templates
# ============================================================================

class StageTemplate(BaseModel):
    """Ordered stage of a flow template (shared by every flow of the template)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    flow_template_id: str
    name: str
    order: int = 0


class TaskTemplate(BaseModel):
    """Task definition inside a stage template"""
    model_config = ConfigDict(extra="ignore")

    id: str
    stage_id: str
    name: str
    order: int = 0
    days_to_complete: Optional[int] = None


class FlowTemplate(BaseModel):
    """Named process definition (e.g. the main payment flow)"""
    model_config = ConfigDict(extra="ignore")

    id: str
    kind: FlowKind
    name: str


# ============================================================================
# Flow instances
# ============================================================================

class Flow(BaseModel):
    """Workflow instance bound to one reservation or one broker commission"""
    model_config = ConfigDict(extra="ignore")

    id: str
    kind: FlowKind
    flow_template_id: str
    reservation_id: Optional[str] = None
    broker_commission_id: Optional[str] = None
    is_second_payment: bool = False
    status: FlowStatus = FlowStatus.PENDING
    current_stage_id: Optional[str] = None
    started_at: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime


class TaskInstance(BaseModel):
    """Mutable per-flow state of a template task"""
    model_config = ConfigDict(extra="ignore")

    id: str
    flow_kind: FlowKind
    flow_id: str
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    completed_at: Optional[UtcDatetime] = None
    assignee_id: Optional[str] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class TaskAssignment(BaseModel):
    """(task instance, user) responsibility fact"""
    model_config = ConfigDict(extra="ignore")

    id: str
    flow_kind: FlowKind
    flow_id: str
    task_id: str
    user_id: str
    assigned_by: Optional[str] = None
    assigned_at: UtcDatetime


class AssignmentHistoryEntry(BaseModel):
    """Audit row appended when a user is removed from a task"""
    model_config = ConfigDict(extra="ignore")

    id: str
    flow_kind: FlowKind
    flow_id: str
    task_id: str
    user_id: str
    assigned_by: Optional[str] = None
    assigned_at: Optional[UtcDatetime] = None
    removed_by: Optional[str] = None
    removed_at: UtcDatetime
    status: TaskStatus


class DefaultTaskAssignment(BaseModel):
    """Template-level assignee applied to new flows"""
    model_config = ConfigDict(extra="ignore")

    id: str
    flow_kind: FlowKind
    task_id: str
    user_id: str
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: UtcDatetime


class TaskComment(BaseModel):
    """Append-only note on a task instance"""
    model_config = ConfigDict(extra="ignore")

    id: str
    flow_kind: FlowKind
    task_instance_id: str
    user_id: str
    content: str
    mentioned_users: List[str] = Field(default_factory=list)
    created_at: UtcDatetime


class CollapsedTask(BaseModel):
    """Per-user, time-bounded suppression of an assignment from the pending count"""
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    task_assignment_id: str
    collapsed_at: UtcDatetime
    expires_at: UtcDatetime


# ============================================================================
# Business objects the flows hang off
# ============================================================================

class Reservation(BaseModel):
    """Reservation summary as far as the workflow needs it"""
    model_config = ConfigDict(extra="ignore")

    id: str
    reservation_number: Optional[str] = None
    apartment_number: Optional[str] = None
    project_name: Optional[str] = None
    client_name: Optional[str] = None
    broker_name: Optional[str] = None
    is_rescinded: bool = False
    rescinded_at: Optional[UtcDatetime] = None
    rescinded_reason: Optional[str] = None
    rescinded_by: Optional[str] = None


class BrokerCommission(BaseModel):
    """Broker commission tied to a reservation"""
    model_config = ConfigDict(extra="ignore")

    id: str
    reservation_id: str
    commission_amount: float = 0.0
    first_payment_percentage: float = 100.0
    payment_1_date: Optional[UtcDatetime] = None
    payment_2_date: Optional[UtcDatetime] = None
    penalty_amount: Optional[float] = None
    at_risk: bool = False
    at_risk_reason: Optional[str] = None

    @property
    def has_paid(self) -> bool:
        return bool(self.payment_1_date or self.payment_2_date)


# ============================================================================
# Change feed
# ============================================================================

class ChangeEvent(BaseModel):
    """Row change notification: {table, eventType, old, new}"""
    model_config = ConfigDict(extra="forbid")

    table: str
    event_type: ChangeEventType
    old: Optional[Dict[str, Any]] = None
    new: Optional[Dict[str, Any]] = None

    @property
    def row(self) -> Dict[str, Any]:
        """The row the event is about (old row for deletes)"""
        return self.new or self.old or {}


# ============================================================================
# Read-side views
# ============================================================================

class AssigneeView(BaseModel):
    """Assignee as shown next to a task"""
    id: str
    first_name: str = ""
    last_name: str = ""
    avatar_url: Optional[str] = None


class TaskView(BaseModel):
    """Task as rendered on a stage card"""
    id: str
    name: str
    status: TaskStatus
    completed_at: Optional[UtcDatetime] = None
    assignees: List[AssigneeView] = Field(default_factory=list)
    comments_count: int = 0
    instance_id: Optional[str] = None


class StageView(BaseModel):
    """Stage with derived completion"""
    id: str
    name: str
    order: int
    tasks: List[TaskView] = Field(default_factory=list)
    is_completed: bool


class FlowView(BaseModel):
    """Flow with its stages, tasks, assignees and comment counts"""
    id: str
    kind: FlowKind
    status: FlowStatus
    started_at: Optional[UtcDatetime] = None
    completed_at: Optional[UtcDatetime] = None
    current_stage_id: Optional[str] = None
    current_stage_name: Optional[str] = None
    reservation_id: Optional[str] = None
    broker_commission_id: Optional[str] = None
    stages: List[StageView] = Field(default_factory=list)
