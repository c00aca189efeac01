"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class TaskStatus(str, Enum):
    """Status of a task instance within a flow"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class FlowStatus(str, Enum):
    """Overall status of a flow instance"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class FlowKind(str, Enum):
    """Which process a flow instance runs"""
    SALE = "sale"          # reservation flows
    PAYMENT = "payment"    # broker commission payment flows


class ChangeEventType(str, Enum):
    """Row change events delivered by the change feed"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class PopupSize(str, Enum):
    """Popup widths understood by the front end"""
    SM = "sm"
    MD = "md"
    LG = "lg"
    XL = "xl"


# Statuses that keep a payment task out of the assignee's pending count
INACTIVE_TASK_STATUSES = (TaskStatus.COMPLETED, TaskStatus.BLOCKED)

# Typed confirmations accepted before rescinding a reservation
RESCISSION_CONFIRMATIONS = ("CONFIRMAR", "CONFIRMACIÓN")
