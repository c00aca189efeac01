"""Service modules - Business logic layer"""
from .task_service import TaskService, TaskTransitionResult
from .assignment_service import AssignmentService, ReconcileResult
from .comment_service import CommentService
from .flow_service import FlowService
from .rescission_service import RescissionService, RescissionResult
from .task_count_service import TaskCountService, TaskCountSnapshot, TaskCountWatcher
from .popup_mediator import PopupMediator
from .assignment_notifier import AssignmentNotifier
from .notification_hub import NotificationHub, UserNotificationSession

__all__ = [
    "TaskService",
    "TaskTransitionResult",
    "AssignmentService",
    "ReconcileResult",
    "CommentService",
    "FlowService",
    "RescissionService",
    "RescissionResult",
    "TaskCountService",
    "TaskCountSnapshot",
    "TaskCountWatcher",
    "PopupMediator",
    "AssignmentNotifier",
    "NotificationHub",
    "UserNotificationSession",
]
