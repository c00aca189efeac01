"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, create_indexes, health_check
from .flow_repo import FlowRepository
from .template_repo import TemplateRepository
from .task_repo import TaskInstanceRepository
from .assignment_repo import AssignmentRepository
from .comment_repo import CommentRepository
from .collapsed_repo import CollapsedTaskRepository
from .reservation_repo import ReservationRepository
from .profile_repo import ProfileRepository

__all__ = [
    "get_database",
    "get_collection",
    "create_indexes",
    "health_check",
    "FlowRepository",
    "TemplateRepository",
    "TaskInstanceRepository",
    "AssignmentRepository",
    "CommentRepository",
    "CollapsedTaskRepository",
    "ReservationRepository",
    "ProfileRepository",
]
