"""Workflow Engine - Permission checks and derivation rules"""
from .permission_guard import PermissionGuard, is_admin_user_type
from .rollup import build_stage_view, build_task_view, effective_status, stage_is_completed
from .status_rules import diff_assignees, single_assignee, status_updates

__all__ = [
    "PermissionGuard",
    "is_admin_user_type",
    "build_stage_view",
    "build_task_view",
    "effective_status",
    "stage_is_completed",
    "diff_assignees",
    "single_assignee",
    "status_updates",
]
