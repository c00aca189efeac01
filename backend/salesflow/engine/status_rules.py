"""Status Rules - Derived-field rules for task transitions and assignee sets"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..domain.enums import TaskStatus


def status_updates(
    new_status: TaskStatus,
    now: datetime,
    completed_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Fields to write for a status change

    Completing sets completed_at (explicit value or now) and clears the direct
    assignee; any other status clears completed_at.
    """
    if new_status == TaskStatus.COMPLETED:
        return {
            "status": new_status,
            "completed_at": completed_at or now,
            "assignee_id": None,
        }
    return {
        "status": new_status,
        "completed_at": None,
    }


def diff_assignees(current: Iterable[str], desired: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Return (to_remove, to_add) as sorted set differences"""
    current_set = set(current)
    desired_set = set(desired)
    return sorted(current_set - desired_set), sorted(desired_set - current_set)


def single_assignee(user_ids: Iterable[str]) -> Optional[str]:
    """The one assigned user when exactly one is assigned, otherwise None"""
    unique = set(user_ids)
    if len(unique) == 1:
        return next(iter(unique))
    return None
