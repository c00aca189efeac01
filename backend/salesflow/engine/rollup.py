"""Roll-up - Stage and flow completion derived from task state (never persisted)"""
from typing import Dict, Iterable, List, Optional

from ..domain.models import (
    AssigneeView, Profile, StageTemplate, StageView, TaskAssignment,
    TaskInstance, TaskTemplate, TaskView
)
from ..domain.enums import TaskStatus


def effective_status(instance: Optional[TaskInstance]) -> TaskStatus:
    """A task nobody has touched yet reads as pending"""
    return instance.status if instance else TaskStatus.PENDING


def stage_is_completed(tasks: Iterable[TaskView]) -> bool:
    """True iff every task is completed; a stage without tasks is complete"""
    return all(task.status == TaskStatus.COMPLETED for task in tasks)


def _assignee_view(user_id: str, profiles: Dict[str, Profile]) -> AssigneeView:
    profile = profiles.get(user_id)
    if profile is None:
        return AssigneeView(id=user_id)
    return AssigneeView(
        id=user_id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        avatar_url=profile.avatar_url
    )


def build_task_view(
    task: TaskTemplate,
    instance: Optional[TaskInstance],
    assignments: List[TaskAssignment],
    profiles: Dict[str, Profile],
    comments_count: int = 0
) -> TaskView:
    """
    Render one task: assignment rows plus the direct assignee, none once completed
    """
    status = effective_status(instance)
    assignee_ids: List[str] = []
    if status != TaskStatus.COMPLETED:
        for assignment in assignments:
            if assignment.user_id not in assignee_ids:
                assignee_ids.append(assignment.user_id)
        if instance and instance.assignee_id and instance.assignee_id not in assignee_ids:
            assignee_ids.append(instance.assignee_id)

    return TaskView(
        id=task.id,
        name=task.name,
        status=status,
        completed_at=instance.completed_at if instance else None,
        assignees=[_assignee_view(user_id, profiles) for user_id in assignee_ids],
        comments_count=comments_count,
        instance_id=instance.id if instance else None
    )


def build_stage_view(stage: StageTemplate, tasks: List[TaskView]) -> StageView:
    return StageView(
        id=stage.id,
        name=stage.name,
        order=stage.order,
        tasks=tasks,
        is_completed=stage_is_completed(tasks)
    )
