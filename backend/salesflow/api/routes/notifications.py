"""
Notification Routes

Endpoints for the header badge and the assignment popups:
- Pending task count
- Collapsed (temporarily hidden) tasks
- Popup state of the user's session and its logout
"""

from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..deps import get_current_user_dep, get_database_dep, get_change_feed_dep, get_notification_hub_dep
from .schemas import (
    ActionResponse, CollapseTaskRequest, CollapsedListResponse, PopupResponse, TaskCountResponse
)
from ...domain.models import ActorContext, CollapsedTask
from ...realtime.change_feed import ChangeFeed
from ...services.notification_hub import NotificationHub
from ...services.task_count_service import TaskCountService

router = APIRouter()


def get_task_count_service(
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
) -> TaskCountService:
    return TaskCountService(database, feed)


@router.get("/task-count", response_model=TaskCountResponse)
def get_task_count(
    actor: ActorContext = Depends(get_current_user_dep),
    hub: NotificationHub = Depends(get_notification_hub_dep)
):
    """Served from the caller's session watcher, which recounts on relevant changes only"""
    count = hub.session_for(actor.user_id).watcher.current()
    return TaskCountResponse(user_id=actor.user_id, count=count)


@router.get("/collapsed", response_model=CollapsedListResponse)
def list_collapsed(
    actor: ActorContext = Depends(get_current_user_dep),
    service: TaskCountService = Depends(get_task_count_service)
):
    return CollapsedListResponse(items=service.list_collapsed(actor))


@router.post("/collapsed", response_model=CollapsedTask, status_code=201)
def collapse_task(
    request: CollapseTaskRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    service: TaskCountService = Depends(get_task_count_service)
):
    """Hide one of the caller's assignments from the count until it expires"""
    return service.collapse_task(request.task_assignment_id, actor, hours=request.hours)


@router.delete("/collapsed/{collapsed_id}", response_model=ActionResponse)
def expand_task(
    collapsed_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: TaskCountService = Depends(get_task_count_service)
):
    service.expand_task(collapsed_id, actor)
    return ActionResponse(success=True, message="Tarea visible nuevamente")


@router.get("/popup", response_model=PopupResponse)
def get_popup(
    actor: ActorContext = Depends(get_current_user_dep),
    hub: NotificationHub = Depends(get_notification_hub_dep)
):
    """Popup currently shown to the caller (opens their notification session on first call)"""
    return PopupResponse(**hub.session_for(actor.user_id).popups.snapshot())


@router.post("/popup/dismiss", response_model=ActionResponse)
def dismiss_popup(
    actor: ActorContext = Depends(get_current_user_dep),
    hub: NotificationHub = Depends(get_notification_hub_dep)
):
    hub.session_for(actor.user_id).popups.hide()
    return ActionResponse(success=True, message="Popup cerrado")


@router.delete("/session", response_model=ActionResponse)
def close_session(
    actor: ActorContext = Depends(get_current_user_dep),
    hub: NotificationHub = Depends(get_notification_hub_dep)
):
    """Logout: stop the caller's popup and count subscriptions"""
    closed = hub.close_session(actor.user_id)
    return ActionResponse(success=True, message="Sesión cerrada" if closed else "Sin sesión activa")
