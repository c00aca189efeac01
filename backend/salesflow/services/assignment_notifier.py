"""Assignment Notifier - Popups when a user gains or loses a task"""
import threading
from typing import Any, Dict, List, Optional
from pymongo.database import Database

from ..config.settings import settings
from ..domain.models import ChangeEvent, Flow, Profile
from ..domain.enums import ChangeEventType, FlowKind, PopupSize, TaskStatus
from ..realtime.change_feed import ChangeFeed, Subscription
from ..repositories.flow_repo import FlowRepository
from ..repositories.mongo_client import TASK_ASSIGNMENTS, TASK_ASSIGNMENT_HISTORY
from ..repositories.profile_repo import ProfileRepository
from ..repositories.reservation_repo import ReservationRepository
from ..repositories.template_repo import TemplateRepository
from .popup_mediator import PopupMediator
from ..utils.logger import get_logger

logger = get_logger(__name__)


ASSIGNED_TITLE = "Nueva tarea asignada"
UNASSIGNED_TITLE = "Tarea desasignada"


class TaskDetailsResolver:
    """Looks up the names shown in assignment popups; missing pieces stay blank"""

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self.flow_repo = FlowRepository(database, feed)
        self.template_repo = TemplateRepository(database, feed)
        self.reservation_repo = ReservationRepository(database, feed)
        self.profile_repo = ProfileRepository(database, feed)

    def _reservation_id(self, flow: Flow) -> Optional[str]:
        if flow.reservation_id:
            return flow.reservation_id
        if flow.broker_commission_id:
            commission = self.reservation_repo.get_commission(flow.broker_commission_id)
            if commission:
                return commission.reservation_id
        return None

    def resolve(self, row: Dict[str, Any]) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            "task_name": "",
            "project_name": "",
            "apartment_number": "",
            "client_name": "",
            "broker_name": "",
            "flow_id": row.get("flow_id"),
            "flow_kind": row.get("flow_kind"),
        }
        try:
            kind = FlowKind(row.get("flow_kind", FlowKind.SALE.value))
        except ValueError:
            return details

        if row.get("task_id"):
            task = self.template_repo.get_task_template(kind, row["task_id"])
            if task:
                details["task_name"] = task.name

        flow = self.flow_repo.get_flow(kind, row["flow_id"]) if row.get("flow_id") else None
        reservation_id = self._reservation_id(flow) if flow else None
        reservation = self.reservation_repo.get_reservation(reservation_id) if reservation_id else None
        if reservation:
            details["project_name"] = reservation.project_name or ""
            details["apartment_number"] = reservation.apartment_number or ""
            details["client_name"] = reservation.client_name or ""
            details["broker_name"] = reservation.broker_name or ""
        return details

    def full_name(self, user_id: Optional[str]) -> str:
        if not user_id:
            return ""
        profile = self.profile_repo.get_profile(user_id)
        return profile.full_name if profile else ""


class AssignmentNotifier:
    """
    Pops "Nueva tarea asignada" when the user is assigned and "Tarea
    desasignada" when a removal is logged for them

    Removals are debounced: only the latest one inside the debounce window
    is shown.
    """

    def __init__(
        self,
        user: Profile,
        feed: ChangeFeed,
        popups: PopupMediator,
        database: Optional[Database] = None,
        debounce_seconds: Optional[float] = None
    ):
        self.user = user
        self._feed = feed
        self._popups = popups
        self._resolver = TaskDetailsResolver(database, feed)
        self._debounce = settings.unassign_debounce_seconds if debounce_seconds is None else debounce_seconds
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def start(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self._feed.subscribe(
                TASK_ASSIGNMENTS, self._on_assigned,
                event_type=ChangeEventType.INSERT, filter={"user_id": self.user.id}
            ),
            self._feed.subscribe(
                TASK_ASSIGNMENT_HISTORY, self._on_unassigned,
                event_type=ChangeEventType.INSERT, filter={"user_id": self.user.id}
            ),
        ]
        logger.debug(f"Assignment notifier started for {self.user.id}", extra={"user_id": self.user.id})

    def close(self) -> None:
        for subscription in self._subscriptions:
            self._feed.unsubscribe(subscription)
        self._subscriptions = []
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _greeting(self) -> str:
        return f"Hola, {self.user.first_name}".strip()

    def _on_assigned(self, event: ChangeEvent) -> None:
        details = self._resolver.resolve(event.row)
        content = {
            "greeting": self._greeting(),
            "message": "Tienes una nueva tarea asignada:",
            **details,
        }
        logger.info(
            f"Showing assignment popup for task {details['task_name']}",
            extra={"user_id": self.user.id, "task_id": event.row.get("task_id"), "action": "popup_assigned"}
        )
        self._popups.show(content, title=ASSIGNED_TITLE, size=PopupSize.MD)

    def _on_unassigned(self, event: ChangeEvent) -> None:
        row = dict(event.row)
        if self._debounce <= 0:
            self._show_unassigned(row)
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self._show_unassigned, args=(row,))
            self._timer.daemon = True
            self._timer.start()

    def _show_unassigned(self, row: Dict[str, Any]) -> None:
        try:
            details = self._resolver.resolve(row)
            status = row.get("status") or ""
            content = {
                "greeting": self._greeting(),
                "message": "Se te ha desasignado una tarea.",
                **details,
                "task_name": details["task_name"] or "Tarea desconocida",
                "status": status,
            }
            if status == TaskStatus.COMPLETED.value:
                content["note"] = "Tarea completada"
            else:
                unassigned_by = self._resolver.full_name(row.get("removed_by"))
                if unassigned_by:
                    content["unassigned_by"] = unassigned_by

            logger.info(
                f"Showing unassignment popup for task {content['task_name']}",
                extra={"user_id": self.user.id, "task_id": row.get("task_id"), "action": "popup_unassigned"}
            )
            self._popups.show(content, title=UNASSIGNED_TITLE, size=PopupSize.MD)
        except Exception as e:
            logger.error(f"Unassignment popup failed for {self.user.id}: {e}", exc_info=True)
