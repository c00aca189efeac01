"""Task Count Service - Pending-task badge count and collapsed markers"""
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, FrozenSet, List, Optional
from pymongo.database import Database

from ..config.settings import settings
from ..domain.models import ActorContext, CollapsedTask
from ..domain.enums import ChangeEventType, FlowKind, FlowStatus
from ..domain.errors import NotFoundError, PermissionDeniedError, ValidationError
from ..realtime.change_feed import ChangeFeed, Subscription
from ..repositories.assignment_repo import AssignmentRepository
from ..repositories.collapsed_repo import CollapsedTaskRepository
from ..repositories.flow_repo import FlowRepository
from ..repositories.mongo_client import (
    COLLAPSED_TASKS, FLOW_COLLECTIONS, TASK_ASSIGNMENTS, TASK_ASSIGNMENT_HISTORY, TASK_INSTANCE_COLLECTIONS
)
from ..repositories.task_repo import TaskInstanceRepository
from ..utils.idgen import generate_collapsed_id
from ..utils.time import add_hours, utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TaskCountSnapshot:
    """A user's count plus what it was computed from"""
    count: int
    # Flows holding the user's assignments; other flows cannot change the count
    flow_ids: FrozenSet[str] = frozenset()
    # Earliest expiry among the user's active collapsed markers
    next_expiry: Optional[datetime] = None


class TaskCountService:
    """
    Count of tasks that need a user's attention

    Always recomputed from the store; no counter is kept between calls.
    """

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self.flow_repo = FlowRepository(database, feed)
        self.task_repo = TaskInstanceRepository(database, feed)
        self.assignment_repo = AssignmentRepository(database, feed)
        self.collapsed_repo = CollapsedTaskRepository(database, feed)

    def count_for_user(self, user_id: str, now: Optional[datetime] = None) -> int:
        """
        Sale assignments in started flows that are not collapsed, plus payment
        tasks directly assigned to the user in started flows that are neither
        completed nor blocked
        """
        return self.snapshot_for_user(user_id, now).count

    def snapshot_for_user(self, user_id: str, now: Optional[datetime] = None) -> TaskCountSnapshot:
        """The count together with the flows it depends on and when it next changes by itself"""
        now = now or utc_now()

        sale_assignments = self.assignment_repo.list_for_user(user_id, FlowKind.SALE)
        sale_statuses = self.flow_repo.get_statuses(FlowKind.SALE, [a.flow_id for a in sale_assignments])
        markers = self.collapsed_repo.list_active_for_user(user_id, now)
        collapsed_ids = {m.task_assignment_id for m in markers}
        sale_count = sum(
            1 for a in sale_assignments
            if a.flow_id in sale_statuses
            and sale_statuses[a.flow_id] != FlowStatus.PENDING
            and a.id not in collapsed_ids
        )

        payment_tasks = self.task_repo.list_active_for_assignee(FlowKind.PAYMENT, user_id)
        payment_statuses = self.flow_repo.get_statuses(FlowKind.PAYMENT, [t.flow_id for t in payment_tasks])
        payment_count = sum(
            1 for t in payment_tasks
            if t.flow_id in payment_statuses and payment_statuses[t.flow_id] != FlowStatus.PENDING
        )

        logger.debug(
            f"Task count for {user_id}: sale={sale_count} payment={payment_count}",
            extra={"user_id": user_id}
        )
        return TaskCountSnapshot(
            count=sale_count + payment_count,
            flow_ids=frozenset(
                [a.flow_id for a in sale_assignments] + [t.flow_id for t in payment_tasks]
            ),
            next_expiry=min((m.expires_at for m in markers), default=None)
        )

    # =========================================================================
    # Collapsed markers
    # =========================================================================

    def collapse_task(self, assignment_id: str, actor: ActorContext, hours: Optional[int] = None) -> CollapsedTask:
        """Hide one of the actor's assignments from their count for a while"""
        hours = settings.collapse_default_hours if hours is None else hours
        if hours <= 0:
            raise ValidationError("Las horas para ocultar la tarea deben ser mayores a cero")

        assignment = self.assignment_repo.get_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError(f"Assignment {assignment_id} not found")
        if assignment.user_id != actor.user_id:
            raise PermissionDeniedError(
                "Solo puedes ocultar tus propias tareas",
                details={"assignment_id": assignment_id}
            )

        now = utc_now()
        marker = CollapsedTask(
            id=generate_collapsed_id(),
            user_id=actor.user_id,
            task_assignment_id=assignment_id,
            collapsed_at=now,
            expires_at=add_hours(now, hours)
        )
        return self.collapsed_repo.create_marker(marker)

    def expand_task(self, collapsed_id: str, actor: ActorContext) -> None:
        marker = self.collapsed_repo.get_marker(collapsed_id)
        if marker is None:
            raise NotFoundError(f"Collapsed task {collapsed_id} not found")
        if marker.user_id != actor.user_id:
            raise PermissionDeniedError(
                "Solo puedes mostrar tus propias tareas",
                details={"collapsed_id": collapsed_id}
            )
        self.collapsed_repo.delete_marker(collapsed_id)

    def list_collapsed(self, actor: ActorContext, now: Optional[datetime] = None) -> List[CollapsedTask]:
        return self.collapsed_repo.list_active_for_user(actor.user_id, now or utc_now())

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        return self.collapsed_repo.purge_expired(now or utc_now())


class TaskCountWatcher:
    """
    Keeps one user's count current from change events

    Assignment, payment task and collapsed-marker events for the user trigger a
    full recount; flow events only do so for flows the user holds tasks in. A
    duplicate event only costs a redundant recount.
    """

    def __init__(
        self,
        user_id: str,
        feed: ChangeFeed,
        count_service: TaskCountService,
        on_count: Optional[Callable[[int], None]] = None
    ):
        self.user_id = user_id
        self._feed = feed
        self._count_service = count_service
        self._on_count = on_count
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()
        self._flow_ids: FrozenSet[str] = frozenset()
        self._next_expiry: Optional[datetime] = None
        self.count: Optional[int] = None

    def start(self) -> int:
        """Subscribe and publish the initial count"""
        if not self._subscriptions:
            handler = self._on_change
            self._subscriptions = [
                self._feed.subscribe(TASK_ASSIGNMENTS, handler, filter={"user_id": self.user_id}),
                self._feed.subscribe(
                    TASK_INSTANCE_COLLECTIONS[FlowKind.PAYMENT], handler, filter={"assignee_id": self.user_id}
                ),
                self._feed.subscribe(COLLAPSED_TASKS, handler, filter={"user_id": self.user_id}),
                self._feed.subscribe(FLOW_COLLECTIONS[FlowKind.SALE], self._on_flow_change),
                self._feed.subscribe(FLOW_COLLECTIONS[FlowKind.PAYMENT], self._on_flow_change),
                self._feed.subscribe(
                    TASK_ASSIGNMENT_HISTORY, handler,
                    event_type=ChangeEventType.INSERT, filter={"user_id": self.user_id}
                ),
            ]
        return self.refresh()

    def refresh(self, now: Optional[datetime] = None) -> int:
        with self._lock:
            snapshot = self._count_service.snapshot_for_user(self.user_id, now)
            self.count = snapshot.count
            self._flow_ids = snapshot.flow_ids
            self._next_expiry = snapshot.next_expiry
        if self._on_count is not None:
            self._on_count(snapshot.count)
        return snapshot.count

    def current(self, now: Optional[datetime] = None) -> int:
        """
        The count as of now

        Served from the last recount unless none has run yet or a collapsed
        marker has expired since, which no change event announces.
        """
        now = now or utc_now()
        if self.count is None or (self._next_expiry is not None and now >= self._next_expiry):
            return self.refresh(now)
        return self.count

    def _on_change(self, event) -> None:
        logger.debug(f"Recounting tasks for {self.user_id} after {event.event_type.value} on {event.table}")
        self.refresh()

    def _on_flow_change(self, event) -> None:
        if event.row.get("id") not in self._flow_ids:
            return
        self._on_change(event)

    def close(self) -> None:
        for subscription in self._subscriptions:
            self._feed.unsubscribe(subscription)
        self._subscriptions = []
