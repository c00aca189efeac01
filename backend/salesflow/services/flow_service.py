"""Flow Service - Flow views and lifecycle"""
from typing import Dict, List, Optional, Tuple
from pymongo.database import Database

from ..config.settings import settings
from ..domain.models import ActorContext, Flow, FlowView, StageView, TaskAssignment
from ..domain.enums import FlowKind, FlowStatus
from ..domain.errors import AlreadyExistsError, InvalidStateError, NotFoundError, ValidationError
from ..engine.rollup import build_stage_view, build_task_view
from ..realtime.change_feed import ChangeFeed
from ..repositories.assignment_repo import AssignmentRepository
from ..repositories.comment_repo import CommentRepository
from ..repositories.flow_repo import FlowRepository
from ..repositories.profile_repo import ProfileRepository
from ..repositories.reservation_repo import ReservationRepository
from ..repositories.task_repo import TaskInstanceRepository
from ..repositories.template_repo import TemplateRepository
from .assignment_service import AssignmentService
from ..utils.idgen import generate_flow_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FlowService:
    """
    Service for flow instances

    The current stage only moves through set_current_stage; completing every
    task of a stage does not advance it.
    """

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self.flow_repo = FlowRepository(database, feed)
        self.template_repo = TemplateRepository(database, feed)
        self.task_repo = TaskInstanceRepository(database, feed)
        self.assignment_repo = AssignmentRepository(database, feed)
        self.comment_repo = CommentRepository(database, feed)
        self.profile_repo = ProfileRepository(database, feed)
        self.reservation_repo = ReservationRepository(database, feed)
        self.assignment_service = AssignmentService(database, feed)

    # =========================================================================
    # Read side
    # =========================================================================

    def get_flow_view(self, kind: FlowKind, flow_id: str) -> FlowView:
        """Flow with ordered stages, effective task status, assignees and comment counts"""
        flow = self.flow_repo.get_flow_or_raise(kind, flow_id)
        stages = self.template_repo.list_stages(kind, flow.flow_template_id)
        tasks_by_stage = self.template_repo.list_tasks_for_stages(kind, [s.id for s in stages])

        instances = {i.task_id: i for i in self.task_repo.list_for_flow(kind, flow_id)}
        assignments: Dict[str, List[TaskAssignment]] = {}
        for assignment in self.assignment_repo.list_for_flow(kind, flow_id):
            assignments.setdefault(assignment.task_id, []).append(assignment)

        comment_counts = self.comment_repo.count_for_instances([i.id for i in instances.values()])

        user_ids = {a.user_id for rows in assignments.values() for a in rows}
        user_ids.update(i.assignee_id for i in instances.values() if i.assignee_id)
        profiles = self.profile_repo.get_profiles(user_ids)

        stage_views: List[StageView] = []
        current_stage_name = None
        for stage in stages:
            task_views = []
            for task in tasks_by_stage.get(stage.id, []):
                instance = instances.get(task.id)
                task_views.append(build_task_view(
                    task,
                    instance,
                    assignments.get(task.id, []),
                    profiles,
                    comment_counts.get(instance.id, 0) if instance else 0
                ))
            stage_views.append(build_stage_view(stage, task_views))
            if stage.id == flow.current_stage_id:
                current_stage_name = stage.name

        return FlowView(
            id=flow.id,
            kind=kind,
            status=flow.status,
            started_at=flow.started_at,
            completed_at=flow.completed_at,
            current_stage_id=flow.current_stage_id,
            current_stage_name=current_stage_name,
            reservation_id=flow.reservation_id,
            broker_commission_id=flow.broker_commission_id,
            stages=stage_views
        )

    # =========================================================================
    # Creation
    # =========================================================================

    def create_sale_flow(self, reservation_id: str, flow_template_id: str, actor: ActorContext) -> Flow:
        """Create the reservation's sale flow and seed its default assignees"""
        self.reservation_repo.get_reservation_or_raise(reservation_id)
        if self.flow_repo.find_for_reservation(reservation_id):
            raise AlreadyExistsError(
                f"Reservation {reservation_id} already has a sale flow",
                details={"reservation_id": reservation_id}
            )
        self.template_repo.get_flow_template_or_raise(FlowKind.SALE, flow_template_id)
        stages = self.template_repo.list_stages(FlowKind.SALE, flow_template_id)

        flow = Flow(
            id=generate_flow_id(FlowKind.SALE.value),
            kind=FlowKind.SALE,
            flow_template_id=flow_template_id,
            reservation_id=reservation_id,
            status=FlowStatus.PENDING,
            current_stage_id=stages[0].id if stages else None,
            created_at=utc_now()
        )
        self.flow_repo.create_flow(flow)
        self.assignment_service.apply_default_assignees(FlowKind.SALE, flow.id, flow_template_id, actor)

        logger.info(
            f"Sale flow {flow.id} created for reservation {reservation_id}",
            extra={"flow_id": flow.id, "reservation_id": reservation_id, "user_id": actor.user_id}
        )
        return flow

    def ensure_payment_flow(self, broker_commission_id: str, actor: ActorContext) -> Tuple[Flow, bool]:
        """
        Return the commission's main payment flow, creating it on first use

        Returns the flow and whether this call created it.
        """
        self.reservation_repo.get_commission_or_raise(broker_commission_id)

        existing = self.flow_repo.find_primary_commission_flow(broker_commission_id)
        if existing:
            return existing, False

        template = self.template_repo.find_flow_template_by_name(
            FlowKind.PAYMENT, settings.payment_flow_template_name
        )
        if not template:
            raise NotFoundError(
                f"Payment flow template '{settings.payment_flow_template_name}' not found"
            )
        stages = self.template_repo.list_stages(FlowKind.PAYMENT, template.id)

        flow = Flow(
            id=generate_flow_id(FlowKind.PAYMENT.value),
            kind=FlowKind.PAYMENT,
            flow_template_id=template.id,
            broker_commission_id=broker_commission_id,
            is_second_payment=False,
            status=FlowStatus.PENDING,
            current_stage_id=stages[0].id if stages else None,
            started_at=None,
            created_at=utc_now()
        )
        flow, created = self.flow_repo.get_or_create_primary_commission_flow(flow)
        if created:
            logger.info(
                f"Payment flow {flow.id} created for commission {broker_commission_id}",
                extra={"flow_id": flow.id, "flow_kind": FlowKind.PAYMENT.value, "user_id": actor.user_id}
            )
        return flow, created

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start_flow(self, kind: FlowKind, flow_id: str, actor: ActorContext) -> Flow:
        flow = self.flow_repo.get_flow_or_raise(kind, flow_id)
        if flow.status != FlowStatus.PENDING:
            raise InvalidStateError(
                f"Flow {flow_id} is {flow.status.value} and cannot be started",
                details={"status": flow.status.value}
            )
        flow = self.flow_repo.update_flow(kind, flow_id, {
            "status": FlowStatus.IN_PROGRESS,
            "started_at": utc_now()
        })
        logger.info(
            f"Flow {flow_id} started",
            extra={"flow_id": flow_id, "flow_kind": kind.value, "user_id": actor.user_id, "action": "start_flow"}
        )
        return flow

    def complete_flow(self, kind: FlowKind, flow_id: str, actor: ActorContext) -> Flow:
        flow = self.flow_repo.get_flow_or_raise(kind, flow_id)
        if flow.status == FlowStatus.COMPLETED:
            raise InvalidStateError(f"Flow {flow_id} is already completed", details={"status": flow.status.value})

        now = utc_now()
        updates = {"status": FlowStatus.COMPLETED, "completed_at": now}
        if flow.started_at is None:
            updates["started_at"] = now
        flow = self.flow_repo.update_flow(kind, flow_id, updates)
        logger.info(
            f"Flow {flow_id} completed",
            extra={"flow_id": flow_id, "flow_kind": kind.value, "user_id": actor.user_id, "action": "complete_flow"}
        )
        return flow

    def set_current_stage(self, kind: FlowKind, flow_id: str, stage_id: str, actor: ActorContext) -> Flow:
        """Move the current stage; the stage must belong to the flow's template"""
        flow = self.flow_repo.get_flow_or_raise(kind, flow_id)
        stage = self.template_repo.get_stage_or_raise(kind, stage_id)
        if stage.flow_template_id != flow.flow_template_id:
            raise ValidationError(
                f"Stage {stage_id} does not belong to the template of flow {flow_id}",
                details={"stage_id": stage_id, "flow_template_id": flow.flow_template_id}
            )
        if flow.current_stage_id == stage_id:
            return flow

        flow = self.flow_repo.update_flow(kind, flow_id, {"current_stage_id": stage_id})
        logger.info(
            f"Flow {flow_id} moved to stage {stage.name}",
            extra={"flow_id": flow_id, "flow_kind": kind.value, "user_id": actor.user_id, "action": "set_stage"}
        )
        return flow
