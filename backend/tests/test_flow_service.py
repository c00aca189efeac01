"""Tests for flow views and flow lifecycle"""

import pytest

from salesflow.config.settings import settings
from salesflow.domain.enums import FlowKind, FlowStatus, TaskStatus
from salesflow.domain.errors import (
    AlreadyExistsError, CommissionNotFoundError, InvalidStateError, NotFoundError,
    ReservationNotFoundError, ValidationError
)
from salesflow.domain.models import Flow
from salesflow.repositories.assignment_repo import AssignmentRepository
from salesflow.repositories.flow_repo import FlowRepository
from salesflow.repositories.mongo_client import FLOW_COLLECTIONS
from salesflow.services.comment_service import CommentService
from salesflow.services.flow_service import FlowService
from salesflow.services.task_service import TaskService
from salesflow.utils.idgen import generate_id
from salesflow.utils.time import utc_now


@pytest.fixture
def service(db, feed):
    return FlowService(db, feed)


@pytest.fixture
def payment_template(seed):
    return seed.template(
        FlowKind.PAYMENT,
        stages=(("Solicitud", ("Orden de compra",)), ("Pago", ("Pago realizado",))),
        name=settings.payment_flow_template_name
    )


class TestFlowView:
    def test_view_shows_ordered_stages_and_pending_default(self, service, sale_setup):
        view = service.get_flow_view(FlowKind.SALE, sale_setup["flow_id"])

        assert [s.name for s in view.stages] == ["Reserva", "Promesa"]
        assert [t.name for t in view.stages[0].tasks] == ["Recepción", "Validación"]
        assert all(t.status == TaskStatus.PENDING for s in view.stages for t in s.tasks)
        assert view.current_stage_name == "Reserva"
        assert not any(s.is_completed for s in view.stages)

    def test_view_carries_assignees_and_comment_counts(self, service, db, feed, seed, sale_setup, user):
        flow_id = sale_setup["flow_id"]
        task_id = sale_setup["template"]["task_ids"][0][0]
        seed.profile("A", "Camila", "Pérez")
        seed.assignment(FlowKind.SALE, flow_id, task_id, "A")
        comments = CommentService(db, feed)
        comments.add_comment(FlowKind.SALE, flow_id, task_id, user, "uno")
        comments.add_comment(FlowKind.SALE, flow_id, task_id, user, "dos")

        task = service.get_flow_view(FlowKind.SALE, flow_id).stages[0].tasks[0]

        assert [(a.id, a.first_name) for a in task.assignees] == [("A", "Camila")]
        assert task.comments_count == 2

    def test_completed_task_shows_no_assignees(self, service, db, feed, seed, sale_setup, admin):
        flow_id = sale_setup["flow_id"]
        task_id = sale_setup["template"]["task_ids"][0][0]
        seed.assignment(FlowKind.SALE, flow_id, task_id, "A")
        TaskService(db, feed).set_task_status(FlowKind.SALE, flow_id, task_id, TaskStatus.COMPLETED, admin)

        task = service.get_flow_view(FlowKind.SALE, flow_id).stages[0].tasks[0]

        assert task.status == TaskStatus.COMPLETED
        assert task.assignees == []

    def test_stage_completion_does_not_advance_current_stage(self, service, db, feed, sale_setup, admin):
        flow_id = sale_setup["flow_id"]
        tasks = TaskService(db, feed)
        for task_id in sale_setup["template"]["task_ids"][0]:
            tasks.set_task_status(FlowKind.SALE, flow_id, task_id, TaskStatus.COMPLETED, admin)

        view = service.get_flow_view(FlowKind.SALE, flow_id)

        assert view.stages[0].is_completed is True
        assert view.current_stage_id == sale_setup["template"]["stage_ids"][0]


class TestSaleFlowCreation:
    def test_create_applies_defaults(self, service, db, feed, seed, admin):
        template = seed.template(FlowKind.SALE)
        first_task = template["task_ids"][0][0]
        service.assignment_service.set_default_assignees(FlowKind.SALE, first_task, ["A"], admin)
        reservation_id = seed.reservation()

        flow = service.create_sale_flow(reservation_id, template["id"], admin)

        assert flow.status == FlowStatus.PENDING
        assert flow.current_stage_id == template["stage_ids"][0]
        rows = AssignmentRepository(db, feed).list_for_task(FlowKind.SALE, flow.id, first_task)
        assert [a.user_id for a in rows] == ["A"]

    def test_one_sale_flow_per_reservation(self, service, seed, admin):
        template = seed.template(FlowKind.SALE)
        reservation_id = seed.reservation()
        service.create_sale_flow(reservation_id, template["id"], admin)

        with pytest.raises(AlreadyExistsError):
            service.create_sale_flow(reservation_id, template["id"], admin)

    def test_unknown_reservation(self, service, seed, admin):
        template = seed.template(FlowKind.SALE)
        with pytest.raises(ReservationNotFoundError):
            service.create_sale_flow("RES-missing", template["id"], admin)


class TestPaymentFlow:
    def test_ensure_is_idempotent(self, service, seed, payment_template, admin):
        commission_id = seed.commission(seed.reservation())

        first, created = service.ensure_payment_flow(commission_id, admin)
        again, created_again = service.ensure_payment_flow(commission_id, admin)

        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert first.status == FlowStatus.PENDING
        assert first.started_at is None
        assert first.current_stage_id == payment_template["stage_ids"][0]

    def test_unknown_commission(self, service, payment_template, admin):
        with pytest.raises(CommissionNotFoundError):
            service.ensure_payment_flow("COM-missing", admin)

    def test_missing_template(self, service, seed, admin):
        commission_id = seed.commission(seed.reservation())
        with pytest.raises(NotFoundError):
            service.ensure_payment_flow(commission_id, admin)


class TestLifecycle:
    def test_start_then_complete(self, service, seed, admin):
        template = seed.template(FlowKind.SALE)
        flow_id = seed.flow(FlowKind.SALE, template["id"], status=FlowStatus.PENDING)

        started = service.start_flow(FlowKind.SALE, flow_id, admin)
        assert started.status == FlowStatus.IN_PROGRESS
        assert started.started_at is not None

        with pytest.raises(InvalidStateError):
            service.start_flow(FlowKind.SALE, flow_id, admin)

        completed = service.complete_flow(FlowKind.SALE, flow_id, admin)
        assert completed.status == FlowStatus.COMPLETED
        assert completed.completed_at is not None

    def test_set_current_stage(self, service, sale_setup, admin):
        second_stage = sale_setup["template"]["stage_ids"][1]
        flow = service.set_current_stage(FlowKind.SALE, sale_setup["flow_id"], second_stage, admin)
        assert flow.current_stage_id == second_stage

    def test_stage_from_other_template_rejected(self, service, seed, sale_setup, admin):
        other = seed.template(FlowKind.SALE, name="Otra")
        with pytest.raises(ValidationError):
            service.set_current_stage(FlowKind.SALE, sale_setup["flow_id"], other["stage_ids"][0], admin)


class TestPrimaryCommissionFlow:
    @pytest.fixture
    def repo(self, db, feed):
        return FlowRepository(db, feed)

    def _new_flow(self, template_id, commission_id):
        return Flow(
            id=generate_id("FLW"),
            kind=FlowKind.PAYMENT,
            flow_template_id=template_id,
            broker_commission_id=commission_id,
            created_at=utc_now()
        )

    def test_row_without_second_payment_flag_is_reused(self, repo, db, seed, payment_template):
        commission_id = seed.commission(seed.reservation())
        legacy_id = seed.flow(FlowKind.PAYMENT, payment_template["id"], broker_commission_id=commission_id)
        collection = db[FLOW_COLLECTIONS[FlowKind.PAYMENT]]
        collection.update_one({"id": legacy_id}, {"$unset": {"is_second_payment": ""}})

        assert repo.find_primary_commission_flow(commission_id).id == legacy_id
        flow, created = repo.get_or_create_primary_commission_flow(
            self._new_flow(payment_template["id"], commission_id)
        )

        assert created is False
        assert flow.id == legacy_id
        assert collection.count_documents({"broker_commission_id": commission_id}) == 1

    def test_second_payment_flow_is_not_the_primary(self, repo, db, seed, payment_template):
        commission_id = seed.commission(seed.reservation())
        seed.flow(FlowKind.PAYMENT, payment_template["id"], broker_commission_id=commission_id, is_second_payment=True)

        flow, created = repo.get_or_create_primary_commission_flow(
            self._new_flow(payment_template["id"], commission_id)
        )

        assert created is True
        stored = repo.find_primary_commission_flow(commission_id)
        assert stored.id == flow.id
        assert stored.is_second_payment is False
