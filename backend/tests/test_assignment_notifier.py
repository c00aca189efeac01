"""Tests for assignment popups"""

import time

import pytest

from salesflow.domain.enums import FlowKind, FlowStatus, TaskStatus
from salesflow.domain.models import Profile
from salesflow.repositories.flow_repo import FlowRepository
from salesflow.services.assignment_notifier import AssignmentNotifier
from salesflow.services.assignment_service import AssignmentService
from salesflow.services.notification_hub import NotificationHub
from salesflow.services.popup_mediator import PopupMediator
from salesflow.services.task_count_service import TaskCountService
from salesflow.services.task_service import TaskService


@pytest.fixture
def scene(seed):
    template = seed.template(FlowKind.SALE, stages=(("Reserva", ("Firma de reserva", "Pago de reserva")),))
    reservation_id = seed.reservation()
    flow_id = seed.flow(FlowKind.SALE, template["id"], reservation_id=reservation_id)
    seed.profile("admin-1", "Ana", "Rojas", user_type="Administrador")
    seed.profile("user-1", "Diego", "Soto")
    return {"flow_id": flow_id, "task_ids": template["task_ids"][0]}


def _notifier(db, feed, debounce=0.0):
    popups = PopupMediator(clear_delay_seconds=0)
    notifier = AssignmentNotifier(
        Profile(id="user-1", first_name="Diego", last_name="Soto"),
        feed, popups, database=db, debounce_seconds=debounce
    )
    notifier.start()
    return notifier, popups


def test_assignment_shows_popup_with_task_details(db, feed, scene, admin):
    notifier, popups = _notifier(db, feed)

    AssignmentService(db, feed).reconcile_assignees(
        FlowKind.SALE, scene["flow_id"], scene["task_ids"][0], ["user-1"], admin
    )

    snapshot = popups.snapshot()
    assert snapshot["is_open"] is True
    assert snapshot["title"] == "Nueva tarea asignada"
    content = snapshot["content"]
    assert content["greeting"] == "Hola, Diego"
    assert content["task_name"] == "Firma de reserva"
    assert content["project_name"] == "Edificio Mirador"
    assert content["apartment_number"] == "1204"
    assert content["client_name"] == "Laura Méndez"
    notifier.close()


def test_other_users_assignments_are_ignored(db, feed, scene, admin):
    notifier, popups = _notifier(db, feed)

    AssignmentService(db, feed).reconcile_assignees(
        FlowKind.SALE, scene["flow_id"], scene["task_ids"][0], ["user-2"], admin
    )

    assert popups.is_open is False
    notifier.close()


def test_unassignment_names_who_removed(db, feed, scene, admin):
    service = AssignmentService(db, feed)
    service.reconcile_assignees(FlowKind.SALE, scene["flow_id"], scene["task_ids"][0], ["user-1"], admin)
    notifier, popups = _notifier(db, feed)

    service.reconcile_assignees(FlowKind.SALE, scene["flow_id"], scene["task_ids"][0], [], admin)

    snapshot = popups.snapshot()
    assert snapshot["title"] == "Tarea desasignada"
    assert snapshot["content"]["unassigned_by"] == "Ana Rojas"
    assert "note" not in snapshot["content"]
    notifier.close()


def test_unassignment_from_completed_task_notes_completion(db, feed, scene, admin):
    flow_id, task_id = scene["flow_id"], scene["task_ids"][0]
    service = AssignmentService(db, feed)
    service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["user-1"], admin)
    TaskService(db, feed).set_task_status(FlowKind.SALE, flow_id, task_id, TaskStatus.COMPLETED, admin)
    notifier, popups = _notifier(db, feed)

    service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, [], admin)

    content = popups.content
    assert content["note"] == "Tarea completada"
    assert content["status"] == "completed"
    notifier.close()


def test_unassignments_are_debounced(db, feed, scene, admin):
    flow_id = scene["flow_id"]
    first, second = scene["task_ids"]
    service = AssignmentService(db, feed)
    service.reconcile_assignees(FlowKind.SALE, flow_id, first, ["user-1"], admin)
    service.reconcile_assignees(FlowKind.SALE, flow_id, second, ["user-1"], admin)
    notifier, popups = _notifier(db, feed, debounce=0.3)

    service.reconcile_assignees(FlowKind.SALE, flow_id, first, [], admin)
    service.reconcile_assignees(FlowKind.SALE, flow_id, second, [], admin)
    assert popups.is_open is False

    time.sleep(0.9)
    assert popups.content["task_name"] == "Pago de reserva"
    notifier.close()


def test_hub_reuses_sessions(db, feed, scene, admin):
    hub = NotificationHub(db, feed)
    session = hub.session_for("user-1")

    assert hub.session_for("user-1") is session
    assert session.user.first_name == "Diego"
    assert session.task_count == 0

    AssignmentService(db, feed).reconcile_assignees(
        FlowKind.SALE, scene["flow_id"], scene["task_ids"][0], ["user-1"], admin
    )
    assert session.task_count == 1
    assert session.popups.is_open is True

    hub.close()
    assert feed.subscriber_count() == 0


def test_hub_sessions_ignore_flows_they_hold_no_tasks_in(db, feed, scene, monkeypatch):
    hub = NotificationHub(db, feed)
    for n in range(20):
        hub.session_for(f"user-{n}")
    recounts = []
    original = TaskCountService.snapshot_for_user

    def counting(self, user_id, now=None):
        recounts.append(user_id)
        return original(self, user_id, now)

    monkeypatch.setattr(TaskCountService, "snapshot_for_user", counting)

    FlowRepository(db, feed).update_flow(FlowKind.SALE, scene["flow_id"], {"status": FlowStatus.COMPLETED})

    assert recounts == []
    hub.close()


def test_idle_sessions_are_closed(db, feed, scene):
    clock = [0.0]
    hub = NotificationHub(db, feed, idle_timeout_seconds=60, clock=lambda: clock[0])
    hub.session_for("user-1")
    hub.session_for("user-2")

    clock[0] = 45.0
    hub.session_for("user-1")
    clock[0] = 90.0

    assert hub.evict_idle() == ["user-2"]
    assert hub.session_count() == 1

    assert hub.close_session("user-1") is True
    assert hub.close_session("user-1") is False
    assert feed.subscriber_count() == 0
