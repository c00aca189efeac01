"""Tests for assignee reconciliation and default assignees"""

import pytest

from salesflow.domain.enums import FlowKind, TaskStatus
from salesflow.domain.errors import PermissionDeniedError, StoreError, ValidationError
from salesflow.repositories.assignment_repo import AssignmentRepository
from salesflow.repositories.task_repo import TaskInstanceRepository
from salesflow.services.assignment_service import AssignmentService


@pytest.fixture
def service(db, feed):
    return AssignmentService(db, feed)


@pytest.fixture
def assignments(db, feed):
    return AssignmentRepository(db, feed)


@pytest.fixture
def target(sale_setup):
    return sale_setup["flow_id"], sale_setup["template"]["task_ids"][0][0]


def _user_ids(repo, flow_id, task_id):
    return sorted(a.user_id for a in repo.list_for_task(FlowKind.SALE, flow_id, task_id))


def test_replace_set_logs_history_for_removed_user(service, assignments, target, admin):
    flow_id, task_id = target
    service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["A", "B"], admin)

    result = service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["B", "C"], admin)

    assert _user_ids(assignments, flow_id, task_id) == ["B", "C"]
    assert result.removed == ["A"]
    assert result.added == ["C"]
    history = assignments.list_history(FlowKind.SALE, flow_id, task_id)
    assert len(history) == 1
    assert history[0].user_id == "A"
    assert history[0].removed_by == admin.user_id
    assert history[0].status == TaskStatus.PENDING
    assert result.instance.assignee_id is None


def test_reconcile_is_idempotent(service, target, admin):
    flow_id, task_id = target
    first = service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["A", "B"], admin)
    assert first.writes > 0

    again = service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["B", "A"], admin)

    assert again.writes == 0
    assert again.added == []
    assert again.removed == []


def test_direct_assignee_only_for_single_user(service, target, admin):
    flow_id, task_id = target

    single = service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["A"], admin)
    assert single.instance.assignee_id == "A"

    pair = service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["A", "B"], admin)
    assert pair.instance.assignee_id is None

    empty = service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, [], admin)
    assert empty.instance.assignee_id is None
    assert empty.removed == ["A", "B"]


def test_history_records_status_at_removal(service, assignments, seed, target, admin):
    flow_id, task_id = target
    seed.instance(FlowKind.SALE, flow_id, task_id, TaskStatus.IN_PROGRESS)
    seed.assignment(FlowKind.SALE, flow_id, task_id, "A", assigned_by="admin-2")

    service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, [], admin)

    (entry,) = assignments.list_history(FlowKind.SALE, flow_id, task_id)
    assert entry.status == TaskStatus.IN_PROGRESS
    assert entry.assigned_by == "admin-2"
    assert entry.assigned_at is not None


def test_non_admin_cannot_reassign_completed_task(service, assignments, seed, target, user):
    flow_id, task_id = target
    seed.instance(FlowKind.SALE, flow_id, task_id, TaskStatus.COMPLETED)
    seed.assignment(FlowKind.SALE, flow_id, task_id, "A")

    with pytest.raises(PermissionDeniedError):
        service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["B"], user)

    assert _user_ids(assignments, flow_id, task_id) == ["A"]


def test_blank_user_id_rejected_before_writes(service, db, feed, target, admin):
    flow_id, task_id = target
    with pytest.raises(ValidationError):
        service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["A", "  "], admin)
    assert TaskInstanceRepository(db, feed).get_instance(FlowKind.SALE, flow_id, task_id) is None


def test_default_assignees_are_admin_only(service, target, user, admin):
    _, task_id = target
    with pytest.raises(PermissionDeniedError):
        service.set_default_assignees(FlowKind.SALE, task_id, ["A"], user)

    service.set_default_assignees(FlowKind.SALE, task_id, ["A", "B"], admin)
    service.set_default_assignees(FlowKind.SALE, task_id, ["C"], admin)

    assert [d.user_id for d in service.list_default_assignees(FlowKind.SALE, task_id)] == ["C"]


def test_apply_defaults_to_new_flow(service, assignments, seed, sale_setup, admin):
    template = sale_setup["template"]
    first_task, second_task = template["task_ids"][0]
    service.set_default_assignees(FlowKind.SALE, first_task, ["A"], admin)
    flow_id = seed.flow(FlowKind.SALE, template["id"])

    results = service.apply_default_assignees(FlowKind.SALE, flow_id, template["id"], admin)

    assert list(results) == [first_task]
    assert _user_ids(assignments, flow_id, first_task) == ["A"]
    assert _user_ids(assignments, flow_id, second_task) == []


def _failing(*args, **kwargs):
    raise StoreError("Error de almacenamiento", details={"action": "test"})


def test_store_failure_while_adding_keeps_direct_assignee(service, seed, target, admin, monkeypatch):
    flow_id, task_id = target
    seed.instance(FlowKind.SALE, flow_id, task_id, TaskStatus.IN_PROGRESS, assignee_id="A")
    seed.assignment(FlowKind.SALE, flow_id, task_id, "A")
    monkeypatch.setattr(service.assignment_repo, "insert_assignment", _failing)

    with pytest.raises(StoreError):
        service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, ["B"], admin)

    assert service.task_repo.get_instance(FlowKind.SALE, flow_id, task_id).assignee_id == "A"


def test_store_failure_while_removing_writes_nothing_else(service, assignments, seed, target, admin, monkeypatch):
    flow_id, task_id = target
    seed.instance(FlowKind.SALE, flow_id, task_id, TaskStatus.IN_PROGRESS, assignee_id="A")
    seed.assignment(FlowKind.SALE, flow_id, task_id, "A")
    monkeypatch.setattr(service.assignment_repo, "delete_assignment", _failing)

    with pytest.raises(StoreError):
        service.reconcile_assignees(FlowKind.SALE, flow_id, task_id, [], admin)

    assert service.task_repo.get_instance(FlowKind.SALE, flow_id, task_id).assignee_id == "A"
    assert _user_ids(assignments, flow_id, task_id) == ["A"]
    assert assignments.list_history(FlowKind.SALE, flow_id, task_id) == []
