"""Tests for housekeeping jobs and store error mapping"""

import asyncio
from datetime import timedelta

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from salesflow.domain.enums import FlowKind
from salesflow.domain.errors import StoreError
from salesflow.repositories.mongo_client import store_operation
from salesflow.scheduler.cleanup_scheduler import CleanupScheduler
from salesflow.services.task_count_service import TaskCountService
from salesflow.utils.time import utc_now


def test_purge_job_removes_expired_markers(db, feed, seed, user):
    template = seed.template(FlowKind.SALE)
    flow_id = seed.flow(FlowKind.SALE, template["id"])
    assignment_id = seed.assignment(FlowKind.SALE, flow_id, template["task_ids"][0][0], user.user_id)
    seed.collapsed(user.user_id, assignment_id, utc_now() - timedelta(hours=2))

    scheduler = CleanupScheduler(TaskCountService(db, feed))

    assert asyncio.run(scheduler.purge_collapsed_tasks()) == 1
    assert asyncio.run(scheduler.purge_collapsed_tasks()) == 0


def test_purge_job_survives_store_errors():
    class BrokenCountService:
        def purge_expired(self):
            raise StoreError("connection refused", details={"action": "limpiar tareas ocultas"})

    scheduler = CleanupScheduler(BrokenCountService())

    assert asyncio.run(scheduler.purge_collapsed_tasks()) == 0


def test_store_operation_maps_driver_errors():
    with pytest.raises(StoreError) as exc_info:
        with store_operation("cargar flujo"):
            raise ServerSelectionTimeoutError("no servers")
    assert exc_info.value.details == {"action": "cargar flujo"}

    with pytest.raises(DuplicateKeyError):
        with store_operation("crear tarea"):
            raise DuplicateKeyError("dup")
