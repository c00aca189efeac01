"""
Pytest Configuration and Fixtures

Shared fixtures: an in-memory MongoDB (mongomock) with the real indexes, a
change feed per test, actors, and a seeder for templates, flows and the
business rows flows hang off.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import mongomock
import pytest

from salesflow.domain.enums import FlowKind, FlowStatus, TaskStatus
from salesflow.domain.models import ActorContext
from salesflow.realtime.change_feed import ChangeFeed
from salesflow.repositories.mongo_client import (
    BROKER_COMMISSIONS, FLOW_COLLECTIONS, FLOW_TEMPLATE_COLLECTIONS, PROFILES, RESERVATIONS,
    STAGE_COLLECTIONS, TASK_ASSIGNMENTS, TASK_INSTANCE_COLLECTIONS, TASK_TEMPLATE_COLLECTIONS,
    COLLAPSED_TASKS, create_indexes
)
from salesflow.utils.idgen import generate_id
from salesflow.utils.time import to_storage, utc_now


@pytest.fixture
def db():
    """Fresh in-memory database with the production indexes"""
    client = mongomock.MongoClient()
    database = client["salesflow_test"]
    create_indexes(database)
    yield database
    client.close()


@pytest.fixture
def feed():
    change_feed = ChangeFeed(delivery_timeout_seconds=2.0, max_workers=2)
    yield change_feed
    change_feed.close()


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(
        user_id="admin-1",
        email="admin@example.com",
        display_name="Ana Rojas",
        user_type="Administrador",
        is_admin=True
    )


@pytest.fixture
def user() -> ActorContext:
    return ActorContext(
        user_id="user-1",
        email="diego@example.com",
        display_name="Diego Soto",
        user_type="Vendedor",
        is_admin=False
    )


class Seeder:
    """Writes raw rows the way the rest of the back office would"""

    def __init__(self, database):
        self.db = database

    def _insert(self, collection: str, doc: Dict[str, Any]) -> Dict[str, Any]:
        doc = {k: (to_storage(v) if isinstance(v, datetime) else v) for k, v in doc.items()}
        doc["_id"] = doc["id"]
        self.db[collection].insert_one(doc)
        return doc

    def template(
        self,
        kind: FlowKind = FlowKind.SALE,
        stages: Sequence[Tuple[str, Sequence[str]]] = (("Reserva", ("Recepción", "Validación")),),
        name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a template; returns its id, stage ids and task ids per stage"""
        template_id = generate_id("TPL")
        self._insert(FLOW_TEMPLATE_COLLECTIONS[kind], {"id": template_id, "name": name or f"Plantilla {kind.value}"})
        stage_ids: List[str] = []
        task_ids: List[List[str]] = []
        for stage_order, (stage_name, task_names) in enumerate(stages, start=1):
            stage_id = generate_id("STG")
            self._insert(STAGE_COLLECTIONS[kind], {
                "id": stage_id, "flow_template_id": template_id, "name": stage_name, "order": stage_order
            })
            stage_ids.append(stage_id)
            ids = []
            for task_order, task_name in enumerate(task_names, start=1):
                task_id = generate_id("TTP")
                self._insert(TASK_TEMPLATE_COLLECTIONS[kind], {
                    "id": task_id, "stage_id": stage_id, "name": task_name, "order": task_order
                })
                ids.append(task_id)
            task_ids.append(ids)
        return {"id": template_id, "stage_ids": stage_ids, "task_ids": task_ids}

    def flow(
        self,
        kind: FlowKind,
        template_id: str,
        status: FlowStatus = FlowStatus.IN_PROGRESS,
        **fields: Any
    ) -> str:
        flow_id = generate_id("FLW")
        self._insert(FLOW_COLLECTIONS[kind], {
            "id": flow_id,
            "kind": kind.value,
            "flow_template_id": template_id,
            "status": status.value,
            "is_second_payment": False,
            "created_at": utc_now(),
            **fields
        })
        return flow_id

    def instance(
        self,
        kind: FlowKind,
        flow_id: str,
        task_id: str,
        status: TaskStatus = TaskStatus.PENDING,
        **fields: Any
    ) -> str:
        instance_id = generate_id("TSK")
        now = utc_now()
        self._insert(TASK_INSTANCE_COLLECTIONS[kind], {
            "id": instance_id,
            "flow_kind": kind.value,
            "flow_id": flow_id,
            "task_id": task_id,
            "status": status.value,
            "completed_at": now if status == TaskStatus.COMPLETED else None,
            "assignee_id": None,
            "created_at": now,
            "updated_at": now,
            **fields
        })
        return instance_id

    def assignment(self, kind: FlowKind, flow_id: str, task_id: str, user_id: str, assigned_by: str = "admin-1") -> str:
        assignment_id = generate_id("ASGN")
        self._insert(TASK_ASSIGNMENTS, {
            "id": assignment_id,
            "flow_kind": kind.value,
            "flow_id": flow_id,
            "task_id": task_id,
            "user_id": user_id,
            "assigned_by": assigned_by,
            "assigned_at": utc_now(),
        })
        return assignment_id

    def collapsed(self, user_id: str, assignment_id: str, expires_at: datetime) -> str:
        collapsed_id = generate_id("CLP")
        self._insert(COLLAPSED_TASKS, {
            "id": collapsed_id,
            "user_id": user_id,
            "task_assignment_id": assignment_id,
            "collapsed_at": utc_now(),
            "expires_at": expires_at,
        })
        return collapsed_id

    def profile(self, user_id: str, first_name: str, last_name: str = "", user_type: str = "Vendedor") -> str:
        self._insert(PROFILES, {
            "id": user_id,
            "first_name": first_name,
            "last_name": last_name,
            "email": f"{user_id}@example.com",
            "user_type": user_type,
        })
        return user_id

    def reservation(self, **fields: Any) -> str:
        reservation_id = fields.pop("id", None) or generate_id("RES")
        self._insert(RESERVATIONS, {
            "id": reservation_id,
            "reservation_number": "R-1001",
            "apartment_number": "1204",
            "project_name": "Edificio Mirador",
            "client_name": "Laura Méndez",
            "broker_name": "Corredora Andes",
            "is_rescinded": False,
            **fields
        })
        return reservation_id

    def commission(self, reservation_id: str, **fields: Any) -> str:
        commission_id = fields.pop("id", None) or generate_id("COM")
        self._insert(BROKER_COMMISSIONS, {
            "id": commission_id,
            "reservation_id": reservation_id,
            "commission_amount": 100.0,
            "first_payment_percentage": 60.0,
            "payment_1_date": None,
            "payment_2_date": None,
            "penalty_amount": None,
            "at_risk": False,
            "at_risk_reason": None,
            **fields
        })
        return commission_id


@pytest.fixture
def seed(db) -> Seeder:
    return Seeder(db)


@pytest.fixture
def sale_setup(seed):
    """A started sale flow over a two-stage template"""
    template = seed.template(
        FlowKind.SALE,
        stages=(("Reserva", ("Recepción", "Validación")), ("Promesa", ("Firma",)))
    )
    flow_id = seed.flow(FlowKind.SALE, template["id"], current_stage_id=template["stage_ids"][0])
    return {"template": template, "flow_id": flow_id}
