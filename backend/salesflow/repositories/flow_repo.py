"""Flow Repository - Data access for sale and payment flow instances"""
from typing import Any, Dict, Iterable, Optional, Tuple
from pymongo import ReturnDocument

from .base import BaseRepository
from .mongo_client import FLOW_COLLECTIONS, store_operation, strip_id, to_document, to_updates
from ..domain.models import Flow
from ..domain.enums import ChangeEventType, FlowKind, FlowStatus
from ..domain.errors import FlowNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FlowRepository(BaseRepository):
    """Repository for flow instance operations"""

    def create_flow(self, flow: Flow) -> Flow:
        """Create a new flow instance"""
        table = FLOW_COLLECTIONS[flow.kind]
        doc = to_document(flow)
        with store_operation("crear flujo"):
            self._collection(table).insert_one(doc)
        logger.info(
            f"Created {flow.kind.value} flow: {flow.id}",
            extra={"flow_id": flow.id, "flow_kind": flow.kind.value}
        )
        self._publish(table, ChangeEventType.INSERT, new=doc)
        return flow

    def get_flow(self, kind: FlowKind, flow_id: str) -> Optional[Flow]:
        """Get flow by ID"""
        with store_operation("cargar flujo"):
            doc = self._collection(FLOW_COLLECTIONS[kind]).find_one({"id": flow_id})
        if doc:
            return Flow.model_validate({**strip_id(doc), "kind": kind})
        return None

    def get_flow_or_raise(self, kind: FlowKind, flow_id: str) -> Flow:
        """Get flow by ID or raise error"""
        flow = self.get_flow(kind, flow_id)
        if not flow:
            raise FlowNotFoundError(f"Flow {flow_id} not found", details={"kind": kind.value})
        return flow

    def update_flow(self, kind: FlowKind, flow_id: str, updates: Dict[str, Any]) -> Flow:
        """Apply a partial update and return the stored flow"""
        table = FLOW_COLLECTIONS[kind]
        with store_operation("actualizar flujo"):
            old = self._collection(table).find_one({"id": flow_id})
            if old is None:
                raise FlowNotFoundError(f"Flow {flow_id} not found", details={"kind": kind.value})
            new = self._collection(table).find_one_and_update(
                {"id": flow_id},
                {"$set": to_updates(updates)},
                return_document=ReturnDocument.AFTER
            )
        if new is None:
            raise FlowNotFoundError(f"Flow {flow_id} not found", details={"kind": kind.value})

        logger.info(f"Updated flow: {flow_id}", extra={"flow_id": flow_id, "flow_kind": kind.value})
        self._publish(table, ChangeEventType.UPDATE, old=old, new=new)
        return Flow.model_validate({**strip_id(new), "kind": kind})

    def find_for_reservation(self, reservation_id: str) -> Optional[Flow]:
        with store_operation("buscar flujo de reserva"):
            doc = self._collection(FLOW_COLLECTIONS[FlowKind.SALE]).find_one({"reservation_id": reservation_id})
        if doc:
            return Flow.model_validate({**strip_id(doc), "kind": FlowKind.SALE})
        return None

    @staticmethod
    def _primary_commission_key(broker_commission_id: str) -> Dict[str, Any]:
        # Rows written before is_second_payment existed count as primary flows
        return {"broker_commission_id": broker_commission_id, "is_second_payment": {"$ne": True}}

    def find_primary_commission_flow(self, broker_commission_id: str) -> Optional[Flow]:
        """The commission's flow that is not a second-payment flow"""
        with store_operation("buscar flujo de pago"):
            doc = self._collection(FLOW_COLLECTIONS[FlowKind.PAYMENT]).find_one(
                self._primary_commission_key(broker_commission_id)
            )
        if doc:
            return Flow.model_validate({**strip_id(doc), "kind": FlowKind.PAYMENT})
        return None

    def get_or_create_primary_commission_flow(self, flow: Flow) -> Tuple[Flow, bool]:
        """
        Upsert the commission's main payment flow

        Returns the stored flow and whether this call inserted it. Matches the
        same rows as find_primary_commission_flow so repeat calls reuse the
        first row.
        """
        table = FLOW_COLLECTIONS[FlowKind.PAYMENT]
        key = self._primary_commission_key(flow.broker_commission_id)
        doc = to_document(flow)
        on_insert = {k: v for k, v in doc.items() if k != "broker_commission_id"}

        with store_operation("crear flujo de pago"):
            before = self._collection(table).find_one_and_update(
                key,
                {"$setOnInsert": on_insert},
                upsert=True,
                return_document=ReturnDocument.BEFORE
            )
        if before is not None:
            return Flow.model_validate({**strip_id(before), "kind": FlowKind.PAYMENT}), False

        logger.info(
            f"Created payment flow: {flow.id}",
            extra={"flow_id": flow.id, "flow_kind": FlowKind.PAYMENT.value}
        )
        self._publish(table, ChangeEventType.INSERT, new=doc)
        return flow, True

    def get_statuses(self, kind: FlowKind, flow_ids: Iterable[str]) -> Dict[str, FlowStatus]:
        """Map flow id to status for the given flows (missing flows are omitted)"""
        ids = list(set(flow_ids))
        if not ids:
            return {}
        with store_operation("cargar estado de flujos"):
            cursor = self._collection(FLOW_COLLECTIONS[kind]).find(
                {"id": {"$in": ids}},
                {"id": 1, "status": 1}
            )
            return {doc["id"]: FlowStatus(doc["status"]) for doc in cursor}
