"""Reservation Repository - Reservations and broker commissions"""
from typing import Any, Dict, Optional
from pymongo import ReturnDocument

from .base import BaseRepository
from .mongo_client import RESERVATIONS, BROKER_COMMISSIONS, store_operation, strip_id, to_updates
from ..domain.models import Reservation, BrokerCommission
from ..domain.enums import ChangeEventType
from ..domain.errors import ReservationNotFoundError, CommissionNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ReservationRepository(BaseRepository):
    """
    Reservation and commission rows as far as the workflow touches them

    Both are owned by the wider back office; this repository only reads them
    and writes the rescission and penalty fields.
    """

    # =========================================================================
    # Reservations
    # =========================================================================

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        with store_operation("cargar reserva"):
            doc = self._collection(RESERVATIONS).find_one({"id": reservation_id})
        return Reservation.model_validate(strip_id(doc)) if doc else None

    def get_reservation_or_raise(self, reservation_id: str) -> Reservation:
        reservation = self.get_reservation(reservation_id)
        if not reservation:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def update_reservation(self, reservation_id: str, updates: Dict[str, Any]) -> Reservation:
        with store_operation("actualizar reserva"):
            old = self._collection(RESERVATIONS).find_one({"id": reservation_id})
            if old is None:
                raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
            new = self._collection(RESERVATIONS).find_one_and_update(
                {"id": reservation_id},
                {"$set": to_updates(updates)},
                return_document=ReturnDocument.AFTER
            )
        logger.info(f"Updated reservation: {reservation_id}", extra={"reservation_id": reservation_id})
        self._publish(RESERVATIONS, ChangeEventType.UPDATE, old=old, new=new)
        return Reservation.model_validate(strip_id(new))

    # =========================================================================
    # Broker commissions
    # =========================================================================

    def get_commission(self, commission_id: str) -> Optional[BrokerCommission]:
        with store_operation("cargar comisión"):
            doc = self._collection(BROKER_COMMISSIONS).find_one({"id": commission_id})
        return BrokerCommission.model_validate(strip_id(doc)) if doc else None

    def get_commission_or_raise(self, commission_id: str) -> BrokerCommission:
        commission = self.get_commission(commission_id)
        if not commission:
            raise CommissionNotFoundError(f"Broker commission {commission_id} not found")
        return commission

    def find_commission_for_reservation(self, reservation_id: str) -> Optional[BrokerCommission]:
        with store_operation("cargar comisión de la reserva"):
            doc = self._collection(BROKER_COMMISSIONS).find_one({"reservation_id": reservation_id})
        return BrokerCommission.model_validate(strip_id(doc)) if doc else None

    def update_commission(self, commission_id: str, updates: Dict[str, Any]) -> BrokerCommission:
        with store_operation("actualizar comisión"):
            old = self._collection(BROKER_COMMISSIONS).find_one({"id": commission_id})
            if old is None:
                raise CommissionNotFoundError(f"Broker commission {commission_id} not found")
            new = self._collection(BROKER_COMMISSIONS).find_one_and_update(
                {"id": commission_id},
                {"$set": to_updates(updates)},
                return_document=ReturnDocument.AFTER
            )
        logger.info(
            f"Updated broker commission: {commission_id}",
            extra={"reservation_id": new.get("reservation_id")}
        )
        self._publish(BROKER_COMMISSIONS, ChangeEventType.UPDATE, old=old, new=new)
        return BrokerCommission.model_validate(strip_id(new))
