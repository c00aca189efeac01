"""Rescission Service - Rescind a reservation and settle its broker commission"""
from dataclasses import dataclass
from typing import Any, Dict, Optional
from pymongo.database import Database

from ..domain.models import ActorContext, BrokerCommission, Reservation
from ..domain.enums import RESCISSION_CONFIRMATIONS
from ..domain.errors import CommissionNotFoundError, InvalidStateError, ValidationError
from ..engine.permission_guard import PermissionGuard
from ..realtime.change_feed import ChangeFeed
from ..repositories.reservation_repo import ReservationRepository
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RescissionResult:
    reservation: Reservation
    commission: Optional[BrokerCommission] = None
    penalty_amount: Optional[float] = None


def compute_penalty(commission: BrokerCommission) -> float:
    """
    Amount already paid to the broker

    The first payment covers first_payment_percentage of the commission and
    the second payment the remainder.
    """
    penalty = 0.0
    first_share = commission.first_payment_percentage / 100
    if commission.payment_1_date:
        penalty += commission.commission_amount * first_share
    if commission.payment_2_date:
        penalty += commission.commission_amount * (1 - first_share)
    return penalty


class RescissionService:
    """Destructive action: administrators only, typed confirmation required"""

    def __init__(self, database: Optional[Database] = None, feed: Optional[ChangeFeed] = None):
        self.reservation_repo = ReservationRepository(database, feed)
        self.permission_guard = PermissionGuard()

    def rescind(
        self,
        reservation_id: str,
        reason: str,
        confirmation_text: str,
        penalize: bool,
        actor: ActorContext
    ) -> RescissionResult:
        self.permission_guard.ensure_admin(actor, "rescind_reservation")

        if confirmation_text not in RESCISSION_CONFIRMATIONS:
            raise ValidationError(
                'Debe confirmar la resciliación escribiendo "CONFIRMAR" o "CONFIRMACIÓN"'
            )
        if not reason or not reason.strip():
            raise ValidationError("Debe ingresar un motivo para la resciliación")

        reservation = self.reservation_repo.get_reservation_or_raise(reservation_id)
        if reservation.is_rescinded:
            raise InvalidStateError(
                f"Reservation {reservation_id} is already rescinded",
                details={"reservation_id": reservation_id}
            )

        commission = self.reservation_repo.find_commission_for_reservation(reservation_id)
        if penalize and commission is None:
            raise CommissionNotFoundError(
                f"Reservation {reservation_id} has no broker commission to penalize",
                details={"reservation_id": reservation_id}
            )

        reservation = self.reservation_repo.update_reservation(reservation_id, {
            "is_rescinded": True,
            "rescinded_at": utc_now(),
            "rescinded_reason": reason.strip(),
            "rescinded_by": actor.user_id
        })
        logger.info(
            f"Reservation {reservation_id} rescinded",
            extra={"reservation_id": reservation_id, "user_id": actor.user_id, "action": "rescind"}
        )

        if commission is None:
            return RescissionResult(reservation=reservation)

        updates: Dict[str, Any] = {"at_risk": False, "at_risk_reason": None}
        penalty = None
        if penalize and commission.has_paid:
            penalty = compute_penalty(commission)
            updates["penalty_amount"] = penalty

        commission = self.reservation_repo.update_commission(commission.id, updates)
        if penalty is not None:
            logger.info(
                f"Commission {commission.id} penalized: {penalty}",
                extra={"reservation_id": reservation_id, "user_id": actor.user_id, "action": "penalize"}
            )
        return RescissionResult(reservation=reservation, commission=commission, penalty_amount=penalty)
