"""Reservation Routes - Rescission"""

from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..deps import get_current_user_dep, get_database_dep, get_change_feed_dep
from .schemas import RescindReservationRequest, RescindReservationResponse
from ...domain.models import ActorContext
from ...realtime.change_feed import ChangeFeed
from ...services.rescission_service import RescissionService

router = APIRouter()


@router.post("/{reservation_id}/rescind", response_model=RescindReservationResponse)
def rescind_reservation(
    reservation_id: str,
    request: RescindReservationRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
):
    """
    Rescind a reservation.

    Requires the typed confirmation and a reason. When penalize is set and the
    broker was already paid, the paid amount is recorded as penalty.
    """
    result = RescissionService(database, feed).rescind(
        reservation_id,
        reason=request.reason,
        confirmation_text=request.confirmation_text,
        penalize=request.penalize,
        actor=actor
    )
    return RescindReservationResponse(
        reservation=result.reservation,
        commission=result.commission,
        penalty_amount=result.penalty_amount
    )
