"""Tests for reservation rescission"""

from datetime import datetime, timezone

import pytest

from salesflow.domain.errors import (
    CommissionNotFoundError, InvalidStateError, PermissionDeniedError, ValidationError
)
from salesflow.domain.models import BrokerCommission
from salesflow.repositories.reservation_repo import ReservationRepository
from salesflow.services.rescission_service import RescissionService, compute_penalty

PAID = datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest.fixture
def service(db, feed):
    return RescissionService(db, feed)


@pytest.fixture
def reservations(db, feed):
    return ReservationRepository(db, feed)


class TestPenalty:
    def test_first_payment_only(self):
        commission = BrokerCommission(
            id="c", reservation_id="r", commission_amount=100, first_payment_percentage=60, payment_1_date=PAID
        )
        assert compute_penalty(commission) == pytest.approx(60)

    def test_both_payments(self):
        commission = BrokerCommission(
            id="c", reservation_id="r", commission_amount=100, first_payment_percentage=60,
            payment_1_date=PAID, payment_2_date=PAID
        )
        assert compute_penalty(commission) == pytest.approx(100)

    def test_unpaid(self):
        assert compute_penalty(BrokerCommission(id="c", reservation_id="r", commission_amount=100)) == 0


def test_rescind_with_penalty(service, reservations, seed, admin):
    reservation_id = seed.reservation()
    commission_id = seed.commission(reservation_id, payment_1_date=PAID, at_risk=True, at_risk_reason="Atraso")

    result = service.rescind(reservation_id, "Cliente desiste", "CONFIRMAR", True, admin)

    assert result.reservation.is_rescinded is True
    assert result.reservation.rescinded_reason == "Cliente desiste"
    assert result.reservation.rescinded_by == admin.user_id
    assert result.penalty_amount == pytest.approx(60)
    commission = reservations.get_commission(commission_id)
    assert commission.penalty_amount == pytest.approx(60)
    assert commission.at_risk is False
    assert commission.at_risk_reason is None


def test_penalize_unpaid_commission_only_clears_risk(service, reservations, seed, admin):
    reservation_id = seed.reservation()
    commission_id = seed.commission(reservation_id, at_risk=True)

    result = service.rescind(reservation_id, "Sin financiamiento", "CONFIRMACIÓN", True, admin)

    assert result.penalty_amount is None
    commission = reservations.get_commission(commission_id)
    assert commission.penalty_amount is None
    assert commission.at_risk is False


@pytest.mark.parametrize("confirmation", ["confirmar", "", "CONFIRMA"])
def test_confirmation_text_required(service, reservations, seed, admin, confirmation):
    reservation_id = seed.reservation()

    with pytest.raises(ValidationError):
        service.rescind(reservation_id, "motivo", confirmation, False, admin)

    assert reservations.get_reservation(reservation_id).is_rescinded is False


def test_reason_required(service, seed, admin):
    with pytest.raises(ValidationError) as exc_info:
        service.rescind(seed.reservation(), "  ", "CONFIRMAR", False, admin)
    assert exc_info.value.message == "Debe ingresar un motivo para la resciliación"


def test_admin_only(service, reservations, seed, user):
    reservation_id = seed.reservation()
    with pytest.raises(PermissionDeniedError):
        service.rescind(reservation_id, "motivo", "CONFIRMAR", False, user)
    assert reservations.get_reservation(reservation_id).is_rescinded is False


def test_already_rescinded(service, seed, admin):
    reservation_id = seed.reservation(is_rescinded=True)
    with pytest.raises(InvalidStateError):
        service.rescind(reservation_id, "motivo", "CONFIRMAR", False, admin)


def test_penalize_without_commission_writes_nothing(service, reservations, seed, admin):
    reservation_id = seed.reservation()
    with pytest.raises(CommissionNotFoundError):
        service.rescind(reservation_id, "motivo", "CONFIRMAR", True, admin)
    assert reservations.get_reservation(reservation_id).is_rescinded is False
