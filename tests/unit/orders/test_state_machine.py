"""Order status transitions."""

import pytest

from modules.orders.constants import FINAL_STATES, HOLDING_STATUSES, OrderStatus, is_final
from modules.orders.models import Order

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.NEW, OrderStatus.WAITING),
        (OrderStatus.WAITING, OrderStatus.CONFIRMED),
        (OrderStatus.WAITING, OrderStatus.EXPIRED),
        (OrderStatus.WAITING, OrderStatus.UNPAID),
        (OrderStatus.UNPAID, OrderStatus.WAITING),
        (OrderStatus.CONFIRMED, OrderStatus.REFUNDED),
    ],
)
def test_allowed(current, target):
    assert Order(status=current).can_transition_to(target) is True


@pytest.mark.parametrize(
    "current,target",
    [
        (OrderStatus.NEW, OrderStatus.CONFIRMED),
        (OrderStatus.CONFIRMED, OrderStatus.WAITING),
        (OrderStatus.CONFIRMED, OrderStatus.EXPIRED),
        (OrderStatus.EXPIRED, OrderStatus.CONFIRMED),
        (OrderStatus.CANCELED, OrderStatus.WAITING),
    ],
)
def test_rejected(current, target):
    assert Order(status=current).can_transition_to(target) is False


@pytest.mark.parametrize("status", sorted(FINAL_STATES))
def test_final_states(status):
    assert is_final(status)
    assert Order(status=status).is_final is True


def test_confirmed_is_not_final():
    assert Order(status=OrderStatus.CONFIRMED).is_final is False


def test_reference_follows_payment_method():
    assert Order(payment_method="pix", txid="tx1", charge_id="c1").reference == "tx1"
    assert Order(payment_method="card", txid="tx1", charge_id="c1").reference == "c1"


def test_holding_statuses_are_unpaid_and_not_final():
    assert set(HOLDING_STATUSES) == {OrderStatus.WAITING, OrderStatus.UNPAID}
    assert not FINAL_STATES & set(HOLDING_STATUSES)


def test_service_and_repository_share_holding_statuses():
    from modules.orders import services
    from modules.orders.repositories import django_repository

    assert services.HOLDING_STATUSES is HOLDING_STATUSES
    assert django_repository.HOLDING_STATUSES is HOLDING_STATUSES
