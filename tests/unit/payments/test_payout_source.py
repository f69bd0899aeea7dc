"""Payout origin derived from the confirming trigger."""

import pytest

from modules.orders.constants import StatusSource
from modules.payments.confirmation import payout_source

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "source,expected",
    [
        (StatusSource.WEBHOOK, "PIX-WEBHOOK"),
        (StatusSource.POLLER, "PIX-POLLER"),
        (StatusSource.ADMIN, "PIX-ADMIN"),
        ("", "PIX-WEBHOOK"),
        (None, "PIX-WEBHOOK"),
    ],
)
def test_payout_source(source, expected):
    assert payout_source({"aggregate_id": 1, "source": source}) == expected
