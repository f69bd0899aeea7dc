"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
Reconciliation no-ops (unknown reference, already paid, wrong status,
late payment) are *not* exceptions: ``confirm_payment`` reports them as a
``ConfirmationOutcome``.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist."""


class InvalidOrderStatus(Exception):
    """A status transition not allowed by the state machine was attempted."""
