"""Payout repositories package."""

from modules.payouts.repositories.django_repository import PayoutDjangoRepository
from modules.payouts.repositories.interfaces import IPayoutRepository

__all__ = ["IPayoutRepository", "PayoutDjangoRepository"]
