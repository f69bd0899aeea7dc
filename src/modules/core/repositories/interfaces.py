"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that all
domain-specific repository interfaces extend.  Service-layer code
depends on this abstraction, never on Django ORM directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, Protocol, TypeVar, Union

from django.db import models

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

EntityId = Union[int, str]


class Queryable(Protocol[T_co]):
    def filter(self, **kwargs: Any) -> models.QuerySet: ...


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` represents the domain entity managed by the
    repository (e.g. ``Order``, ``Payout``).
    """

    @abstractmethod
    def get_by_id(self, id: EntityId) -> Optional[T]:
        """Retrieve an entity by its primary key."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> Queryable[T]:
        """List entities with optional filters."""
