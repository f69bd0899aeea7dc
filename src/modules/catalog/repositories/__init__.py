"""Catalog repositories package."""

from modules.catalog.repositories.django_repository import BookDjangoRepository
from modules.catalog.repositories.interfaces import IInventoryStore

__all__ = ["BookDjangoRepository", "IInventoryStore"]
