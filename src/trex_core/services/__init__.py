"""Generic resource services."""

from .crud import BaseCRUDService

__all__ = ["BaseCRUDService"]
