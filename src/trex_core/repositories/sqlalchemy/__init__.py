"""SQLAlchemy-backed DAO and event emitter implementations."""

from .base import SQLAlchemyDAO
from .events import DatabaseEventEmitter

__all__ = ["DatabaseEventEmitter", "SQLAlchemyDAO"]
