"""Collaborator contracts and their SQLAlchemy implementations."""

from .interfaces import DataAccessObject, EventEmitter

__all__ = ["DataAccessObject", "EventEmitter"]
