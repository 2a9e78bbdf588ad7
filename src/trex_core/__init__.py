"""Transactional core for resource APIs over a relational store."""

from .context import RequestContext
from .db import (
    BasicSessionFactory,
    EngineConnectionProvider,
    Transaction,
    TransactionalSessionFactory,
    TransactionManager,
    TransactionState,
    mark_for_rollback,
    new_transaction,
)
from .schemas import EventType, ListQuery, ListResult, Meta, new_id
from .services import BaseCRUDService

__all__ = [
    "BaseCRUDService",
    "BasicSessionFactory",
    "EngineConnectionProvider",
    "EventType",
    "ListQuery",
    "ListResult",
    "Meta",
    "RequestContext",
    "Transaction",
    "TransactionManager",
    "TransactionState",
    "TransactionalSessionFactory",
    "mark_for_rollback",
    "new_id",
    "new_transaction",
]
