"""Sessions, transactions and ORM helpers."""

from .db_init import init_db
from .db_models import Base, EventModel, MetaColumns
from .session import BasicSessionFactory, SessionFactory, TransactionalSessionFactory
from .transaction import Transaction, TransactionHandle, TransactionState
from .transactions import (
    ConnectionProvider,
    DirectConnection,
    EngineConnectionProvider,
    TransactionManager,
    mark_for_rollback,
    new_transaction,
)

__all__ = [
    "Base",
    "BasicSessionFactory",
    "ConnectionProvider",
    "DirectConnection",
    "EngineConnectionProvider",
    "EventModel",
    "MetaColumns",
    "SessionFactory",
    "Transaction",
    "TransactionHandle",
    "TransactionManager",
    "TransactionState",
    "TransactionalSessionFactory",
    "init_db",
    "mark_for_rollback",
    "new_transaction",
]
