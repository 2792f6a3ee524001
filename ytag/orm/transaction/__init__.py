"""事务管理模块

使用示例:
    from ytag.orm.transaction import transaction_manager as tm, TransactionPropagation
    
    with tm.transaction(session=session) as tx:
        photo.save()
        with tx.savepoint():
            risky_operation()
"""

from .state import TransactionState
from .propagation import TransactionPropagation
from .exceptions import (
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
    SavepointError,
    SavepointNotFoundError,
    PropagationError,
)
from .context import TransactionContext, SavepointContext
from .manager import (
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)

__all__ = [
    "TransactionState",
    "TransactionPropagation",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "TransactionAlreadyRolledBackError",
    "SavepointError",
    "SavepointNotFoundError",
    "PropagationError",
    "TransactionContext",
    "SavepointContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
]
