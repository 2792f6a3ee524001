"""ORM模块

提供标签系统所需的 ORM 基础：
- CoreModel: 核心模型基类，包含ID、时间戳、CRUD
- BaseSchemas: Pydantic Schema基类
- 数据库会话管理
- 事务管理（传播行为、保存点、提交抑制）
- 标签系统（见 ytag.orm.taggable）

使用示例:
    from ytag.orm import CoreModel, init_database
    
    class Photo(CoreModel):
        title = mapped_column(String(200))
    
    init_database("sqlite:///./photos.db")
    Photo(title="sunset").save(commit=True)
"""

from .base_schemas import BaseSchemas, coerce_count
from .core_model import CoreModel, Base
from .db_session import (
    # 管理器单例
    db_manager,
    DatabaseManager,
    # 公开 API
    init_database,
    get_engine,
    db_session_scope,
    with_db_session,
    enable_sqlite_savepoints,
)
from .utils import to_snake_case, escape_like
from .transaction import (
    TransactionManager,
    TransactionPropagation,
    transaction_manager,
    get_current_transaction,
)

__all__ = [
    "BaseSchemas",
    "coerce_count",
    "CoreModel",
    "Base",
    "db_manager",
    "DatabaseManager",
    "init_database",
    "get_engine",
    "db_session_scope",
    "with_db_session",
    "enable_sqlite_savepoints",
    "to_snake_case",
    "escape_like",
    "TransactionManager",
    "TransactionPropagation",
    "transaction_manager",
    "get_current_transaction",
]
