"""测试辅助工具模块

提供测试专用的辅助函数，避免在核心代码中添加测试专用方法。
"""

from .transaction_helpers import (
    reset_transaction_manager,
    is_transaction_manager_initialized,
)
from .sql_helpers import (
    count_statements,
    WRITE_PREFIXES,
)

__all__ = [
    # 事务管理器辅助
    'reset_transaction_manager',
    'is_transaction_manager_initialized',
    # SQL 语句统计
    'count_statements',
    'WRITE_PREFIXES',
]
