"""事务管理器

提供事务管理的统一入口
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Callable, Optional, TypeVar, Generator

from sqlalchemy.orm import Session

from ytag.log import get_logger

from .propagation import TransactionPropagation
from .context import TransactionContext
from .exceptions import PropagationError

logger = get_logger("ytag.orm.transaction")

T = TypeVar('T')

# 当前事务上下文（线程/协程安全）
_current_transaction: ContextVar[Optional[TransactionContext]] = ContextVar(
    '_current_transaction', default=None
)


def get_current_transaction() -> Optional[TransactionContext]:
    """获取当前事务上下文，不在事务中则返回 None"""
    return _current_transaction.get()


class TransactionManager:
    """事务管理器
    
    使用示例:
        from ytag.orm import transaction_manager as tm
        
        with tm.transaction(session=session):
            photo.save()
            photo.set_tags("Nature, Animal")   # 加入同一事务
        
        @tm.transactional()
        def retag_all(photos, tags):
            for photo in photos:
                photo.set_tags(tags)
    """
    
    _instance = None
    
    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance
    
    def __init__(self):
        if self._initialized:
            return
        self._default_suppress_commit = True
        self._initialized = True
    
    def get_session(self) -> Session:
        """未显式传入 session 时使用全局 scoped session"""
        from ..db_session import db_manager
        return db_manager.get_session()
    
    @property
    def current_transaction(self) -> Optional[TransactionContext]:
        return _current_transaction.get()
    
    def configure(self, suppress_commit_in_transaction: bool = None) -> None:
        """修改默认配置
        
        Args:
            suppress_commit_in_transaction: 事务中是否把 save(commit=True) 降级为 flush
        """
        if suppress_commit_in_transaction is not None:
            self._default_suppress_commit = suppress_commit_in_transaction
    
    def is_in_transaction(self) -> bool:
        tx = self.current_transaction
        return tx is not None and tx.is_active
    
    # ==================== 事务入口 ====================
    
    @contextmanager
    def transaction(
        self,
        session: Session = None,
        propagation: TransactionPropagation = TransactionPropagation.REQUIRED,
        auto_commit: bool = True,
        suppress_commit: bool = None
    ) -> Generator[TransactionContext, None, None]:
        """进入事务
        
        只有同一 session 上的活跃事务才能被加入；传入其他 session 时总是新建事务。
        
        Args:
            session: 数据库会话，不传则沿用当前事务的 session 或全局 session
            propagation: 传播行为
            auto_commit: 新建的事务在结束时是否提交
            suppress_commit: 是否抑制事务内的 commit=True，None 使用 configure() 的默认值
        
        Yields:
            TransactionContext
        
        注意:
            加入外层事务时，内层异常必须继续向外抛出由最外层回滚；
            在内层捕获后继续执行会提交不完整的标签变更。
        """
        current = self.current_transaction
        if current is not None and current.is_active and session in (None, current.session):
            outer = current
        else:
            outer = None
        
        if propagation == TransactionPropagation.NEVER and self.is_in_transaction():
            raise PropagationError("NEVER", "不能在事务中执行")
        
        joined = self._enter_outer(outer, propagation)
        if joined is not None:
            with joined as tx:
                yield tx
            return
        
        ctx = TransactionContext(
            session=session if session is not None else self.get_session(),
            auto_commit=auto_commit,
            propagation=propagation,
            suppress_commit=self._default_suppress_commit if suppress_commit is None else suppress_commit,
        )
        token = _current_transaction.set(ctx)
        try:
            with ctx:
                yield ctx
        finally:
            _current_transaction.reset(token)
    
    def _enter_outer(self, outer: Optional[TransactionContext], propagation: TransactionPropagation):
        """按传播行为决定如何使用外层事务，返回 None 表示新建事务"""
        if propagation in (TransactionPropagation.MANDATORY, TransactionPropagation.NESTED) and outer is None:
            raise PropagationError(propagation.name, "需要一个同一 session 上的活跃外层事务")
        if outer is None or propagation == TransactionPropagation.NEVER:
            return None
        if propagation in (TransactionPropagation.REQUIRES_NEW, TransactionPropagation.NESTED):
            logger.debug(f"{propagation.name}: 在外层事务中创建保存点")
            return self._within_savepoint(outer)
        return self._join(outer, propagation.name)
    
    @contextmanager
    def _join(self, outer: TransactionContext, label: str):
        outer._nesting_level += 1
        logger.debug(f"{label}: 加入外层事务 (level={outer._nesting_level})")
        try:
            yield outer
        finally:
            if outer._nesting_level > 0:
                outer._nesting_level -= 1
    
    @contextmanager
    def _within_savepoint(self, outer: TransactionContext):
        with outer.savepoint():
            yield outer
    
    def transactional(
        self,
        propagation: TransactionPropagation = TransactionPropagation.REQUIRED,
        suppress_commit: bool = None
    ):
        """事务装饰器：函数正常返回时提交（最外层），抛出异常时回滚
        
        Args:
            propagation: 传播行为
            suppress_commit: 是否抑制事务内的 commit=True
        """
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @wraps(func)
            def wrapper(*args, **kwargs) -> T:
                with self.transaction(propagation=propagation, suppress_commit=suppress_commit):
                    return func(*args, **kwargs)
            return wrapper
        
        return decorator


# 全局单例
transaction_manager = TransactionManager()
