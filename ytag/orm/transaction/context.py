"""事务上下文

TransactionContext 跟踪一次事务的状态、加入层级和提交抑制；
SavepointContext 对应事务内的一个 SAVEPOINT。
标签创建的唯一约束冲突只回滚到保存点，外层事务（宿主记录、其余标签）保持可用。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Optional, TYPE_CHECKING

from sqlalchemy.orm import Session

from ytag.log import get_logger

from .state import TransactionState
from .propagation import TransactionPropagation
from .exceptions import (
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
    SavepointNotFoundError,
)

if TYPE_CHECKING:
    from sqlalchemy.orm.session import SessionTransaction

logger = get_logger("ytag.orm.transaction")


class SavepointContext:
    """单个保存点

    由 TransactionContext.savepoint() 创建并负责释放或回滚，一般不直接实例化。
    """

    def __init__(self, name: str, nested: 'SessionTransaction'):
        self.name = name
        self._nested = nested
        self._state = TransactionState.ACTIVE

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == TransactionState.ACTIVE

    def release(self) -> None:
        """释放保存点，变更并入外层事务"""
        if not self.is_active:
            return
        self._finish(self._nested.commit, TransactionState.COMMITTED, "释放")

    def rollback(self) -> None:
        """撤销保存点之后的变更（已释放或已回滚时不做任何事）"""
        if self._state not in (TransactionState.ACTIVE, TransactionState.FAILED):
            return
        self._finish(self._nested.rollback, TransactionState.ROLLED_BACK, "回滚")

    def _finish(self, action, state: TransactionState, verb: str) -> None:
        try:
            action()
        except Exception:
            self._state = TransactionState.FAILED
            logger.error(f"保存点 {self.name} {verb}失败")
            raise
        self._state = state
        logger.debug(f"保存点 {self.name} 已{verb}")


class TransactionContext:
    """事务上下文

    - 最外层进入时激活，退出时按 auto_commit 提交，异常时回滚
    - REQUIRED/MANDATORY 加入时只增减嵌套层级，提交由最外层决定
    - suppress_commit 为真时，事务内 model.save(commit=True) 只 flush 不提交

    使用示例:
        with TransactionContext(session) as tx:
            photo.save()
            with tx.savepoint("tags"):
                synchronizer.reconcile(photo, "Nature, Animal")
    """

    def __init__(
        self,
        session: Session,
        auto_commit: bool = True,
        propagation: TransactionPropagation = None,
        suppress_commit: bool = True
    ):
        """
        Args:
            session: SQLAlchemy Session
            auto_commit: 最外层退出时是否提交
            propagation: 创建本事务时使用的传播行为
            suppress_commit: 是否抑制事务内的 commit=True
        """
        self._session = session
        self._auto_commit = auto_commit
        self._propagation = propagation or TransactionPropagation.REQUIRED
        self._suppress_commit = suppress_commit
        self._state = TransactionState.INACTIVE
        self._nesting_level = 0
        self._allow_commit_depth = 0
        self._savepoints: Dict[str, SavepointContext] = {}
        self._savepoint_counter = 0

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == TransactionState.ACTIVE

    @property
    def nesting_level(self) -> int:
        return self._nesting_level

    @property
    def suppress_commit(self) -> bool:
        """当前是否抑制提交（allow_commit() 块内不抑制）"""
        return self._suppress_commit and self._allow_commit_depth == 0

    @property
    def propagation(self) -> TransactionPropagation:
        return self._propagation

    # ==================== 生命周期 ====================

    def begin(self) -> 'TransactionContext':
        """激活事务；已激活时只增加嵌套层级（session 自动 begin）"""
        if self.is_active:
            self._nesting_level += 1
        else:
            self._state = TransactionState.ACTIVE
            self._nesting_level = 1
        logger.debug(f"事务进入 (level={self._nesting_level})")
        return self

    def commit(self) -> None:
        """提交事务；嵌套层级大于 1 时只退出一层"""
        self._ensure_not_finished()
        if not self.is_active:
            raise TransactionNotActiveError(f"无法提交：事务状态为 {self._state}")

        if self._nesting_level > 1:
            self._nesting_level -= 1
            return

        try:
            self._session.commit()
        except Exception:
            self._state = TransactionState.FAILED
            raise
        self._state = TransactionState.COMMITTED
        self._nesting_level = 0
        logger.debug("事务已提交")

    def rollback(self) -> None:
        """回滚事务（重复调用无副作用，已提交时报错）"""
        if self._state == TransactionState.COMMITTED:
            raise TransactionAlreadyCommittedError("无法回滚：事务已提交")
        if self._state not in (TransactionState.ACTIVE, TransactionState.FAILED):
            return

        try:
            self._session.rollback()
        except Exception as e:
            self._state = TransactionState.FAILED
            logger.error(f"事务回滚失败: {e}")
            raise
        self._state = TransactionState.ROLLED_BACK
        self._nesting_level = 0
        self._savepoints.clear()
        logger.debug("事务已回滚")

    def flush(self) -> None:
        if not self.is_active:
            raise TransactionNotActiveError("无法刷新：事务未激活")
        self._session.flush()

    def _ensure_not_finished(self) -> None:
        if self._state == TransactionState.COMMITTED:
            raise TransactionAlreadyCommittedError()
        if self._state == TransactionState.ROLLED_BACK:
            raise TransactionAlreadyRolledBackError()

    # ==================== 保存点 ====================

    @contextmanager
    def savepoint(self, name: str = None):
        """在事务内开启保存点

        块正常结束时释放保存点，抛出异常时回滚到保存点并继续抛出。

        Args:
            name: 保存点名称，默认按序号生成 sp_1、sp_2 ...

        Yields:
            SavepointContext
        """
        if not self.is_active:
            raise TransactionNotActiveError("无法创建保存点：事务未激活")

        if name is None:
            self._savepoint_counter += 1
            name = f"sp_{self._savepoint_counter}"

        sp = SavepointContext(name, self._session.begin_nested())
        self._savepoints[name] = sp
        try:
            yield sp
            sp.release()
        except Exception:
            sp.rollback()
            raise
        finally:
            self._savepoints.pop(name, None)

    def get_savepoint(self, name: str) -> Optional[SavepointContext]:
        return self._savepoints.get(name)

    def rollback_to_savepoint(self, name: str) -> None:
        sp = self._savepoints.get(name)
        if sp is None:
            raise SavepointNotFoundError(name)
        sp.rollback()

    # ==================== 提交抑制 ====================

    @contextmanager
    def allow_commit(self):
        """块内 commit=True 正常提交"""
        self._allow_commit_depth += 1
        try:
            yield
        finally:
            self._allow_commit_depth -= 1

    def should_suppress_commit(self) -> bool:
        """CoreModel.save(commit=True) 据此决定是提交还是只 flush"""
        return self.is_active and self.suppress_commit

    # ==================== 上下文管理器 ====================

    def __enter__(self) -> 'TransactionContext':
        return self.begin()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.rollback()
            return False

        if self._nesting_level > 1:
            self._nesting_level -= 1
        elif self._auto_commit and self.is_active:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        return False

    def __repr__(self) -> str:
        return (
            f"TransactionContext(state={self._state.value}, "
            f"level={self._nesting_level}, suppress_commit={self.suppress_commit})"
        )
