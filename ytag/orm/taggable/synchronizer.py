"""标签关联同步

把宿主记录已持久化的标签关联与期望的 TagList 对齐：
计算差异，删除多余的关联，查找或创建缺少的标签并建立关联，全部在一个事务内完成。

使用示例:
    sync = TagAssociationSynchronizer(Tag, Tagging)
    result = sync.reconcile(photo, TagList("Nature", "Good"), session=session)
    result.added      # ['Good']
    result.removed    # ['Crazy animal']
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ytag.config import get_tagging_settings
from ytag.log import get_logger

from ..transaction import TransactionManager, transaction_manager
from .registry import taggable_registry
from .tag_list import TagList

logger = get_logger("ytag.orm.taggable")


@dataclass(frozen=True)
class TagSyncPlan:
    """同步计划：需要新增和需要移除的标签名"""
    to_add: Tuple[str, ...] = ()
    to_remove: Tuple[str, ...] = ()
    
    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


@dataclass
class TagSyncResult:
    """同步结果"""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    
    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)


class TagAssociationSynchronizer:
    """标签关联同步器
    
    Args:
        tag_model: 标签模型
        tagging_model: 关联模型
        manager: 事务管理器，默认使用全局 transaction_manager
        lock: 同步前是否锁定宿主行（SELECT ... FOR UPDATE），
              None 时读取 TaggingSettings.lock_owner_rows
    """
    
    def __init__(
        self,
        tag_model,
        tagging_model,
        manager: Optional[TransactionManager] = None,
        lock: Optional[bool] = None,
    ):
        self.tag_model = tag_model
        self.tagging_model = tagging_model
        self.manager = manager or transaction_manager
        self.lock = get_tagging_settings().lock_owner_rows if lock is None else lock
    
    def current_tags(self, entity, session: Session) -> List[Tuple[Any, Any]]:
        """读取宿主当前的 (关联, 标签)，按关联创建顺序"""
        Tag = self.tag_model
        Tagging = self.tagging_model
        stmt = (
            select(Tagging, Tag)
            .join(Tag, Tag.id == Tagging.tag_id)
            .where(
                Tagging.taggable_type == taggable_registry.owner_type(entity),
                Tagging.taggable_id == entity.id,
            )
            .order_by(Tagging.id)
        )
        return [tuple(row) for row in session.execute(stmt).all()]
    
    def plan(self, current: Iterable[str], desired: Iterable[str]) -> TagSyncPlan:
        """计算差异（按名称，不区分大小写）"""
        current = list(current)
        desired = list(desired)
        current_keys = {name.lower() for name in current}
        desired_keys = {name.lower() for name in desired}
        
        to_add = []
        for name in desired:
            key = name.lower()
            if key not in current_keys:
                to_add.append(name)
                current_keys.add(key)
        to_remove = [name for name in current if name.lower() not in desired_keys]
        return TagSyncPlan(tuple(to_add), tuple(to_remove))
    
    def reconcile(self, entity, desired: Any, session: Optional[Session] = None) -> TagSyncResult:
        """同步宿主的标签关联
        
        当前标签集合与期望一致时不做任何写入。
        任一步骤失败时整个事务回滚，不会留下部分更新的标签集合。
        
        Args:
            entity: 已持久化（有 id）的宿主记录
            desired: 期望的标签（TagList、文本或名称列表）
            session: 数据库会话，不传则使用宿主记录所在的 session
        
        Returns:
            TagSyncResult
        """
        desired = TagList.coerce(desired)
        session = session or getattr(entity, "session", None)
        owner = f"{taggable_registry.owner_type(entity)}#{entity.id}"
        
        try:
            with self.manager.transaction(session=session) as tx:
                session = tx.session
                if self.lock:
                    self._lock_owner(entity, session)
                
                rows = self.current_tags(entity, session)
                plan = self.plan([tag.name for _, tag in rows], desired.names)
                if plan.is_empty:
                    return TagSyncResult()
                
                logger.debug(
                    f"同步标签: {owner}, add={list(plan.to_add)}, remove={list(plan.to_remove)}"
                )
                
                remove_keys = {name.lower() for name in plan.to_remove}
                removed_ids = [tagging.id for tagging, tag in rows if tag.name.lower() in remove_keys]
                if removed_ids:
                    session.execute(
                        delete(self.tagging_model)
                        .where(self.tagging_model.id.in_(removed_ids))
                        .execution_options(synchronize_session="fetch")
                    )
                
                for name in plan.to_add:
                    tag = self.tag_model.find_or_create(name, session=session)
                    session.add(self.tagging_model.create(tag, entity))
                session.flush()
                
                return TagSyncResult(added=list(plan.to_add), removed=list(plan.to_remove))
        except Exception as e:
            logger.warning(f"标签同步失败，已回滚: {owner}: {e}")
            raise
    
    def _lock_owner(self, entity, session: Session) -> None:
        model = type(entity)
        session.execute(select(model.id).where(model.id == entity.id).with_for_update())
