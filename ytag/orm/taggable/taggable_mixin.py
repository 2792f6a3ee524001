"""可打标签 Mixin

为模型提供标签读写、按标签搜索和标签使用频率统计。

使用示例:
    from ytag.orm import CoreModel
    from ytag.orm.taggable import AbstractTag, AbstractTagging, TaggableMixin
    
    class Tag(CoreModel, AbstractTag):
        __tablename__ = "tags"
    
    class Tagging(CoreModel, AbstractTagging):
        __tablename__ = "taggings"
        __tag_model__ = Tag
    
    class Photo(CoreModel, TaggableMixin):
        __tag_model__ = Tag
        __tagging_model__ = Tagging
        
        title: Mapped[str] = mapped_column(String(200))
        # 可选：标签缓存列
        cached_tag_list: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    photo = Photo(title="sunset")
    photo.set_tags("Nature, Good", commit=True)
    photo.tag_list                          # TagList(['Nature', 'Good'])
    photo.has_tag("nature")                 # True
    
    Photo.find_tagged_with("Nature")
    Photo.find_tagged_with(["Nature", "Good"], match_all=True)
    Photo.tag_counts(at_least=2, order="count desc")
"""

from typing import Any, List, Optional

from sqlalchemy import delete, event, inspect as sa_inspect, select
from sqlalchemy.orm import Session

from ytag.exceptions import Err
from ytag.log import get_logger

from ..transaction import transaction_manager
from .frequency import TagCount, TagFrequencyAggregator
from .parser import unique_names
from .registry import taggable_registry
from .search import TaggedFilter, TaggedSearchQueryBuilder
from .synchronizer import TagAssociationSynchronizer, TagSyncResult
from .tag_list import TagList

logger = get_logger("ytag.orm.taggable")


class TaggableMixin:
    """可打标签 Mixin
    
    配置属性:
        __tag_model__: 标签模型（必需）
        __tagging_model__: 关联模型（必需）
        __taggable_type__: 写入 taggable_type 的类型名，默认为类名
        __cached_tag_list_column__: 标签缓存列名，模型上不存在该列时不使用缓存
    
    标签读取顺序: 内存 → 缓存列 → 关联表。
    对象被 refresh 或 expire 后内存中的标签列表失效，下次读取重新加载。
    
    注意:
        普通的 save() 不会改动标签关联，修改标签必须通过 set_tags() 等方法显式进行。
    """
    
    __tag_model__ = None
    __tagging_model__ = None
    __taggable_type__ = None
    __cached_tag_list_column__ = "cached_tag_list"
    
    _tag_list_memo = None
    
    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if not cls.__dict__.get("__abstract__", False):
            taggable_registry.register(cls)
    
    # ==================== 配置 ====================
    
    @classmethod
    def _get_tag_model(cls):
        tag_model = cls.__tag_model__
        if tag_model is None and cls.__tagging_model__ is not None:
            tag_model = getattr(cls.__tagging_model__, "__tag_model__", None)
        if tag_model is None:
            raise Err.misconfigured(f"{cls.__name__} 必须设置 __tag_model__ 属性")
        return tag_model
    
    @classmethod
    def _get_tagging_model(cls):
        if cls.__tagging_model__ is None:
            raise Err.misconfigured(f"{cls.__name__} 必须设置 __tagging_model__ 属性")
        return cls.__tagging_model__
    
    @classmethod
    def _class_session(cls, session: Session = None) -> Session:
        if session is not None:
            return session
        if getattr(cls, "query", None) is not None:
            return cls.query.session
        from ..db_session import db_manager
        return db_manager.get_session()
    
    @classmethod
    def _synchronizer(cls) -> TagAssociationSynchronizer:
        return TagAssociationSynchronizer(cls._get_tag_model(), cls._get_tagging_model())
    
    @classmethod
    def caches_tag_list(cls) -> bool:
        """模型上是否存在标签缓存列"""
        column = cls.__cached_tag_list_column__
        return bool(column) and column in sa_inspect(cls).columns
    
    # ==================== 读取 ====================
    
    @property
    def tag_list(self) -> TagList:
        """当前标签列表（返回副本，修改它不会影响记录）"""
        if self._tag_list_memo is None:
            self._tag_list_memo = self._load_tag_list()
        return self._tag_list_memo.copy()
    
    def _load_tag_list(self) -> TagList:
        if self.caches_tag_list():
            cached = getattr(self, self.__cached_tag_list_column__)
            if cached is not None:
                return TagList.from_string(cached)
        
        if not sa_inspect(self).has_identity:
            return TagList()
        return TagList(self.tag_names)
    
    @property
    def tags(self) -> list:
        """关联的标签对象（按关联创建顺序，总是读取关联表）"""
        if not sa_inspect(self).has_identity:
            return []
        Tag = self._get_tag_model()
        Tagging = self._get_tagging_model()
        stmt = (
            select(Tag)
            .join(Tagging, Tagging.tag_id == Tag.id)
            .where(
                Tagging.taggable_type == taggable_registry.owner_type(self),
                Tagging.taggable_id == self.id,
            )
            .order_by(Tagging.id)
        )
        return list(self.session.scalars(stmt))
    
    @property
    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]
    
    def has_tag(self, name: str) -> bool:
        """是否带有指定标签（不区分大小写）"""
        return self.tag_list.contains(name, ignore_case=True)
    
    def has_any_tags(self, *names: Any) -> bool:
        tags = self.tag_list
        return any(tags.contains(name, ignore_case=True) for name in TagList(*names))
    
    def has_all_tags(self, *names: Any) -> bool:
        tags = self.tag_list
        return all(tags.contains(name, ignore_case=True) for name in TagList(*names))
    
    # ==================== 修改 ====================
    
    def set_tags(self, tags: Any, commit: bool = False) -> TagSyncResult:
        """把标签设置为给定集合
        
        保存记录本身（刷新缓存列）并同步标签关联，两者在同一事务中完成，
        任一步失败都会整体回滚。
        
        Args:
            tags: 标签文本、名称列表、标签对象或 TagList
            commit: 是否提交（在外层事务中时由外层事务决定）
        
        Returns:
            TagSyncResult
        """
        synchronizer = self._synchronizer()
        desired = TagList(unique_names(TagList.coerce(tags).names, ignore_case=True))
        session = self.session
        
        with transaction_manager.transaction(session=session, auto_commit=commit):
            if self.caches_tag_list():
                setattr(self, self.__cached_tag_list_column__, desired.to_string())
            session.add(self)
            session.flush()
            result = synchronizer.reconcile(self, desired, session=session)
        
        self._tag_list_memo = desired
        return result
    
    def add_tags(self, *names: Any, commit: bool = False) -> TagSyncResult:
        """追加标签（名称按字面处理，不解析分隔符）"""
        return self.set_tags(self.tag_list.add(*names), commit=commit)
    
    def remove_tags(self, *names: Any, commit: bool = False) -> TagSyncResult:
        """移除标签（不区分大小写）"""
        return self.set_tags(self.tag_list.remove(*names, ignore_case=True), commit=commit)
    
    def clear_tags(self, commit: bool = False) -> TagSyncResult:
        return self.set_tags(TagList(), commit=commit)
    
    # ==================== 查询 ====================
    
    @classmethod
    def tagged_filter(
        cls,
        tags: Any,
        exclude: bool = False,
        match_all: bool = False,
        conditions=None,
    ) -> TaggedFilter:
        """构造按标签过滤的条件（见 TaggedSearchQueryBuilder）"""
        builder = TaggedSearchQueryBuilder(cls, cls._get_tag_model(), cls._get_tagging_model())
        return builder.build(tags, exclude=exclude, match_all=match_all, conditions=conditions)
    
    @classmethod
    def find_tagged_with(
        cls,
        tags: Any,
        exclude: bool = False,
        match_all: bool = False,
        conditions=None,
        limit: Optional[int] = None,
        session: Session = None,
    ) -> list:
        """按标签查找记录（按主键升序）
        
        标签集合为空时直接返回空列表。
        """
        tagged = cls.tagged_filter(tags, exclude=exclude, match_all=match_all, conditions=conditions)
        if tagged.is_empty:
            return []
        
        stmt = tagged.statement.order_by(cls.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(cls._class_session(session).scalars(stmt))
    
    @classmethod
    def tag_frequency_query(cls, **options):
        """本模型的标签使用频率查询（参数见 TagFrequencyAggregator.build）"""
        aggregator = TagFrequencyAggregator(cls._get_tag_model(), cls._get_tagging_model(), model=cls)
        return aggregator.build(**options)
    
    @classmethod
    def tag_counts(cls, session: Session = None, **options) -> List[TagCount]:
        """本模型的标签使用频率"""
        rows = cls._class_session(session).execute(cls.tag_frequency_query(**options)).all()
        return [TagCount.from_row(row) for row in rows]


# ==================== 事件监听器 ====================

@event.listens_for(TaggableMixin, "refresh", propagate=True)
def _forget_tag_list_on_refresh(target, context, attrs):
    target._tag_list_memo = None


@event.listens_for(TaggableMixin, "expire", propagate=True)
def _forget_tag_list_on_expire(target, attrs):
    target._tag_list_memo = None


@event.listens_for(TaggableMixin, "after_delete", propagate=True)
def _delete_taggings_of_owner(mapper, connection, target):
    """删除宿主记录时级联删除其全部关联"""
    tagging_model = type(target).__tagging_model__
    if tagging_model is None:
        return
    table = tagging_model.__table__
    connection.execute(
        delete(table).where(
            table.c.taggable_type == taggable_registry.owner_type(target),
            table.c.taggable_id == target.id,
        )
    )
