"""标签模型定义

提供标签系统的抽象模型定义。

使用示例:
    from ytag.orm import CoreModel
    from ytag.orm.taggable import AbstractTag, AbstractTagging
    
    class Tag(CoreModel, AbstractTag):
        __tablename__ = "tags"
    
    class Tagging(CoreModel, AbstractTagging):
        __tablename__ = "taggings"
        __tag_model__ = Tag
"""

from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Integer, String, UniqueConstraint, Index, delete, event, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, mapped_column, declared_attr, Session, object_session

from ytag.config import get_tagging_settings
from ytag.exceptions import Err, ErrorCode
from ytag.log import get_logger

from ..transaction import get_current_transaction
from .registry import taggable_registry, OwnerRef

if TYPE_CHECKING:
    from .frequency import TagCount
    from .synchronizer import TagSyncResult

logger = get_logger("ytag.orm.taggable")


@contextmanager
def _savepoint(session: Session):
    """在当前事务内开启保存点
    
    session 属于当前事务上下文时走 TransactionContext.savepoint()，
    否则直接使用 session.begin_nested()。
    """
    tx = get_current_transaction()
    if tx is not None and tx.is_active and tx.session is session:
        with tx.savepoint() as sp:
            yield sp
    else:
        with session.begin_nested() as nested:
            yield nested


class AbstractTag:
    """标签抽象模型
    
    字段说明:
        - name: 标签名称（唯一，按原样保存，查找时不区分大小写）
    
    不变式:
        不允许存在仅大小写不同的两个标签，创建前必须先做不区分大小写的查找；
        并发创建（包括仅大小写不同的名称）由 lower(name) 上的唯一索引兜底，冲突后重新查找。
        查找与唯一索引都使用数据库的 lower()，两者对同一对名称的判断总是一致；
        SQLite 的 lower() 只转换 ASCII 字母。
    
    使用示例:
        class Tag(CoreModel, AbstractTag):
            __tablename__ = "tags"
        
        tag = Tag.find_or_create("Python")
        Tag.find_by_name("python")      # 同一条记录
        Tag.counts(at_least=2)          # 全局使用频率
    """
    
    name: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="标签名称"
    )
    
    # 可选：显式指定关联模型；未指定时从注册表推断
    __tagging_model__ = None
    
    # ==================== 内部方法 ====================
    
    @classmethod
    def _resolve_session(cls, session: Session = None) -> Session:
        if session is not None:
            return session
        return cls.query.session
    
    @classmethod
    def _get_tagging_model(cls):
        """获取关联模型类"""
        model = getattr(cls, "__tagging_model__", None)
        if model is not None:
            return model
        
        models = taggable_registry.tagging_models_for(cls)
        if len(models) == 1:
            return models[0]
        raise Err.misconfigured(
            f"{cls.__name__} 无法确定关联模型，请设置 __tagging_model__ 属性",
            candidates=[m.__name__ for m in models],
        )
    
    # ==================== 类方法 ====================
    
    @classmethod
    def validate_name(cls, name: str) -> str:
        """校验并规范化标签名
        
        Returns:
            去除首尾空白后的名称
        
        Raises:
            ValidationException: 名称为空或超过最大长度
        """
        name = (name or "").strip()
        if not name:
            raise Err.invalid("标签名不能为空", code=ErrorCode.TAG_NAME_BLANK, field="name")
        
        max_length = get_tagging_settings().max_name_length
        if max_length and len(name) > max_length:
            raise Err.invalid(
                f"标签名长度不能超过 {max_length} 个字符",
                code=ErrorCode.TAG_NAME_TOO_LONG,
                field="name",
                value=name,
            )
        return name
    
    @classmethod
    def find_by_name(cls, name: str, session: Session = None):
        """按名称查找标签（不区分大小写）"""
        session = cls._resolve_session(session)
        stmt = (
            select(cls)
            .where(func.lower(cls.name) == func.lower(name.strip()))
            .order_by(cls.id)
            .limit(1)
        )
        return session.scalars(stmt).first()
    
    @classmethod
    def find_or_create(cls, name: str, session: Session = None, retries: int = None):
        """获取或创建标签
        
        先不区分大小写地查找；不存在时在保存点内插入。
        插入触发唯一约束冲突说明其他调用方已抢先创建，回滚保存点后重新查找。
        
        Args:
            name: 标签名称
            session: 数据库会话，不传则使用 query 绑定的 session
            retries: 冲突后的重试次数，不传则读取 TaggingSettings.create_retries
        
        Returns:
            标签对象
        
        Raises:
            ValidationException: 名称为空或过长
            ResourceConflictException: 重试耗尽仍无法读到已存在的标签
        """
        name = cls.validate_name(name)
        session = cls._resolve_session(session)
        if retries is None:
            retries = get_tagging_settings().create_retries
        
        for attempt in range(retries + 1):
            tag = cls.find_by_name(name, session=session)
            if tag is not None:
                return tag
            
            try:
                with _savepoint(session):
                    tag = cls(name=name)
                    session.add(tag)
                    session.flush()
                return tag
            except IntegrityError:
                logger.debug(f"标签 '{name}' 创建冲突，重新查找 (attempt={attempt + 1})")
        
        logger.warning(f"标签 '{name}' 创建冲突，重试 {retries} 次后仍未找到")
        raise Err.conflict(
            f"标签 '{name}' 创建冲突",
            code=ErrorCode.TAG_CONFLICT,
            name=name,
            retries=retries,
        )
    
    @classmethod
    def counts(cls, session: Session = None, **options) -> List["TagCount"]:
        """统计标签在所有宿主类型上的使用次数
        
        Args:
            session: 数据库会话
            **options: 同 TagFrequencyAggregator.build()，不支持 scope
        """
        from .frequency import TagFrequencyAggregator, TagCount
        
        session = cls._resolve_session(session)
        aggregator = TagFrequencyAggregator(cls, cls._get_tagging_model())
        rows = session.execute(aggregator.build(**options)).all()
        return [TagCount.from_row(row) for row in rows]
    
    # ==================== 实例方法 ====================
    
    def tagged(self, session: Session = None) -> list:
        """获取带有此标签的所有宿主记录（按关联创建顺序）"""
        session = session or object_session(self) or self._resolve_session()
        Tagging = self._get_tagging_model()
        
        refs = session.execute(
            select(Tagging.taggable_type, Tagging.taggable_id)
            .where(Tagging.tag_id == self.id)
            .order_by(Tagging.id)
        ).all()
        
        loaded = {}
        by_type = {}
        for taggable_type, taggable_id in refs:
            by_type.setdefault(taggable_type, []).append(taggable_id)
        for taggable_type, ids in by_type.items():
            owner_cls = taggable_registry.resolve(taggable_type)
            for owner in session.scalars(select(owner_cls).where(owner_cls.id.in_(ids))):
                loaded[(taggable_type, owner.id)] = owner
        
        return [loaded[ref] for ref in map(tuple, refs) if ref in loaded]
    
    def tag(self, taggable) -> "TagSyncResult":
        """把此标签加到宿主记录上（经由宿主的标签同步）"""
        return taggable.add_tags(self.name)
    
    def __str__(self) -> str:
        return self.name


class AbstractTagging:
    """标签关联抽象模型（多态关联）
    
    通过 taggable_type + taggable_id 实现多态关联，
    任意模型都可以使用同一套标签系统。
    
    字段说明:
        - tag_id: 标签ID
        - taggable_type: 宿主模型类型（如 "Photo"）
        - taggable_id: 宿主记录ID
        - created_at: 关联创建时间（由 CoreModel 提供）
    
    约束:
        - (tag_id, taggable_type, taggable_id) 唯一：同一宿主不会两次关联同一标签
        - (taggable_type, taggable_id) 索引：快速读取某记录的全部标签
    """
    
    # 可选：对应的标签模型，设置后自动登记到注册表
    __tag_model__ = None
    
    tag_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="标签ID"
    )
    taggable_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="宿主模型类型"
    )
    taggable_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="宿主记录ID"
    )
    
    @declared_attr.directive
    def __table_args__(cls):
        table = cls.__tablename__
        return (
            UniqueConstraint("tag_id", "taggable_type", "taggable_id", name=f"uq_{table}_tag_owner"),
            Index(f"ix_{table}_owner", "taggable_type", "taggable_id"),
        )
    
    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        tag_model = cls.__dict__.get("__tag_model__")
        if tag_model is not None:
            taggable_registry.link(tag_model, cls)
    
    @classmethod
    def create(cls, tag, taggable, created_at: Optional[datetime] = None):
        """构造一条关联（未加入 session）
        
        Args:
            tag: 标签对象
            taggable: 宿主记录
            created_at: 关联时间，不传则由数据库生成
        """
        tagging = cls(
            tag_id=tag.id,
            taggable_type=taggable_registry.owner_type(taggable),
            taggable_id=taggable.id,
        )
        if created_at is not None:
            # CoreModel 构造时忽略系统字段，构造后单独赋值
            tagging.created_at = created_at
        return tagging
    
    @property
    def owner_ref(self) -> OwnerRef:
        return OwnerRef(self.taggable_type, self.taggable_id)
    
    @property
    def taggable(self):
        """解析宿主记录，宿主类型未注册时抛出 ResourceNotFoundException"""
        owner_cls = taggable_registry.resolve(self.taggable_type)
        return object_session(self).get(owner_cls, self.taggable_id)
    
    @property
    def tag(self):
        tag_model = getattr(type(self), "__tag_model__", None)
        if tag_model is None:
            raise Err.misconfigured(f"{type(self).__name__} 必须设置 __tag_model__ 属性")
        return object_session(self).get(tag_model, self.tag_id)


# ==================== 事件监听器 ====================

@event.listens_for(AbstractTag, "instrument_class", propagate=True)
def _add_lower_name_index(mapper, class_):
    """为标签表添加 lower(name) 唯一索引"""
    table = mapper.local_table
    index_name = f"uq_{table.name}_lower_name"
    if any(index.name == index_name for index in table.indexes):
        return
    Index(index_name, func.lower(table.c.name), unique=True)


@event.listens_for(AbstractTag, "after_delete", propagate=True)
def _delete_taggings_of_tag(mapper, connection, target):
    """删除标签时级联删除其全部关联"""
    tagging_models = taggable_registry.tagging_models_for(type(target))
    explicit = getattr(type(target), "__tagging_model__", None)
    if explicit is not None and explicit not in tagging_models:
        tagging_models.append(explicit)
    
    for Tagging in tagging_models:
        table = Tagging.__table__
        connection.execute(delete(table).where(table.c.tag_id == target.id))
