"""
ORM基础模型

提供主键、时间戳、常用CRUD操作和事务内的提交抑制
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, TYPE_CHECKING

from sqlalchemy import Integer, DateTime, func
from sqlalchemy.orm import (
    Mapped, mapped_column, declared_attr, declarative_base, Session, Query, object_session,
)

if TYPE_CHECKING:
    from typing_extensions import Self

from ytag.log import get_logger

from .transaction import get_current_transaction
from .utils import to_snake_case


logger = get_logger("ytag.orm.transaction")

# 声明基类
Base = declarative_base()


class CoreModel(Base):
    """ORM基础模型类
    
    提供功能：
    - 自增主键 id
    - 自动表名生成（驼峰转下划线）
    - created_at / updated_at 时间戳
    - save / delete / refresh / get 等常用操作
    - 事务上下文中 commit=True 自动降级为 flush
    
    使用示例:
        from ytag.orm import CoreModel, init_database
        
        init_database("sqlite:///./tags.db")
        
        class Photo(CoreModel):
            title: Mapped[str] = mapped_column(String(200))
        
        photo = Photo(title="sunset")
        photo.save(commit=True)
    """
    __abstract__ = True
    
    __allow_unmapped__ = True
    
    # query 属性在 init_database 后通过 scoped_session.query_property() 设置
    if TYPE_CHECKING:
        query: ClassVar[Query[Self]]
    else:
        query = None
    
    # 自动根据类名创建表名
    @declared_attr.directive
    def __tablename__(cls) -> str:
        """驼峰命名转下划线"""
        name = cls.__name__
        if '_' in name:
            raise ValueError(f'{name}字符中包含下划线，无法转换')
        return to_snake_case(name)
    
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="主键ID"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        comment="创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
        onupdate=func.now(),
        comment="更新时间"
    )
    
    # 系统字段列表（构造时自动忽略这些字段）
    _system_fields: ClassVar[set] = {'id', 'created_at', 'updated_at'}
    
    def __init__(self, **kwargs):
        """初始化模型实例
        
        自动忽略系统字段（id, created_at, updated_at），
        这些字段由数据库生成，用户传入的值会被静默忽略。
        需要写入历史时间（如导入旧数据）时，构造后再单独赋值。
        """
        for field in self._system_fields:
            kwargs.pop(field, None)
        super().__init__(**kwargs)
    
    def __repr__(self):
        return f"<{self.__class__.__name__} id={self.id}>"
    
    def __getattribute__(self, name):
        """访问 id 时，若对象处于 pending 状态则自动 flush 以获取主键"""
        value = super().__getattribute__(name)
        
        if name == 'id' and value is None:
            try:
                state = super().__getattribute__('_sa_instance_state')
                session = state.session
                # flush 过程中不能再次 flush
                if session is not None and state.pending and not session._flushing:
                    session.flush()
                    return super().__getattribute__(name)
            except (AttributeError, KeyError):
                # 对象尚未关联 session
                pass
        
        return value
    
    @property
    def session(self) -> Session:
        """获取当前session
        
        已关联 session 的对象返回其所属 session；
        否则优先从 query 属性获取，最后回退到全局 scoped_session
        """
        session = object_session(self)
        if session is not None:
            return session
        if self.__class__.query is not None:
            return self.__class__.query.session
        from .db_session import db_manager
        return db_manager.get_session()
    
    # ==================== CRUD 操作方法 ====================
    
    def save(self, commit: bool = False) -> Self:
        """保存对象（自动判断新增或更新）
        
        Args:
            commit: 是否立即提交，默认False
                   - 无事务时：执行 session.commit()
                   - 有事务时：commit 被抑制，但会自动 flush 以获取自动生成字段
        
        Returns:
            self: 返回自身，支持链式调用
        """
        self.session.add(self)
        self.__is_commit(commit)
        return self
    
    def delete(self, commit: bool = False):
        """删除对象"""
        session = self.session
        session.delete(self)
        if commit:
            if self._should_suppress_commit():
                session.flush()
                return
            session.commit()
    
    def refresh(self, attribute_names: list = None) -> Self:
        """从数据库重新加载对象状态"""
        if attribute_names:
            self.session.refresh(self, attribute_names)
        else:
            self.session.refresh(self)
        return self
    
    @classmethod
    def get(cls, id: int):
        """根据ID获取对象，不存在返回None"""
        return cls.query.session.get(cls, id)
    
    @classmethod
    def get_all(cls):
        """获取全部记录（按主键升序）"""
        return cls.query.order_by(cls.id).all()
    
    def to_dict(self, exclude: set = None) -> dict:
        """转换为字典（仅列字段）"""
        exclude = exclude or set()
        return {
            column.key: getattr(self, column.key)
            for column in self.__mapper__.column_attrs
            if column.key not in exclude
        }
    
    # ==================== 提交控制 ====================
    
    def __is_commit(self, commit=False):
        """根据参数决定是否提交
        
        当在事务上下文中且启用了提交抑制时，commit=True 会被忽略，
        但会自动执行 flush 以获取自动生成的字段（id, created_at 等）。
        """
        if commit:
            if self._should_suppress_commit():
                self.session.flush()
                self.session.refresh(self)
                return
            self.session.commit()
    
    def _should_suppress_commit(self) -> bool:
        """检查是否应该抑制提交"""
        tx = get_current_transaction()
        if tx is not None and tx.should_suppress_commit():
            logger.debug("commit=True 被事务上下文抑制")
            return True
        return False
