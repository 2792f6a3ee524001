"""按标签搜索宿主记录

TaggedSearchQueryBuilder 把标签集合和选项转换为对宿主模型的过滤条件（TaggedFilter）。
构造器本身不执行查询，也不持有状态，可并发调用。

三种模式:
    - ANY（默认）：至少带有其中一个标签
    - ALL（match_all=True）：带有全部标签
    - EXCLUDE（exclude=True）：不带有其中任何一个标签

ALL 模式通过"匹配的关联数 == 请求的标签数"判断。
该做法成立的前提是：请求的标签名互不重复，且同一宿主不会两次关联同一标签。
前者由构造时的不区分大小写去重保证，后者由关联表上 (tag_id, taggable_type, taggable_id) 的唯一约束保证。

使用示例:
    builder = TaggedSearchQueryBuilder(Photo, Tag, Tagging)
    
    tagged = builder.build("Nature, Good", match_all=True)
    if tagged.is_empty:
        photos = []
    else:
        photos = session.scalars(tagged.statement).all()
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.sql import ColumnElement, Select

from ytag.exceptions import Err, ErrorCode
from ytag.log import get_logger

from ..utils import escape_like
from .registry import taggable_registry
from .parser import unique_names
from .tag_list import coerce_tag_names

logger = get_logger("ytag.orm.taggable")


class TagMatchMode(str, Enum):
    """标签匹配模式"""
    ANY = "any"
    ALL = "all"
    EXCLUDE = "exclude"


@dataclass(frozen=True)
class TaggedFilter:
    """标签过滤条件
    
    criterion 为 None 表示请求的标签集合为空：调用方应直接返回空结果，
    而不是执行一个没有过滤条件的查询。
    """
    mode: TagMatchMode
    tag_names: Tuple[str, ...]
    criterion: Optional[ColumnElement]
    model: Any = None
    
    @property
    def is_empty(self) -> bool:
        return self.criterion is None
    
    def apply(self, stmt: Select) -> Select:
        """把过滤条件加到已有查询上"""
        if self.is_empty:
            raise Err.fail("标签集合为空，不能构造过滤查询", code=ErrorCode.INVALID_PARAMETER)
        return stmt.where(self.criterion)
    
    @property
    def statement(self) -> Select:
        """select(model) 加上过滤条件"""
        if self.model is None:
            raise Err.misconfigured("TaggedFilter 未绑定宿主模型")
        return self.apply(select(self.model))


class TaggedSearchQueryBuilder:
    """标签搜索条件构造器
    
    Args:
        model: 宿主模型
        tag_model: 标签模型
        tagging_model: 关联模型
        owner_type: 覆盖宿主类型名，默认取注册表中的 taggable_type
    """
    
    def __init__(self, model, tag_model, tagging_model, owner_type: Optional[str] = None):
        self.model = model
        self.tag_model = tag_model
        self.tagging_model = tagging_model
        self.owner_type = owner_type or taggable_registry.owner_type(model)
    
    def build(
        self,
        tags: Any,
        exclude: bool = False,
        match_all: bool = False,
        conditions: Optional[ColumnElement] = None,
        delimiter: Optional[str] = None,
    ) -> TaggedFilter:
        """构造过滤条件
        
        Args:
            tags: 标签文本、标签名列表、标签对象或它们的混合
            exclude: 排除带有这些标签的记录
            match_all: 要求带有全部标签
            conditions: 额外条件，与标签条件 AND 组合
            delimiter: 解析标签文本时使用的分隔符
        
        Returns:
            TaggedFilter，标签集合为空时 is_empty 为 True
        
        Raises:
            ConfigurationException: exclude 与 match_all 同时为 True
        """
        if exclude and match_all:
            raise Err.misconfigured(
                "exclude 与 match_all 不能同时使用",
                code=ErrorCode.CONFLICTING_OPTIONS,
            )
        
        if exclude:
            mode = TagMatchMode.EXCLUDE
        elif match_all:
            mode = TagMatchMode.ALL
        else:
            mode = TagMatchMode.ANY
        
        names = unique_names(coerce_tag_names(tags, delimiter), ignore_case=True)
        if not names:
            return TaggedFilter(mode=mode, tag_names=(), criterion=None, model=self.model)
        
        owners = self._matching_owners(names)
        if mode == TagMatchMode.ALL:
            owners = owners.group_by(self.tagging_model.taggable_id).having(
                func.count(self.tagging_model.id) == len(names)
            )
            criterion = self.model.id.in_(owners)
        elif mode == TagMatchMode.EXCLUDE:
            criterion = self.model.id.not_in(owners)
        else:
            criterion = self.model.id.in_(owners)
        
        if conditions is not None:
            criterion = and_(criterion, conditions)
        
        logger.debug(f"标签过滤: model={self.model.__name__}, mode={mode.value}, tags={names}")
        return TaggedFilter(mode=mode, tag_names=tuple(names), criterion=criterion, model=self.model)
    
    def _matching_owners(self, names) -> Select:
        """带有任一标签的宿主 ID 子查询（限定为本宿主类型）"""
        Tag = self.tag_model
        Tagging = self.tagging_model
        name_match = or_(*(Tag.name.ilike(escape_like(name), escape="\\") for name in names))
        return (
            select(Tagging.taggable_id)
            .join(Tag, Tag.id == Tagging.tag_id)
            .where(Tagging.taggable_type == self.owner_type, name_match)
        )
