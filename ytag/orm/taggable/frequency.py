"""标签使用频率统计

按标签统计关联数量，生成 (id, name, count) 的分组查询，用于标签云等场景。
只构造查询，不执行。

使用示例:
    aggregator = TagFrequencyAggregator(Tag, Tagging, model=Photo)
    stmt = aggregator.build(at_least=2, order="count desc", limit=10)
    counts = [TagCount.from_row(row) for row in session.execute(stmt)]
    
    # 只统计某个用户的照片
    stmt = aggregator.build(scope={"user_id": user.id})
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ConfigDict, field_validator
from sqlalchemy import and_, func, inspect, select
from sqlalchemy.sql import ColumnElement, Select

from ytag.exceptions import Err, ErrorCode

from ..base_schemas import BaseSchemas, coerce_count
from .registry import taggable_registry


_ORDER_KEYS = ("id", "name", "count")
_ORDER_DIRECTIONS = ("asc", "desc")


class TagCount(BaseSchemas):
    """标签计数结果"""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)
    
    id: int
    name: str
    count: int = 0
    
    @field_validator("count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return coerce_count(value)
    
    @classmethod
    def from_row(cls, row) -> "TagCount":
        """从查询结果行构造（支持 Row、映射或 (id, name, count) 元组）"""
        if isinstance(row, Mapping):
            return cls(**row)
        mapping = getattr(row, "_mapping", None)
        if mapping is not None:
            return cls(id=mapping["id"], name=mapping["name"], count=mapping["count"])
        tag_id, name, count = row
        return cls(id=tag_id, name=name, count=count)
    
    def __str__(self) -> str:
        return self.name


class TagFrequencyAggregator:
    """标签使用频率查询构造器
    
    Args:
        tag_model: 标签模型
        tagging_model: 关联模型
        model: 宿主模型，为 None 时统计所有宿主类型
        owner_type: 覆盖宿主类型名，默认取注册表中的 taggable_type
    """
    
    def __init__(self, tag_model, tagging_model, model=None, owner_type: Optional[str] = None):
        self.tag_model = tag_model
        self.tagging_model = tagging_model
        self.model = model
        if owner_type is None and model is not None:
            owner_type = taggable_registry.owner_type(model)
        self.owner_type = owner_type
    
    def build(
        self,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        conditions: Optional[ColumnElement] = None,
        at_least: Optional[int] = None,
        at_most: Optional[int] = None,
        order: Union[str, Any, Sequence[Any], None] = None,
        limit: Optional[int] = None,
        scope: Optional[Mapping[str, Any]] = None,
    ) -> Select:
        """构造分组计数查询
        
        Args:
            start_at: 关联创建时间下限（含）
            end_at: 关联创建时间上限（含）
            conditions: 额外的过滤条件（AND）
            at_least: 计数下限（HAVING）
            at_most: 计数上限（HAVING）
            order: 排序，字符串如 "count desc"、"name"，或 SQLAlchemy 排序表达式
            limit: 返回数量
            scope: 宿主列名到值的映射，按相等过滤
        
        Returns:
            结果列为 id, name, count 的 Select
        """
        Tag = self.tag_model
        Tagging = self.tagging_model
        count = func.count(Tagging.id)
        
        stmt = (
            select(Tag.id.label("id"), Tag.name.label("name"), count.label("count"))
            .select_from(Tag)
            .join(Tagging, Tagging.tag_id == Tag.id)
        )
        
        criteria = []
        if self.model is not None:
            stmt = stmt.join(self.model, self.model.id == Tagging.taggable_id)
        if self.owner_type is not None:
            criteria.append(Tagging.taggable_type == self.owner_type)
        if start_at is not None:
            criteria.append(Tagging.created_at >= start_at)
        if end_at is not None:
            criteria.append(Tagging.created_at <= end_at)
        if scope:
            criteria.extend(self._scope_criteria(scope))
        if conditions is not None:
            criteria.append(conditions)
        if criteria:
            stmt = stmt.where(and_(*criteria))
        
        having = [count > 0]
        if at_least is not None:
            having.append(count >= at_least)
        if at_most is not None:
            having.append(count <= at_most)
        
        stmt = stmt.group_by(Tag.id, Tag.name).having(and_(*having))
        
        if order is not None:
            stmt = stmt.order_by(*self._order_clauses(order, count))
        if limit is not None:
            stmt = stmt.limit(limit)
        return stmt
    
    def _scope_criteria(self, scope: Mapping[str, Any]) -> list:
        if self.model is None:
            raise Err.misconfigured("scope 需要指定宿主模型", code=ErrorCode.INVALID_PARAMETER)
        
        columns = inspect(self.model).columns
        criteria = []
        for key, value in scope.items():
            if key not in columns:
                raise Err.misconfigured(
                    f"{self.model.__name__} 没有列 {key}",
                    code=ErrorCode.INVALID_PARAMETER,
                    scope=key,
                )
            column = getattr(self.model, key)
            criteria.append(column.is_(None) if value is None else column == value)
        return criteria
    
    def _order_clauses(self, order, count) -> list:
        if not isinstance(order, str):
            if isinstance(order, (list, tuple)):
                return list(order)
            return [order]
        
        columns = {
            "id": self.tag_model.id,
            "name": self.tag_model.name,
            "count": count,
        }
        clauses = []
        for part in order.split(","):
            tokens = part.split()
            if not tokens:
                continue
            key = tokens[0].lower().rsplit(".", 1)[-1]
            direction = tokens[1].lower() if len(tokens) > 1 else "asc"
            if key not in _ORDER_KEYS or direction not in _ORDER_DIRECTIONS or len(tokens) > 2:
                raise Err.misconfigured(
                    f"不支持的排序: {part.strip()}",
                    code=ErrorCode.INVALID_PARAMETER,
                    order=order,
                )
            column = columns[key]
            clauses.append(column.desc() if direction == "desc" else column.asc())
        return clauses
