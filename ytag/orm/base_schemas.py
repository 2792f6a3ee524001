from typing import Any

from pydantic import BaseModel as PydanticBaseModel


def coerce_count(value: Any) -> int:
    """将存储层返回的计数统一为非负整数
    
    不同数据库驱动对 COUNT(*) 可能返回 int、Decimal、float 甚至字符串，
    None 视为 0。
    """
    if value is None:
        return 0
    count = int(value)
    return count if count > 0 else 0


# 标记
class BaseSchemas(PydanticBaseModel):
    """基础参数"""
    model_config = {"from_attributes": True, "populate_by_name": True}
