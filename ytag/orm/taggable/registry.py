"""宿主类型注册表

taggable_type + taggable_id 构成对任意宿主记录的多态引用。
注册表把 taggable_type 映射到已知的宿主模型类，解析时按表查找而不是按名称动态导入。
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from ytag.exceptions import Err, ErrorCode
from ytag.log import get_logger

logger = get_logger("ytag.orm.taggable")


@dataclass(frozen=True)
class OwnerRef:
    """宿主引用：宿主类型 + 宿主主键"""
    taggable_type: str
    taggable_id: int


class TaggableRegistry:
    """已知宿主类型的注册表
    
    TaggableMixin 的具体子类在定义时自动注册。
    同时记录标签模型与关联模型的对应关系，删除标签时据此级联删除关联。
    """
    
    def __init__(self):
        self._owners: Dict[str, type] = {}
        self._tagging_models: Dict[type, List[type]] = {}
    
    def owner_type(self, owner) -> str:
        """返回宿主模型（或实例）对应的 taggable_type"""
        cls = owner if isinstance(owner, type) else type(owner)
        return getattr(cls, "__taggable_type__", None) or cls.__name__
    
    def owner_ref(self, owner) -> OwnerRef:
        return OwnerRef(self.owner_type(owner), owner.id)
    
    def register(self, owner_cls: type) -> None:
        """注册宿主模型"""
        key = self.owner_type(owner_cls)
        existing = self._owners.get(key)
        if existing is not None and existing is not owner_cls:
            logger.warning(
                f"taggable_type '{key}' 已注册为 {existing.__module__}.{existing.__qualname__}，"
                f"将被 {owner_cls.__module__}.{owner_cls.__qualname__} 覆盖"
            )
        self._owners[key] = owner_cls
        
        tag_model = getattr(owner_cls, "__tag_model__", None)
        tagging_model = getattr(owner_cls, "__tagging_model__", None)
        if tag_model is not None and tagging_model is not None:
            self.link(tag_model, tagging_model)
    
    def link(self, tag_model: type, tagging_model: type) -> None:
        """记录标签模型与关联模型的对应关系"""
        models = self._tagging_models.setdefault(tag_model, [])
        if tagging_model not in models:
            models.append(tagging_model)
    
    def tagging_models_for(self, tag_model: type) -> List[type]:
        return list(self._tagging_models.get(tag_model, []))
    
    def get(self, taggable_type: str) -> Optional[type]:
        return self._owners.get(taggable_type)
    
    def resolve(self, taggable_type: str) -> type:
        """按 taggable_type 解析宿主模型，未注册时抛出 ResourceNotFoundException"""
        owner_cls = self._owners.get(taggable_type)
        if owner_cls is None:
            raise Err.not_found(
                f"未注册的宿主类型: {taggable_type}",
                code=ErrorCode.UNKNOWN_OWNER_TYPE,
                resource_type=taggable_type,
            )
        return owner_cls
    
    def kinds(self) -> List[str]:
        """所有已注册的 taggable_type"""
        return sorted(self._owners)
    
    def __contains__(self, taggable_type: str) -> bool:
        return taggable_type in self._owners


# 全局单例
taggable_registry = TaggableRegistry()
