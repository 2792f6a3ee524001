"""标签系统模块

为任意模型提供自由文本标签：标签文本解析、按标签搜索、标签使用频率统计、标签关联同步。

导出:
    - TagListParser / parse_tag_names / format_tag_names: 标签文本解析与格式化
    - TagList: 有序、去重的标签名列表
    - AbstractTag / AbstractTagging: 标签与关联抽象模型
    - TaggableMixin: 宿主模型 Mixin
    - TaggedSearchQueryBuilder / TaggedFilter: 按标签搜索
    - TagFrequencyAggregator / TagCount: 标签使用频率
    - TagAssociationSynchronizer: 标签关联同步
    - tag_cloud: 标签云分级

使用示例:
    from ytag.orm import CoreModel
    from ytag.orm.taggable import AbstractTag, AbstractTagging, TaggableMixin
    
    # 1. 定义标签模型（项目级别，一次性）
    class Tag(CoreModel, AbstractTag):
        __tablename__ = "tags"
    
    class Tagging(CoreModel, AbstractTagging):
        __tablename__ = "taggings"
        __tag_model__ = Tag
    
    # 2. 业务模型使用 TaggableMixin
    class Photo(CoreModel, TaggableMixin):
        __tag_model__ = Tag
        __tagging_model__ = Tagging
        
        title = mapped_column(String(200))
    
    # 3. 使用标签功能
    photo = Photo(title="sunset")
    photo.set_tags('Nature, "Crazy, animal"', commit=True)
    photo.add_tags("Good", commit=True)
    
    Photo.find_tagged_with("Nature, Good", match_all=True)
    Photo.find_tagged_with("Nature", exclude=True)
    Photo.tag_counts(at_least=2, order="count desc", limit=10)
"""

from .parser import TagListParser, parse_tag_names, format_tag_names
from .tag_list import TagList, coerce_tag_names
from .registry import OwnerRef, TaggableRegistry, taggable_registry
from .tag_model import AbstractTag, AbstractTagging
from .search import TagMatchMode, TaggedFilter, TaggedSearchQueryBuilder
from .frequency import TagCount, TagFrequencyAggregator
from .synchronizer import TagSyncPlan, TagSyncResult, TagAssociationSynchronizer
from .taggable_mixin import TaggableMixin
from .cloud import tag_cloud

__all__ = [
    "TagListParser",
    "parse_tag_names",
    "format_tag_names",
    "TagList",
    "coerce_tag_names",
    "OwnerRef",
    "TaggableRegistry",
    "taggable_registry",
    "AbstractTag",
    "AbstractTagging",
    "TagMatchMode",
    "TaggedFilter",
    "TaggedSearchQueryBuilder",
    "TagCount",
    "TagFrequencyAggregator",
    "TagSyncPlan",
    "TagSyncResult",
    "TagAssociationSynchronizer",
    "TaggableMixin",
    "tag_cloud",
]
