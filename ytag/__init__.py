"""
ytag - SQLAlchemy 标签系统

提供标签文本解析、按标签搜索、标签使用频率统计与标签关联同步
"""

__version__ = "0.1.0"

from .exceptions import (
    ErrorCode,
    BusinessException,
    ResourceNotFoundException,
    ResourceConflictException,
    ValidationException,
    ConfigurationException,
    Err,
)

from .config import (
    AppSettings,
    TaggingSettings,
    configure_tagging,
    get_tagging_settings,
)

from .log import get_logger, setup_logger, setup_root_logger

from .orm import CoreModel, init_database, db_session_scope

from .orm.taggable import (
    TagList,
    parse_tag_names,
    format_tag_names,
    AbstractTag,
    AbstractTagging,
    TaggableMixin,
    TaggedSearchQueryBuilder,
    TagFrequencyAggregator,
    TagAssociationSynchronizer,
    TagCount,
    tag_cloud,
)

__all__ = [
    "__version__",
    "ErrorCode",
    "BusinessException",
    "ResourceNotFoundException",
    "ResourceConflictException",
    "ValidationException",
    "ConfigurationException",
    "Err",
    "AppSettings",
    "TaggingSettings",
    "configure_tagging",
    "get_tagging_settings",
    "get_logger",
    "setup_logger",
    "setup_root_logger",
    "CoreModel",
    "init_database",
    "db_session_scope",
    "TagList",
    "parse_tag_names",
    "format_tag_names",
    "AbstractTag",
    "AbstractTagging",
    "TaggableMixin",
    "TaggedSearchQueryBuilder",
    "TagFrequencyAggregator",
    "TagAssociationSynchronizer",
    "TagCount",
    "tag_cloud",
]
