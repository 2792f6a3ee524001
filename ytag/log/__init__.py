"""日志模块

提供日志配置与日志记录器获取：
- setup_logger / setup_root_logger: 配置处理器与格式
- get_logger: 按模块名获取日志记录器

使用示例:
    from ytag.log import get_logger, setup_root_logger
    from ytag.config import LoggingSettings
    
    setup_root_logger(config=LoggingSettings(level="DEBUG", file_path=""))
    logger = get_logger()
"""

from .logger import (
    setup_logger,
    setup_root_logger,
    create_formatter,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    logger,
    get_logger,
)

__all__ = [
    "setup_logger",
    "setup_root_logger",
    "create_formatter",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "logger",
    "get_logger",
]
