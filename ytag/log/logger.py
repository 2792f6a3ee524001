"""
日志工具模块
提供简化的日志配置功能
"""

import inspect
import logging
import os
import time
from typing import Any


# 默认日志格式
DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"


class MicrosecondFormatter(logging.Formatter):
    """支持微秒精度的日志格式化器"""
    
    def formatTime(self, record, datefmt=None):
        ct = self.converter(record.created)
        if datefmt:
            s = time.strftime(datefmt, ct)
        else:
            s = time.strftime("%Y-%m-%d %H:%M:%S", ct)
        return "%s.%06d" % (s, (record.created - int(record.created)) * 1000000)


def create_formatter(
    log_format: str = None,
    datefmt: str = "%Y-%m-%d %H:%M:%S",
    use_microseconds: bool = True
) -> logging.Formatter:
    """创建日志格式化器
    
    Args:
        log_format: 日志格式字符串
        datefmt: 时间格式
        use_microseconds: 是否使用微秒精度
        
    Returns:
        日志格式化器
    """
    fmt = log_format or DEFAULT_LOG_FORMAT
    if use_microseconds:
        return MicrosecondFormatter(fmt=fmt, datefmt=datefmt)
    return logging.Formatter(fmt, datefmt=datefmt)


def setup_logger(
    name: str = None,
    level: str = "INFO",
    log_file: str = None,
    log_format: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    propagate: bool = True,
    encoding: str = "utf-8"
) -> logging.Logger:
    """设置并返回配置好的日志记录器
    
    Args:
        name: 日志记录器名称，默认为root logger
        level: 日志级别，可选：DEBUG, INFO, WARNING, ERROR, CRITICAL
        log_file: 日志文件路径，如果不指定则不写入文件
        log_format: 日志格式，如果不指定则使用默认格式
        console: 是否输出到控制台
        use_microseconds: 是否使用微秒精度时间戳
        propagate: 是否传播到父日志器
        encoding: 日志文件编码
        
    Returns:
        配置好的日志记录器
        
    使用示例:
        from ytag.log import setup_logger
        
        logger = setup_logger("ytag.orm.taggable", level="DEBUG")
        logger = setup_logger("my_app", level="DEBUG", log_file="logs/tags.log")
    """
    _logger = logging.getLogger(name) if name else logging.getLogger()
    _logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _logger.propagate = propagate
    
    # 清除现有的处理器
    _logger.handlers.clear()
    
    formatter = create_formatter(log_format, use_microseconds=use_microseconds)
    
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        _logger.addHandler(console_handler)
    
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
        
        file_handler = logging.FileHandler(log_file, encoding=encoding)
        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)
    
    return _logger


def setup_root_logger(
    level: str = "INFO",
    log_file: str = None,
    console: bool = True,
    use_microseconds: bool = True,
    config: Any = None
) -> logging.Logger:
    """配置 ytag 根日志记录器
    
    提供 config（LoggingSettings）时，从中读取级别、文件路径、编码和控制台开关，
    并按 sql_log_enabled 打开 sqlalchemy.engine 的 SQL 输出。
    
    Args:
        level: 日志级别（提供 config 时忽略）
        log_file: 日志文件路径（提供 config 时忽略）
        console: 是否输出到控制台（提供 config 时忽略）
        use_microseconds: 是否使用微秒精度
        config: 日志配置对象（LoggingSettings）
        
    Returns:
        "ytag" 日志记录器
    """
    encoding = "utf-8"
    if config is not None:
        level = getattr(config, "level", level)
        log_file = getattr(config, "file_path", log_file) or None
        console = getattr(config, "enable_console", console)
        encoding = getattr(config, "file_encoding", encoding)
        
        if getattr(config, "sql_log_enabled", False):
            logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
    
    return setup_logger(
        "ytag",
        level=level,
        log_file=log_file,
        console=console,
        use_microseconds=use_microseconds,
        propagate=False,
        encoding=encoding
    )


def get_logger(name: str = None) -> logging.Logger:
    """获取日志记录器，支持自动推断模块名
    
    无参数调用时，自动从调用栈获取模块的 __name__ 作为日志器名称。
    有参数调用时，若为不含点号的简写，自动添加 'ytag.' 前缀。
    
    Args:
        name: 日志记录器名称。
              - None: 自动使用调用模块的 __name__
              - 字符串: 使用指定名称（简写自动添加 ytag 前缀，如 "orm" -> "ytag.orm"）
        
    Returns:
        日志记录器实例
        
    使用示例:
        from ytag.log import get_logger
        
        logger = get_logger()
        # 在 ytag/orm/taggable/synchronizer.py 中 -> "ytag.orm.taggable.synchronizer"
        
        logger = get_logger("taggable")          # -> "ytag.taggable"
        logger = get_logger("ytag.taggable")     # -> "ytag.taggable"
        logger = get_logger("sqlalchemy.engine") # -> "sqlalchemy.engine"
    """
    if name is None:
        frame = inspect.currentframe()
        if frame is not None and frame.f_back is not None:
            name = frame.f_back.f_globals.get('__name__', 'ytag')
        else:
            name = 'ytag'
    elif name != 'ytag' and '.' not in name:
        name = f"ytag.{name}"
    
    return logging.getLogger(name)


# 通用日志记录器
logger = logging.getLogger("ytag")
