"""异常模块

使用示例:
    from ytag.exceptions import Err, ErrorCode, BusinessException
    
    try:
        article.set_tags("  ,  ")
    except BusinessException as e:
        print(e.code, e.to_dict())
"""

from .exceptions import (
    ErrorCode,
    ErrorCodeType,
    BusinessException,
    ResourceNotFoundException,
    ResourceConflictException,
    ValidationException,
    ConfigurationException,
    Err,
)

__all__ = [
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "ResourceNotFoundException",
    "ResourceConflictException",
    "ValidationException",
    "ConfigurationException",
    "Err",
]
