"""业务异常类定义

定义标签库使用的业务异常类体系。
"""

import copy
from typing import Optional, List, Any, Dict, Union
from enum import Enum


class ErrorCode(str, Enum):
    """错误代码枚举
    
    提供常用的错误代码，支持 IDE 补全和拼写检查。
    继承自 str，可以直接作为字符串使用。
    
    使用示例:
        from ytag.exceptions import ErrorCode, ValidationException
        
        raise ValidationException("标签名不能为空", code=ErrorCode.TAG_NAME_BLANK)
        
        if exc.code == ErrorCode.TAG_CONFLICT:
            retry_later()
    """
    
    # ==================== 通用错误 ====================
    BUSINESS_ERROR = "BUSINESS_ERROR"
    OPERATION_FAILED = "OPERATION_FAILED"
    
    # ==================== 资源相关 ====================
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    UNKNOWN_OWNER_TYPE = "UNKNOWN_OWNER_TYPE"
    
    # ==================== 冲突相关 ====================
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    TAG_CONFLICT = "TAG_CONFLICT"
    
    # ==================== 验证相关 ====================
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    TAG_NAME_BLANK = "TAG_NAME_BLANK"
    TAG_NAME_TOO_LONG = "TAG_NAME_TOO_LONG"
    
    # ==================== 配置相关 ====================
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    CONFLICTING_OPTIONS = "CONFLICTING_OPTIONS"
    
    # ==================== 存储相关 ====================
    DATABASE_ERROR = "DATABASE_ERROR"


# 类型别名，支持枚举和字符串
ErrorCodeType = Union[str, ErrorCode]


class BusinessException(Exception):
    """业务异常基类

    所有业务异常都应该继承此类。

    属性:
        message: 错误消息（面向用户）
        code: 错误代码（用于程序判断，支持 ErrorCode 枚举或字符串）
        details: 详细错误信息列表
        extra: 额外的上下文信息

    使用示例:
        raise BusinessException("操作失败", code=ErrorCode.OPERATION_FAILED)

        raise BusinessException(
            message="标签同步失败",
            code=ErrorCode.OPERATION_FAILED,
            details=["标签名不能为空"],
            owner_type="Article",
            owner_id=12,
        )
    """

    def __init__(
        self,
        message: str,
        code: ErrorCodeType = ErrorCode.BUSINESS_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        """初始化业务异常

        Args:
            message: 错误消息
            code: 错误代码
            details: 详细错误信息列表
            **extra: 额外的上下文信息
        """
        self.message = message
        self.code = code
        self.details = details or []
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式

        Returns:
            包含异常信息的字典
        """
        return {
            "message": self.message,
            "code": self.code,
            # 返回深拷贝，避免调用方修改返回值反向污染异常对象内部状态
            "details": copy.deepcopy(self.details),
            "extra": copy.deepcopy(self.extra)
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r})"
        )


class ResourceNotFoundException(BusinessException):
    """资源不存在异常

    使用示例:
        raise ResourceNotFoundException("未注册的宿主类型", resource_type="Photo")
    """

    def __init__(
        self,
        message: str = "资源不存在",
        code: ErrorCodeType = ErrorCode.RESOURCE_NOT_FOUND,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class ResourceConflictException(BusinessException):
    """资源冲突异常

    当资源已存在或发生冲突时抛出此异常。

    使用示例:
        raise ResourceConflictException(
            "标签创建冲突",
            code=ErrorCode.TAG_CONFLICT,
            name="Python",
        )
    """

    def __init__(
        self,
        message: str = "资源冲突",
        code: ErrorCodeType = ErrorCode.RESOURCE_CONFLICT,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class ValidationException(BusinessException):
    """数据验证异常

    使用示例:
        raise ValidationException("标签名不能为空", field="name")
    """

    def __init__(
        self,
        message: str = "数据验证失败",
        code: ErrorCodeType = ErrorCode.VALIDATION_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class ConfigurationException(BusinessException):
    """配置异常

    当调用参数或模型配置存在歧义、缺失时抛出此异常，而不是猜测一个行为。

    使用示例:
        raise ConfigurationException(
            "exclude 与 match_all 不能同时使用",
            code=ErrorCode.CONFLICTING_OPTIONS,
        )
    """

    def __init__(
        self,
        message: str = "配置错误",
        code: ErrorCodeType = ErrorCode.INVALID_CONFIGURATION,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class Err:
    """异常快捷创建类
    
    提供统一入口，通过 IDE 自动补全发现所有可用的异常类型。
    
    使用示例:
        from ytag.exceptions import Err
        
        raise Err.not_found("未注册的宿主类型", resource_type="Photo")
        raise Err.conflict("标签创建冲突", name="Python")
        raise Err.invalid("标签名不能为空")
        raise Err.misconfigured("未知的排序字段", order="size")
        raise Err.fail("操作失败")
    """
    
    @staticmethod
    def not_found(message: str = "资源不存在", **kwargs) -> ResourceNotFoundException:
        """资源不存在"""
        return ResourceNotFoundException(message, **kwargs)
    
    @staticmethod
    def conflict(message: str = "资源冲突", **kwargs) -> ResourceConflictException:
        """资源冲突
        
        适用场景: 并发创建同名标签、重试后仍无法读到已存在的记录等
        """
        return ResourceConflictException(message, **kwargs)
    
    @staticmethod
    def invalid(message: str = "数据验证失败", **kwargs) -> ValidationException:
        """数据验证失败
        
        适用场景: 标签名为空、标签名超长等
        """
        return ValidationException(message, **kwargs)
    
    @staticmethod
    def misconfigured(message: str = "配置错误", **kwargs) -> ConfigurationException:
        """配置错误
        
        适用场景: 互斥的查询选项、不合法的排序或范围条件、模型缺少必需的配置属性
        """
        return ConfigurationException(message, **kwargs)
    
    @staticmethod
    def fail(message: str = "操作失败", **kwargs) -> BusinessException:
        """通用业务异常"""
        return BusinessException(message, **kwargs)
