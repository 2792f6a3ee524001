"""业务异常测试

测试异常类体系、错误代码与 Err 快捷入口
"""

import pytest

from ytag.exceptions import (
    ErrorCode,
    BusinessException,
    ResourceNotFoundException,
    ResourceConflictException,
    ValidationException,
    ConfigurationException,
    Err,
)
from ytag.orm.taggable import TaggableRegistry


class TestBusinessException:
    """BusinessException 测试"""
    
    def test_default_code(self):
        exc = BusinessException("操作失败")
        
        assert exc.message == "操作失败"
        assert exc.code == ErrorCode.BUSINESS_ERROR
        assert exc.details == []
        assert str(exc) == "操作失败"
    
    def test_to_dict(self):
        """测试转换为字典"""
        exc = BusinessException(
            "标签同步失败",
            code=ErrorCode.OPERATION_FAILED,
            details=["标签名不能为空"],
            owner_type="Article",
        )
        
        assert exc.to_dict() == {
            "message": "标签同步失败",
            "code": ErrorCode.OPERATION_FAILED,
            "details": ["标签名不能为空"],
            "extra": {"owner_type": "Article"},
        }
    
    def test_to_dict_returns_copies(self):
        """测试修改返回值不影响异常对象"""
        exc = BusinessException("失败", details=["a"], context={"names": ["x"]})
        
        data = exc.to_dict()
        data["details"].append("b")
        data["extra"]["context"]["names"].append("y")
        
        assert exc.details == ["a"]
        assert exc.extra == {"context": {"names": ["x"]}}
    
    def test_error_code_is_string(self):
        """测试错误代码可以直接与字符串比较"""
        exc = ValidationException("标签名不能为空", code=ErrorCode.TAG_NAME_BLANK)
        
        assert exc.code == "TAG_NAME_BLANK"
    
    def test_repr(self):
        exc = ConfigurationException("配置错误")
        
        assert repr(exc).startswith("ConfigurationException(message='配置错误'")


class TestSubclasses:
    """异常子类默认值测试"""
    
    @pytest.mark.parametrize("exc_class,code", [
        (ResourceNotFoundException, ErrorCode.RESOURCE_NOT_FOUND),
        (ResourceConflictException, ErrorCode.RESOURCE_CONFLICT),
        (ValidationException, ErrorCode.VALIDATION_ERROR),
        (ConfigurationException, ErrorCode.INVALID_CONFIGURATION),
    ])
    def test_default_codes(self, exc_class, code):
        exc = exc_class()
        
        assert isinstance(exc, BusinessException)
        assert exc.code == code


class TestErr:
    """Err 快捷入口测试"""
    
    def test_shortcuts_build_matching_types(self):
        assert isinstance(Err.not_found(), ResourceNotFoundException)
        assert isinstance(Err.conflict(), ResourceConflictException)
        assert isinstance(Err.invalid(), ValidationException)
        assert isinstance(Err.misconfigured(), ConfigurationException)
        assert type(Err.fail()) is BusinessException
    
    def test_extra_context(self):
        """测试额外上下文写入 extra"""
        exc = Err.misconfigured("未知的排序字段", order="size")
        
        assert exc.extra == {"order": "size"}
    
    def test_custom_code(self):
        exc = Err.misconfigured("exclude 与 match_all 不能同时使用", code=ErrorCode.CONFLICTING_OPTIONS)
        
        assert exc.code == ErrorCode.CONFLICTING_OPTIONS


class TestRegistryErrors:
    """宿主类型解析错误"""
    
    def test_unknown_owner_type(self):
        """测试未注册的宿主类型"""
        registry = TaggableRegistry()
        
        with pytest.raises(ResourceNotFoundException) as exc_info:
            registry.resolve("Nothing")
        
        assert exc_info.value.code == ErrorCode.UNKNOWN_OWNER_TYPE
        assert exc_info.value.extra == {"resource_type": "Nothing"}
