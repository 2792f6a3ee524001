"""ORM 工具函数

提供命名转换和 LIKE 模式转义工具。
"""
import re


def to_snake_case(name: str) -> str:
    """驼峰命名转下划线命名（支持连续大写缩写如 E2E、API、URL）
    
    Examples:
        >>> to_snake_case("PhotoTagging")
        'photo_tagging'
        >>> to_snake_case("APITag")
        'api_tag'
    """
    # 连续大写+数字后跟大写+小写：APITag → API_Tag
    result = re.sub(r'([A-Z\d]+)([A-Z][a-z])', r'\1_\2', name)
    # 小写字母后跟大写：photoTagging → photo_Tagging
    result = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', result)
    return result.lower()


def escape_like(value: str, escape: str = "\\") -> str:
    """转义 LIKE 模式中的通配符
    
    标签名按字面匹配，"%" 和 "_" 不应作为通配符生效。
    
    Examples:
        >>> escape_like("100%")
        '100\\\\%'
        >>> escape_like("snake_case")
        'snake\\\\_case'
    """
    return (
        value.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )
