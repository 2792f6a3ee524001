"""标签文本解析与格式化

标签文本是一个以分隔符分隔、支持引号的小语法：

    'Nature, "Crazy, animal", Good'  ->  ["Crazy, animal", "Nature", "Good"]

解析规则:
    1. 先提取所有双引号包裹的片段，再提取单引号包裹的片段，
       引号内的分隔符原样保留，引号本身去掉
    2. 剩余文本按分隔符切分
    3. 每个片段去除首尾空白，丢弃空片段，按首次出现顺序去重

注意: 引号片段总是排在未加引号的片段之前，与它们在原文中的位置无关。
未闭合的引号按普通文本处理。

格式化规则:
    含分隔符的名称用双引号包裹；分隔符不以空白结尾时，拼接处补一个空格。

使用示例:
    from ytag.orm.taggable import parse_tag_names, format_tag_names, TagListParser
    
    parse_tag_names('Nature, "with, comma"')   # ['with, comma', 'Nature']
    format_tag_names(["Crazy Animal", "Question"], delimiter=" ")
    # '"Crazy Animal" Question'
    
    parser = TagListParser(delimiter=";")
    parser.parse("a; b;c")                      # ['a', 'b', 'c']
"""

import re
from typing import Iterable, List, Optional

from ytag.config import get_tagging_settings


_QUOTES = ('"', "'")


def unique_names(names: Iterable[str], ignore_case: bool = False) -> List[str]:
    """去除首尾空白、丢弃空值并按首次出现顺序去重
    
    ignore_case 为 True 时，仅大小写不同的名称视为重复，保留第一个。
    """
    result = []
    seen = set()
    for name in names:
        if name is None:
            continue
        name = str(name).strip()
        key = name.lower() if ignore_case else name
        if not name or key in seen:
            continue
        seen.add(key)
        result.append(name)
    return result


class TagListParser:
    """标签文本解析器
    
    delimiter 为 None 时，每次调用都读取当前的 TaggingSettings.delimiter，
    因此修改进程级配置会影响之后所有未显式指定分隔符的调用。
    """
    
    def __init__(self, delimiter: Optional[str] = None):
        if delimiter == "":
            raise ValueError("分隔符不能为空字符串")
        self._delimiter = delimiter
    
    @property
    def delimiter(self) -> str:
        if self._delimiter is not None:
            return self._delimiter
        return get_tagging_settings().delimiter
    
    def _quoted_pattern(self, quote: str, delimiter: str) -> "re.Pattern":
        return re.compile(
            rf"{quote}(.*?){quote}\s*(?:{re.escape(delimiter)})?\s*",
            re.DOTALL,
        )
    
    def parse(self, text: Optional[str]) -> List[str]:
        """将标签文本解析为有序、去重的名称列表，从不抛出异常"""
        if text is None:
            return []
        
        remaining = str(text)
        if not remaining.strip():
            return []
        
        delimiter = self.delimiter
        names = []
        for quote in _QUOTES:
            pattern = self._quoted_pattern(quote, delimiter)
            names.extend(pattern.findall(remaining))
            remaining = pattern.sub("", remaining)
        
        names.extend(remaining.split(delimiter))
        return unique_names(names)
    
    def format(self, names: Iterable[str]) -> str:
        """将名称列表格式化为标签文本"""
        delimiter = self.delimiter
        glue = delimiter if delimiter[-1].isspace() else f"{delimiter} "
        return glue.join(
            f'"{name}"' if delimiter in name else name
            for name in names
        )


def parse_tag_names(text: Optional[str], delimiter: Optional[str] = None) -> List[str]:
    """解析标签文本，delimiter 为 None 时使用当前配置"""
    return TagListParser(delimiter).parse(text)


def format_tag_names(names: Iterable[str], delimiter: Optional[str] = None) -> str:
    """格式化标签名称列表，delimiter 为 None 时使用当前配置"""
    return TagListParser(delimiter).format(names)
