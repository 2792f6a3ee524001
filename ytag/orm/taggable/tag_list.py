"""标签列表

TagList 是宿主记录当前或期望标签集合的内存表示：有序、去重、名称已去除首尾空白。
它不直接持久化，用于计算差异，也可格式化后写入宿主表的缓存列。

使用示例:
    from ytag.orm.taggable import TagList
    
    tags = TagList.from_string('Nature, "Crazy, animal"')
    tags.add("Good", "Nature")
    tags.remove("Good")
    str(tags)                                # '"Crazy, animal", Nature'
    tags == TagList("Nature", "Crazy, animal")  # True，比较与顺序无关
"""

from typing import Any, Iterable, Iterator, List, Optional

from .parser import TagListParser, unique_names


def _flatten(values: Iterable[Any]) -> Iterator[Any]:
    for value in values:
        if isinstance(value, (list, tuple, set, frozenset, TagList)):
            yield from _flatten(value)
        else:
            yield value


def coerce_tag_names(value: Any, delimiter: Optional[str] = None) -> List[str]:
    """把各种输入统一为去重后的标签名列表
    
    - 字符串：按标签文本语法解析
    - TagList：取其名称
    - 具有 name 属性的对象（标签实体）：取 name
    - None：忽略
    - 列表/元组/集合：逐项处理，其中的字符串视为单个名称而不再解析
    """
    if value is None:
        return []
    if isinstance(value, str):
        return TagListParser(delimiter).parse(value)
    if isinstance(value, TagList):
        return value.names
    if hasattr(value, "name") and not isinstance(value, (list, tuple, set, frozenset)):
        return unique_names([value.name])
    
    names = []
    for item in _flatten(value):
        if item is None:
            continue
        names.append(getattr(item, "name", item) if not isinstance(item, str) else item)
    return unique_names(names)


class TagList:
    """有序、去重的标签名列表"""
    
    def __init__(self, *names: Any, delimiter: Optional[str] = None):
        self._delimiter = delimiter
        self._names: List[str] = []
        self.add(*names)
    
    @classmethod
    def from_string(cls, text: Optional[str], delimiter: Optional[str] = None) -> "TagList":
        """从标签文本解析"""
        tag_list = cls(delimiter=delimiter)
        tag_list.add(text, parse=True)
        return tag_list
    
    @classmethod
    def coerce(cls, value: Any, delimiter: Optional[str] = None) -> "TagList":
        """从任意支持的输入构造（见 coerce_tag_names）"""
        if isinstance(value, TagList):
            return value.copy()
        return cls(coerce_tag_names(value, delimiter), delimiter=delimiter)
    
    # ==================== 修改 ====================
    
    def _expand(self, names: Iterable[Any], parse: bool) -> List[str]:
        parser = TagListParser(self._delimiter)
        expanded = []
        for name in _flatten(names):
            if name is None:
                continue
            if parse:
                expanded.extend(parser.parse(str(name)))
            else:
                expanded.append(str(getattr(name, "name", name)) if not isinstance(name, str) else name)
        return expanded
    
    def add(self, *names: Any, parse: bool = False) -> "TagList":
        """追加名称：去空白、丢弃空值、按首次出现顺序去重
        
        Args:
            *names: 名称或名称列表
            parse: 为 True 时，每个字符串先按标签文本语法解析
        """
        self._names = unique_names(self._names + self._expand(names, parse))
        return self
    
    def remove(self, *names: Any, parse: bool = False, ignore_case: bool = False) -> "TagList":
        """删除名称在给定集合中的所有条目"""
        targets = {name.strip() for name in self._expand(names, parse)}
        if ignore_case:
            targets = {name.lower() for name in targets}
            self._names = [name for name in self._names if name.lower() not in targets]
        else:
            self._names = [name for name in self._names if name not in targets]
        return self
    
    def clear(self) -> "TagList":
        self._names = []
        return self
    
    # ==================== 查询 ====================
    
    @property
    def names(self) -> List[str]:
        return list(self._names)
    
    @property
    def delimiter(self) -> Optional[str]:
        return self._delimiter
    
    def is_blank(self) -> bool:
        return not self._names
    
    def contains(self, name: str, ignore_case: bool = False) -> bool:
        name = name.strip()
        if ignore_case:
            return name.lower() in {n.lower() for n in self._names}
        return name in self._names
    
    def copy(self) -> "TagList":
        return TagList(self._names, delimiter=self._delimiter)
    
    def to_string(self, delimiter: Optional[str] = None) -> str:
        return TagListParser(delimiter if delimiter is not None else self._delimiter).format(self._names)
    
    # ==================== 协议方法 ====================
    
    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))
    
    def __len__(self) -> int:
        return len(self._names)
    
    def __bool__(self) -> bool:
        return bool(self._names)
    
    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains(name)
    
    def __getitem__(self, index):
        return self._names[index]
    
    def __eq__(self, other: object) -> bool:
        if isinstance(other, TagList):
            return set(self._names) == set(other._names)
        if isinstance(other, (list, tuple, set, frozenset)):
            return set(self._names) == set(other)
        return NotImplemented
    
    __hash__ = None
    
    def __str__(self) -> str:
        return self.to_string()
    
    def __repr__(self) -> str:
        return f"TagList({self._names!r})"
