"""TagList 测试

测试 TagList 的核心功能：
1. 构造与解析
2. 添加、移除（去空白、去重、保持首次出现顺序）
3. 与顺序无关的相等比较
4. 输入统一（coerce_tag_names）
"""

import pytest

from ytag.config import configure_tagging
from ytag.orm.taggable import TagList, coerce_tag_names


class FakeTag:
    """带 name 属性的标签对象"""
    
    def __init__(self, name):
        self.name = name


# ==================== 构造测试 ====================

class TestTagListConstruction:
    """构造测试"""
    
    def test_empty_list_is_blank(self):
        """测试空列表"""
        tags = TagList()
        
        assert tags.is_blank()
        assert len(tags) == 0
        assert not tags
    
    def test_construct_from_names(self):
        """测试从名称构造，名称按字面处理"""
        tags = TagList(" Nature ", "Crazy, animal", "", None, "Nature")
        
        assert tags.names == ["Nature", "Crazy, animal"]
    
    def test_construct_from_nested_lists(self):
        """测试从嵌套列表构造"""
        tags = TagList(["a", ["b", "c"]], ("d",))
        
        assert tags.names == ["a", "b", "c", "d"]
    
    def test_from_string(self):
        """测试从标签文本解析"""
        tags = TagList.from_string('Nature, "Crazy, animal"')
        
        assert tags.names == ["Crazy, animal", "Nature"]
    
    def test_from_string_with_delimiter(self):
        """测试指定分隔符解析"""
        tags = TagList.from_string("a b c", delimiter=" ")
        
        assert tags.names == ["a", "b", "c"]
        assert tags.delimiter == " "


# ==================== 修改测试 ====================

class TestTagListMutation:
    """修改测试"""
    
    def test_add_deduplicates_preserving_first_seen_order(self):
        """测试添加后去重并保持首次出现顺序"""
        tags = TagList("b", "a")
        tags.add("c", "a", " b ", "d")
        
        assert tags.names == ["b", "a", "c", "d"]
    
    def test_add_with_parse(self):
        """测试添加时解析标签文本"""
        tags = TagList("a")
        tags.add("b, c", parse=True)
        
        assert tags.names == ["a", "b", "c"]
    
    def test_add_returns_self(self):
        """测试 add 支持链式调用"""
        tags = TagList()
        
        assert tags.add("a").add("b") is tags
    
    def test_remove(self):
        """测试移除"""
        tags = TagList("a", "b", "c")
        tags.remove("b", "missing")
        
        assert tags.names == ["a", "c"]
    
    def test_remove_with_parse(self):
        """测试移除时解析标签文本"""
        tags = TagList("a", "b", "c")
        tags.remove("a, c", parse=True)
        
        assert tags.names == ["b"]
    
    def test_remove_is_case_sensitive_by_default(self):
        """测试默认按大小写精确移除"""
        tags = TagList("Nature")
        tags.remove("nature")
        assert tags.names == ["Nature"]
        
        tags.remove("nature", ignore_case=True)
        assert tags.is_blank()
    
    def test_clear(self):
        """测试清空"""
        assert TagList("a", "b").clear().is_blank()
    
    def test_copy_is_independent(self):
        """测试副本相互独立"""
        tags = TagList("a")
        copied = tags.copy()
        copied.add("b")
        
        assert tags.names == ["a"]
        assert copied.names == ["a", "b"]


# ==================== 比较与协议测试 ====================

class TestTagListProtocol:
    """比较与协议测试"""
    
    def test_equality_ignores_order(self):
        """测试相等比较与顺序无关"""
        assert TagList("a", "b") == TagList("b", "a")
        assert TagList("a", "b") == ["b", "a"]
        assert TagList("a", "b") == {"a", "b"}
        assert TagList("a") != TagList("a", "b")
    
    def test_unhashable(self):
        """测试 TagList 可变，不可哈希"""
        with pytest.raises(TypeError):
            hash(TagList("a"))
    
    def test_contains_and_iteration(self):
        """测试成员判断与迭代"""
        tags = TagList("Nature", "Good")
        
        assert "Nature" in tags
        assert "nature" not in tags
        assert tags.contains("nature", ignore_case=True)
        assert list(tags) == ["Nature", "Good"]
        assert tags[1] == "Good"
    
    def test_str_uses_formatter(self):
        """测试字符串形式使用格式化器"""
        tags = TagList("Nature", "Crazy, animal")
        
        assert str(tags) == 'Nature, "Crazy, animal"'
        assert tags.to_string(delimiter=" ") == 'Nature "Crazy, animal"'
    
    def test_str_follows_configured_delimiter(self):
        """测试未指定分隔符时使用进程级配置"""
        tags = TagList("a", "b")
        configure_tagging(delimiter=";")
        
        assert str(tags) == "a; b"
    
    def test_round_trip_strips_quotes_inside_names(self):
        """测试往返：名称两端的引号在解析时被去掉"""
        tags = TagList("Nature", "Crazy, animal", "'quoted'", "Good")
        
        assert TagList.from_string(str(tags)) == TagList("Nature", "Crazy, animal", "quoted", "Good")
    
    def test_repr(self):
        """测试 repr"""
        assert repr(TagList("a")) == "TagList(['a'])"


# ==================== 输入统一测试 ====================

class TestCoerceTagNames:
    """输入统一测试"""
    
    def test_string_is_parsed(self):
        """测试字符串按标签文本解析"""
        assert coerce_tag_names("a, b, a") == ["a", "b"]
    
    def test_list_items_are_literal(self):
        """测试列表中的字符串按字面处理"""
        assert coerce_tag_names(["with, comma", "b"]) == ["with, comma", "b"]
    
    def test_mixed_entities_strings_and_none(self):
        """测试标签对象、字符串和 None 的混合"""
        assert coerce_tag_names([FakeTag("Nature"), None, "Good", FakeTag(" Nature ")]) == ["Nature", "Good"]
    
    def test_single_entity(self):
        """测试单个标签对象"""
        assert coerce_tag_names(FakeTag("Nature")) == ["Nature"]
    
    def test_tag_list(self):
        """测试 TagList"""
        assert coerce_tag_names(TagList("a", "b")) == ["a", "b"]
    
    def test_none(self):
        """测试 None"""
        assert coerce_tag_names(None) == []
    
    def test_coerce_classmethod(self):
        """测试 TagList.coerce"""
        original = TagList("a")
        coerced = TagList.coerce(original)
        
        assert coerced == original
        assert coerced is not original
        assert TagList.coerce("x, y").names == ["x", "y"]
