"""标签系统 TaggableMixin 测试

测试 TaggableMixin 的核心功能：
1. 设置、追加、移除标签（记录保存与关联同步在同一事务中）
2. 标签缓存列与内存中的标签列表（读取顺序与失效）
3. 标签判断
4. 普通 save() 不改动标签
5. 删除宿主时级联删除关联
"""

import pytest
from sqlalchemy import String, Text, func, select, update
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker, scoped_session

from ytag.exceptions import ConfigurationException
from ytag.orm import CoreModel, Base
from ytag.orm.transaction import transaction_manager
from ytag.orm.taggable import (
    AbstractTag,
    AbstractTagging,
    TaggableMixin,
    TagList,
)

from tests.helpers import count_statements


# ==================== 测试模型定义 ====================

class MixinTag(CoreModel, AbstractTag):
    """标签模型"""
    __tablename__ = "test_mixin_tag"


class MixinTagging(CoreModel, AbstractTagging):
    """关联模型"""
    __tablename__ = "test_mixin_tagging"
    __tag_model__ = MixinTag


class MixinArticle(CoreModel, TaggableMixin):
    """文章模型（带标签缓存列）"""
    __tablename__ = "test_mixin_article"
    __tag_model__ = MixinTag
    __tagging_model__ = MixinTagging
    __taggable_type__ = "Article"
    
    title: Mapped[str] = mapped_column(String(200))
    cached_tag_list: Mapped[str] = mapped_column(Text, nullable=True)


class MixinProduct(CoreModel, TaggableMixin):
    """产品模型（无缓存列）- 演示多模型共享标签"""
    __tablename__ = "test_mixin_product"
    __tag_model__ = MixinTag
    __tagging_model__ = MixinTagging
    
    name: Mapped[str] = mapped_column(String(200))


class MixinBroken(CoreModel, TaggableMixin):
    """缺少关联模型配置的模型"""
    __tablename__ = "test_mixin_broken"
    __tag_model__ = MixinTag
    
    name: Mapped[str] = mapped_column(String(200), nullable=True)


class MixinTestBase:
    """公共数据库初始化"""
    
    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        self.engine = memory_engine
        self.session = self.session_scope()
        yield
        self.session_scope.remove()
    
    def tagging_count(self):
        return self.session.scalar(select(func.count(MixinTagging.id)))


# ==================== 基本标签操作测试 ====================

class TestSetTags(MixinTestBase):
    """设置标签测试"""
    
    def test_set_tags_on_new_record(self):
        """测试为新记录设置标签：记录被保存，关联被同步"""
        article = MixinArticle(title="Python 入门")
        
        result = article.set_tags('Python, "Web, API"', commit=True)
        
        assert article.id is not None
        assert result.added == ["Web, API", "Python"]
        assert article.tag_names == ["Web, API", "Python"]
        assert article.tag_list == TagList("Python", "Web, API")
        assert article.cached_tag_list == '"Web, API", Python'
    
    def test_non_ascii_tag_shared_between_records(self):
        """测试第二条记录复用非 ASCII 标签"""
        MixinArticle(title="первая").set_tags("Москва, Ärger", commit=True)
        
        second = MixinArticle(title="вторая")
        result = second.set_tags("Москва, Ärger", commit=True)
        
        assert result.added == ["Москва", "Ärger"]
        assert second.tag_names == ["Москва", "Ärger"]
        assert self.session.scalar(select(func.count(MixinTag.id))) == 2
    
    def test_taggable_type_override(self):
        """测试 __taggable_type__ 写入关联"""
        article = MixinArticle(title="typed")
        article.set_tags("A", commit=True)
        
        types = self.session.scalars(select(MixinTagging.taggable_type)).all()
        assert types == ["Article"]
    
    def test_set_tags_replaces_all(self):
        """测试设置标签覆盖原有标签"""
        article = MixinArticle(title="replace")
        article.set_tags("A, B, C", commit=True)
        
        result = article.set_tags(["B", "D"], commit=True)
        
        assert result.added == ["D"]
        assert result.removed == ["A", "C"]
        assert article.tag_names == ["B", "D"]
    
    def test_set_tags_persists(self):
        """测试提交后在新 session 中可读取"""
        article = MixinArticle(title="persist")
        article.set_tags("Nature, Good", commit=True)
        article_id = article.id
        self.session_scope.remove()
        
        loaded = MixinArticle.get(article_id)
        
        assert loaded.tag_list == TagList("Nature", "Good")
        assert loaded.tag_names == ["Nature", "Good"]
    
    def test_set_tags_without_commit_can_be_rolled_back(self):
        """测试不提交时由调用方决定回滚（记录与标签一起回滚）"""
        article = MixinArticle(title="draft")
        article.set_tags("Nature")
        
        self.session.rollback()
        
        assert self.session.scalar(select(func.count(MixinArticle.id))) == 0
        assert self.tagging_count() == 0
    
    def test_set_tags_inside_outer_transaction(self):
        """测试在外层事务中时由外层事务决定提交或回滚"""
        with pytest.raises(RuntimeError):
            with transaction_manager.transaction(session=self.session):
                article = MixinArticle(title="outer")
                article.set_tags("Nature", commit=True)
                raise RuntimeError("abort")
        
        assert self.session.scalar(select(func.count(MixinArticle.id))) == 0
        assert self.tagging_count() == 0
    
    def test_add_tags(self):
        """测试追加标签"""
        article = MixinArticle(title="add")
        article.set_tags("A", commit=True)
        
        article.add_tags("B", "a", commit=True)
        
        assert article.tag_names == ["A", "B"]
    
    def test_add_tags_names_are_literal(self):
        """测试追加的名称按字面处理，不按分隔符拆分"""
        article = MixinArticle(title="literal")
        
        article.add_tags("with, comma", commit=True)
        
        assert article.tag_names == ["with, comma"]
    
    def test_remove_tags_ignores_case(self):
        """测试移除标签不区分大小写"""
        article = MixinArticle(title="remove")
        article.set_tags("A, B, C", commit=True)
        
        result = article.remove_tags("b", commit=True)
        
        assert result.removed == ["B"]
        assert article.tag_names == ["A", "C"]
    
    def test_clear_tags(self):
        """测试清空标签"""
        article = MixinArticle(title="clear")
        article.set_tags("A, B", commit=True)
        
        article.clear_tags(commit=True)
        
        assert article.tag_names == []
        assert article.tag_list.is_blank()
        assert article.cached_tag_list == ""
    
    def test_tags_returns_tag_rows(self):
        """测试 tags 返回标签对象"""
        article = MixinArticle(title="rows")
        article.set_tags("A, B", commit=True)
        
        assert [tag.name for tag in article.tags] == ["A", "B"]
        assert all(isinstance(tag, MixinTag) for tag in article.tags)
    
    def test_models_share_tags(self):
        """测试多个模型共享标签"""
        article = MixinArticle(title="shared")
        article.set_tags("Python", commit=True)
        product = MixinProduct(name="book")
        product.set_tags("python", commit=True)
        
        assert self.session.scalar(select(func.count(MixinTag.id))) == 1
        assert product.tag_names == ["Python"]


# ==================== 标签判断测试 ====================

class TestTagPredicates(MixinTestBase):
    """标签判断测试"""
    
    def test_has_tag(self):
        """测试检查标签（不区分大小写）"""
        article = MixinArticle(title="has")
        article.set_tags("Python", commit=True)
        
        assert article.has_tag("python")
        assert not article.has_tag("Java")
    
    def test_has_any_tags(self):
        """测试检查任一标签"""
        article = MixinArticle(title="any")
        article.set_tags("Python, Django", commit=True)
        
        assert article.has_any_tags(["Python", "Java"])
        assert not article.has_any_tags("Java", "Rust")
    
    def test_has_all_tags(self):
        """测试检查全部标签"""
        article = MixinArticle(title="all")
        article.set_tags("Python, Django, Web", commit=True)
        
        assert article.has_all_tags(["python", "DJANGO"])
        assert not article.has_all_tags("Python", "Java")
    
    def test_new_record_has_no_tags(self):
        """测试未保存的记录没有标签，且不访问数据库"""
        article = MixinArticle(title="new")
        
        with count_statements(self.engine) as statements:
            assert article.tag_list.is_blank()
            assert article.tags == []
        
        assert statements == []


# ==================== 缓存测试 ====================

class TestTagListCache(MixinTestBase):
    """标签缓存列与内存标签列表测试"""
    
    def test_caches_tag_list(self):
        """测试按模型是否有缓存列判断"""
        assert MixinArticle.caches_tag_list()
        assert not MixinProduct.caches_tag_list()
    
    def test_memo_avoids_queries(self):
        """测试设置标签后读取标签列表不访问数据库"""
        article = MixinArticle(title="memo")
        article.set_tags("A, B", commit=True)
        
        with count_statements(self.engine) as statements:
            assert article.tag_list == TagList("A", "B")
        
        assert statements == []
    
    def test_tag_list_returns_copy(self):
        """测试修改返回的标签列表不影响记录"""
        article = MixinArticle(title="copy")
        article.set_tags("A", commit=True)
        
        article.tag_list.add("B")
        
        assert article.tag_list == TagList("A")
    
    def test_cache_column_is_read_before_storage(self):
        """测试缓存列有值时优先读取缓存列"""
        article = MixinArticle(title="cache")
        article.set_tags("A, B", commit=True)
        self.session.execute(
            update(MixinArticle).where(MixinArticle.id == article.id).values(cached_tag_list="X, Y")
        )
        self.session.commit()
        self.session.refresh(article)
        
        assert article.tag_list == TagList("X", "Y")
        assert article.tag_names == ["A", "B"]
    
    def test_empty_cache_column_falls_back_to_storage(self):
        """测试缓存列为空时读取关联表"""
        article = MixinArticle(title="fallback")
        article.set_tags("A, B", commit=True)
        self.session.execute(
            update(MixinArticle).where(MixinArticle.id == article.id).values(cached_tag_list=None)
        )
        self.session.commit()
        
        assert article.tag_list == TagList("A", "B")
    
    def test_model_without_cache_column_reads_storage(self):
        """测试没有缓存列的模型读取关联表"""
        product = MixinProduct(name="storage")
        product.set_tags("A", commit=True)
        self.session.expire(product)
        
        assert product.tag_list == TagList("A")
    
    def test_refresh_clears_memo(self):
        """测试 refresh 后重新读取标签列表"""
        article = MixinArticle(title="refresh")
        article.set_tags("A")
        self.session.execute(
            update(MixinArticle.__table__)
            .where(MixinArticle.__table__.c.id == article.id)
            .values(cached_tag_list="Z")
        )
        
        assert article.tag_list == TagList("A")
        
        article.refresh()
        
        assert article.tag_list == TagList("Z")
    
    def test_expire_clears_memo(self):
        """测试 expire 后重新读取标签列表"""
        article = MixinArticle(title="expire")
        article.set_tags("A")
        self.session.execute(
            update(MixinArticle.__table__)
            .where(MixinArticle.__table__.c.id == article.id)
            .values(cached_tag_list="Z")
        )
        
        self.session.expire(article)
        
        assert article.tag_list == TagList("Z")


# ==================== 保存与删除测试 ====================

class TestSaveAndDelete(MixinTestBase):
    """保存与删除测试"""
    
    def test_plain_save_leaves_tags_untouched(self):
        """测试普通 save() 不改动标签关联"""
        article = MixinArticle(title="before")
        article.set_tags("A, B", commit=True)
        
        article.title = "after"
        with count_statements(self.engine) as statements:
            article.save(commit=True)
        
        assert not any("TEST_MIXIN_TAGGING" in s for s in statements)
        assert article.tag_names == ["A", "B"]
    
    def test_delete_owner_cascades_taggings(self):
        """测试删除宿主时级联删除其关联，标签与其他宿主的关联保留"""
        article = MixinArticle(title="doomed")
        article.set_tags("A, B", commit=True)
        product = MixinProduct(name="kept")
        product.set_tags("A", commit=True)
        
        article.delete(commit=True)
        
        assert self.tagging_count() == 1
        assert product.tag_names == ["A"]
        assert self.session.scalar(select(func.count(MixinTag.id))) == 2
    
    def test_missing_tagging_model(self):
        """测试缺少 __tagging_model__ 时抛出配置异常"""
        with pytest.raises(ConfigurationException):
            MixinBroken.find_tagged_with("A")
        with pytest.raises(ConfigurationException):
            MixinBroken(name="x").set_tags("A")
