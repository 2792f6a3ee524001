"""
数据库会话管理模块

提供数据库引擎创建、会话管理等功能。

公开 API:
- db_manager: 数据库管理器单例
- init_database(): 初始化数据库连接
- get_engine(): 获取数据库引擎
- db_session_scope(): session 上下文管理器
- with_db_session(): 装饰器方式管理 session
- enable_sqlite_savepoints(): 让 pysqlite 正确支持 SAVEPOINT
"""

from typing import Optional, Callable, Any, TypeVar, Generator
import logging
from contextlib import contextmanager
from functools import wraps

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from sqlalchemy.pool import StaticPool

from ytag.log import get_logger

_logger = get_logger("ytag.orm.session")

T = TypeVar('T')

__all__ = [
    'db_manager',
    'DatabaseManager',
    'init_database',
    'get_engine',
    'db_session_scope',
    'with_db_session',
    'enable_sqlite_savepoints',
]


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """为 SQLite 引擎启用可靠的 SAVEPOINT 支持
    
    pysqlite 默认自行决定何时发出 BEGIN，会破坏 begin_nested() 的语义。
    这里关闭驱动的事务管理，改由 SQLAlchemy 显式发出 BEGIN。
    标签并发创建依赖保存点回滚唯一约束冲突，SQLite 上必须启用。
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transaction(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
    
    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")
    
    return engine


class DatabaseManager:
    """数据库管理器（单例）
    
    使用示例:
        from ytag.orm import db_manager
        
        db_manager.init(database_url="sqlite:///./tags.db")
        engine = db_manager.engine
        session = db_manager.get_session()
    """
    _instance = None
    
    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance
    
    def __init__(self):
        if self._initialized:
            return
        
        self._engine = None
        self._session_scope = None
        self._session_maker = None
        self._initialized = True
    
    # ==================== 属性访问 ====================
    
    @property
    def engine(self):
        """获取数据库引擎（只读）"""
        if self._engine is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._engine
    
    @property
    def session_scope(self):
        """获取 scoped session（只读）"""
        if self._session_scope is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._session_scope
    
    @property
    def is_initialized(self) -> bool:
        return self._engine is not None and self._session_scope is not None
    
    # ==================== 核心方法 ====================
    
    def init(
        self,
        database_url: str = None,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
        logger: logging.Logger = None,
        scopefunc: Callable = None,
        config: Any = None,
        auto_setup_query: bool = True
    ):
        """初始化数据库连接
        
        Args:
            database_url: 数据库连接URL（如果提供 config 则忽略）
            echo: 是否输出SQL语句（如果提供 config 则忽略）
            pool_size: 连接池大小（如果提供 config 则忽略）
            max_overflow: 最大溢出连接数（如果提供 config 则忽略）
            pool_timeout: 连接超时时间（如果提供 config 则忽略）
            pool_recycle: 连接回收时间（如果提供 config 则忽略）
            pool_pre_ping: 连接前是否ping（如果提供 config 则忽略）
            logger: 日志记录器
            scopefunc: session作用域函数，默认按线程隔离
            config: 数据库配置对象（DatabaseSettings）
            auto_setup_query: 是否自动设置 CoreModel.query 属性
        
        Returns:
            tuple: (engine, session_scope)
            
        使用示例:
            engine, session = init_database("sqlite:///./tags.db")
            engine, session = init_database(config=settings.database)
        """
        if config is not None:
            database_url = getattr(config, "url", database_url)
            echo = getattr(config, "echo", echo)
            pool_size = getattr(config, "pool_size", pool_size)
            max_overflow = getattr(config, "max_overflow", max_overflow)
            pool_timeout = getattr(config, "pool_timeout", pool_timeout)
            pool_recycle = getattr(config, "pool_recycle", pool_recycle)
            pool_pre_ping = getattr(config, "pool_pre_ping", pool_pre_ping)
        
        if not database_url:
            raise ValueError("database_url 是必需的，请通过参数或 config 提供")
        
        if logger is None:
            logger = _logger
        
        logger.info(f"数据库配置URL: {database_url}")
        
        try:
            if database_url.startswith("sqlite"):
                db_path = database_url.split(":///", 1)[-1]
                if db_path in ("", ":memory:") or database_url == "sqlite://":
                    # 内存数据库：单连接
                    self._engine = create_engine(
                        database_url,
                        echo=echo,
                        connect_args={"check_same_thread": False},
                        poolclass=StaticPool,
                    )
                    logger.info("SQLite内存数据库引擎创建成功（StaticPool）")
                else:
                    self._engine = create_engine(
                        database_url,
                        echo=echo,
                        connect_args={"check_same_thread": False, "timeout": pool_timeout},
                    )
                    logger.info("SQLite文件数据库引擎创建成功")
                enable_sqlite_savepoints(self._engine)
            else:
                self._engine = create_engine(
                    database_url,
                    echo=echo,
                    pool_pre_ping=pool_pre_ping,
                    pool_size=pool_size,
                    max_overflow=max_overflow,
                    pool_timeout=pool_timeout,
                    pool_recycle=pool_recycle
                )
                logger.info("数据库引擎创建成功")
        except Exception as e:
            logger.error(f"创建数据库引擎失败: {str(e)}")
            raise
        
        self._session_maker = sessionmaker(
            autocommit=False,
            autoflush=True,
            bind=self._engine,
        )
        self._session_scope = scoped_session(self._session_maker, scopefunc=scopefunc)
        
        if auto_setup_query:
            from .core_model import CoreModel
            CoreModel.query = self._session_scope.query_property()
            logger.info("CoreModel.query 属性已自动设置")
        
        return self._engine, self._session_scope
    
    def get_session(self) -> Session:
        """获取当前作用域的 session
        
        直接使用时需要自行提交、回滚和调用 cleanup()，
        一般优先使用 db_session_scope() 或 @with_db_session。
        """
        if self._session_scope is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._session_scope()
    
    def cleanup(self):
        """移除当前作用域的 session，归还连接（幂等）"""
        if self._session_scope is not None and self._session_scope.registry.has():
            self._session_scope.remove()
            _logger.debug("session_scope 移除完成")
    
    def dispose(self):
        """释放引擎与会话工厂（测试或进程退出时使用）"""
        self.cleanup()
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_scope = None
        self._session_maker = None


# ==================== 全局单例 ====================

db_manager = DatabaseManager()


# ==================== 公开 API 函数 ====================

def init_database(database_url: str = None, **kwargs):
    """初始化数据库连接
    
    这是 db_manager.init() 的便捷包装函数，参数说明见 DatabaseManager.init()。
    
    Returns:
        tuple: (engine, session_scope)
    """
    return db_manager.init(database_url=database_url, **kwargs)


def get_engine():
    """获取数据库引擎"""
    return db_manager.engine


@contextmanager
def db_session_scope(auto_commit: bool = True) -> Generator[Session, None, None]:
    """session 上下文管理器
    
    自动提交或回滚，并在结束时清理 session。
    
    使用示例:
        with db_session_scope() as session:
            photo = session.get(Photo, 1)
            photo.set_tags("Nature, Animal")
    """
    session = db_manager.get_session()
    try:
        yield session
        if auto_commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        db_manager.cleanup()


def with_db_session(auto_commit: bool = True):
    """数据库 session 装饰器
    
    session 作为第一个参数注入被装饰函数。
    
    使用示例:
        @with_db_session()
        def nightly_retag(session, tag_name):
            for photo in Photo.find_tagged_with(tag_name):
                photo.add_tags("archived")
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            with db_session_scope(auto_commit=auto_commit) as session:
                return func(session, *args, **kwargs)
        return wrapper
    
    return decorator
