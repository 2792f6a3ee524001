"""事务传播行为

定义当方法在已有事务上下文中被调用时的行为
"""

from enum import Enum


class TransactionPropagation(str, Enum):
    """事务传播行为
    
    使用示例:
        # 标签同步默认 REQUIRED：宿主保存已开启事务时直接加入，
        # 宿主记录与标签关联一起提交或一起回滚
        with tm.transaction(session=session):
            photo.save()
            synchronizer.reconcile(photo, ["Nature"])
    """
    
    REQUIRED = "required"
    """如果当前有事务则加入，没有则新建（默认）"""
    
    REQUIRES_NEW = "requires_new"
    """在现有事务中以 savepoint 隔离执行，没有事务则新建"""
    
    MANDATORY = "mandatory"
    """必须在事务中执行，否则抛出异常"""
    
    NEVER = "never"
    """必须不在事务中执行，否则抛出异常"""
    
    NESTED = "nested"
    """在现有事务中创建 savepoint，外层回滚会一起回滚；没有外层事务时报错"""
