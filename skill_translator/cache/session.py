# skill_translator/cache/session.py
"""
缓存数据库的引擎与会话工厂。

- create_cache_engine(path)：SQLite (aiosqlite) 引擎，小容量连接池 + 连接级 PRAGMA
- create_async_sessionmaker(engine)：标准化创建 AsyncSession 工厂
- session_scope(sessionmaker)：统一事务域（自动提交/回滚/关闭）
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

# 面向低内存部署：最多两个并发连接。
POOL_SIZE = 2

# 每个新连接上执行的 PRAGMA。WAL + NORMAL 意味着进程崩溃不会丢数据，
# 但断电时最近的事务可能丢失。
SQLITE_PRAGMAS: tuple[str, ...] = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA cache_size=-8000",
    "PRAGMA busy_timeout=5000",
    "PRAGMA wal_autocheckpoint=100",
)


def _apply_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def create_cache_engine(db_path: Path) -> AsyncEngine:
    """为缓存数据库文件创建 AsyncEngine，并为每个新连接注册 PRAGMA 设置。"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=POOL_SIZE,
        max_overflow=0,
    )
    event.listen(engine.sync_engine, "connect", _apply_pragmas)
    return engine


def create_async_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """基于引擎创建 AsyncSession 工厂。"""
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@asynccontextmanager
async def session_scope(
    sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """标准化事务作用域：自动提交/回滚与资源释放。"""
    session = sessionmaker()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
