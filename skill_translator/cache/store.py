# skill_translator/cache/store.py
"""
本模块提供持久化的翻译缓存 `CacheStore`。

- 读取时惰性检查过期（按 created_at），过期行在本次读取中被删除并计为未命中。
- 命中计数先记入进程内的待写缓冲区，由 `flush_pending_hits` 批量落盘；
  读取结果会叠加尚未落盘的命中数。
- 过期清理（按 created_at）与陈旧清理（按 accessed_at）是两个独立的维度。

任何存储层故障都会包装为 `StorageError` 向上抛出，绝不降级为“未命中”。
"""

import asyncio
import json
import shutil
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import structlog
from sqlalchemy import LargeBinary, cast, delete, func, insert, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from skill_translator.cache.schema import TranslationRecord, metadata
from skill_translator.cache.session import (
    create_async_sessionmaker,
    create_cache_engine,
    session_scope,
)
from skill_translator.core.exceptions import StorageError
from skill_translator.core.types import CacheEntry, CacheStats

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def backup_database(db_path: Path) -> Path | None:
    """
    在服务启动前把现有的缓存数据库复制为 ``<stem>.bak.db``，覆盖旧备份。

    数据库文件不存在时返回 None。
    """
    if not db_path.exists():
        logger.info("缓存数据库尚不存在，跳过备份。", db_path=str(db_path))
        return None
    backup_path = db_path.with_name(f"{db_path.stem}.bak.db")
    backup_path.unlink(missing_ok=True)
    shutil.copy2(db_path, backup_path)
    logger.info("缓存数据库已备份。", backup_path=str(backup_path))
    return backup_path


class CacheStore:
    """基于 SQLite 的翻译缓存。每个实例独立持有自己的待写命中与未命中计数。"""

    def __init__(self, db_path: str | Path, max_age_days: int = 30):
        self.db_path = Path(db_path)
        self.max_age = timedelta(days=max_age_days)
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None
        self._lock = asyncio.Lock()
        self._pending_hits: defaultdict[str, int] = defaultdict(int)
        self._misses = 0
        self._closed = False

    @property
    def initialized(self) -> bool:
        return self._sessionmaker is not None

    def _require_sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        if self._sessionmaker is None:
            raise StorageError("缓存存储尚未初始化。")
        return self._sessionmaker

    async def initialize(self) -> None:
        """创建目录、打开连接池并确保表与索引存在。"""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_cache_engine(self.db_path)
        self._sessionmaker = create_async_sessionmaker(self._engine)
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"初始化缓存数据库失败: {e}") from e
        logger.info("缓存存储已初始化。", db_path=str(self.db_path))

    def _is_expired(self, created_at: datetime | None, now: datetime) -> bool:
        if created_at is None:
            return False
        return now - created_at > self.max_age

    async def get(self, cache_key: str) -> CacheEntry | None:
        """
        按缓存键读取条目。

        过期条目会被同步删除并计为一次未命中；命中时返回的 hit_count
        等于已落盘的计数加上本进程内尚未落盘的增量。
        """
        sessionmaker = self._require_sessionmaker()
        now = _utcnow()
        try:
            async with session_scope(sessionmaker) as session:
                result = await session.execute(
                    select(TranslationRecord).where(
                        TranslationRecord.cache_key == cache_key
                    )
                )
                record = result.scalar_one_or_none()
                expired = record is not None and self._is_expired(
                    _parse_timestamp(record.created_at), now
                )
                if expired:
                    await session.execute(
                        delete(TranslationRecord).where(
                            TranslationRecord.cache_key == cache_key
                        )
                    )
        except SQLAlchemyError as e:
            raise StorageError(f"读取缓存失败: {e}") from e

        if record is None or expired:
            async with self._lock:
                self._misses += 1
                if expired:
                    self._pending_hits.pop(cache_key, None)
            if expired:
                logger.debug("缓存条目已过期并被删除。", cache_key=cache_key)
            return None

        async with self._lock:
            self._pending_hits[cache_key] += 1
            pending = self._pending_hits[cache_key]

        entry = self._to_entry(record)
        entry.hit_count = record.hit_count + pending
        return entry

    async def set(
        self,
        cache_key: str,
        content_hash: str,
        path: str,
        translated_content: str,
        translated_hash: str,
        metadata: dict[str, Any] | None = None,
    ) -> CacheEntry:
        """写入（或整体替换）一条缓存，命中计数（含未落盘的部分）与时间戳一律重置。"""
        sessionmaker = self._require_sessionmaker()
        now = _utcnow().isoformat()
        values = {
            "cache_key": cache_key,
            "content_hash": content_hash,
            "path": path,
            "translated_content": translated_content,
            "translated_hash": translated_hash,
            "created_at": now,
            "accessed_at": now,
            "hit_count": 0,
            "metadata": json.dumps(metadata or {}, ensure_ascii=False),
        }
        try:
            async with session_scope(sessionmaker) as session:
                await session.execute(
                    insert(TranslationRecord.__table__)
                    .values(**values)
                    .prefix_with("OR REPLACE")
                )
        except SQLAlchemyError as e:
            raise StorageError(f"写入缓存失败: {e}") from e
        async with self._lock:
            self._pending_hits.pop(cache_key, None)

        return CacheEntry(
            cache_key=cache_key,
            content_hash=content_hash,
            path=path,
            translated_content=translated_content,
            translated_hash=translated_hash,
            created_at=datetime.fromisoformat(now),
            accessed_at=datetime.fromisoformat(now),
            hit_count=0,
            metadata=metadata or {},
        )

    async def flush_pending_hits(self) -> int:
        """
        把待写的命中数批量落盘，返回涉及的缓存键数量。

        缓冲区在锁内整体换出，因此并发读取产生的命中要么属于本批，要么属于下一批。
        落盘失败时，换出的增量会合并回缓冲区。
        """
        sessionmaker = self._require_sessionmaker()
        async with self._lock:
            drained = self._pending_hits
            self._pending_hits = defaultdict(int)
        if not drained:
            return 0

        now = _utcnow().isoformat()
        try:
            async with session_scope(sessionmaker) as session:
                for cache_key, count in drained.items():
                    await session.execute(
                        update(TranslationRecord)
                        .where(TranslationRecord.cache_key == cache_key)
                        .values(
                            accessed_at=now,
                            hit_count=TranslationRecord.hit_count + count,
                        )
                    )
        except SQLAlchemyError as e:
            async with self._lock:
                for cache_key, count in drained.items():
                    self._pending_hits[cache_key] += count
            raise StorageError(f"写入命中计数失败: {e}") from e

        logger.debug("待写命中已落盘。", keys=len(drained))
        return len(drained)

    async def _delete_where(self, *criteria: Any) -> int:
        sessionmaker = self._require_sessionmaker()
        stmt = delete(TranslationRecord)
        if criteria:
            stmt = stmt.where(*criteria)
        try:
            async with session_scope(sessionmaker) as session:
                result = await session.execute(stmt)
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StorageError(f"删除缓存条目失败: {e}") from e

    async def clear_expired(self) -> int:
        """删除创建时间早于最大保留期的条目。"""
        cutoff = (_utcnow() - self.max_age).isoformat()
        count = await self._delete_where(TranslationRecord.created_at < cutoff)
        logger.info("已清理过期缓存。", count=count)
        return count

    async def clear_stale(self, days: int) -> int:
        """删除超过 ``days`` 天未被访问的条目。"""
        cutoff = (_utcnow() - timedelta(days=days)).isoformat()
        count = await self._delete_where(TranslationRecord.accessed_at < cutoff)
        logger.info("已清理陈旧缓存。", count=count, days=days)
        return count

    async def clear_all(self) -> int:
        count = await self._delete_where()
        logger.info("已清空全部缓存。", count=count)
        return count

    async def stats(self) -> CacheStats:
        """汇总统计。total_hits 不含未落盘的命中；total_misses 仅统计本进程。"""
        sessionmaker = self._require_sessionmaker()
        try:
            async with session_scope(sessionmaker) as session:
                result = await session.execute(
                    select(
                        func.count(),
                        func.coalesce(
                            func.sum(
                                func.length(
                                    cast(TranslationRecord.translated_content, LargeBinary)
                                )
                            ),
                            0,
                        ),
                        func.min(TranslationRecord.created_at),
                        func.max(TranslationRecord.created_at),
                        func.coalesce(func.sum(TranslationRecord.hit_count), 0),
                    ).select_from(TranslationRecord)
                )
                total, size, oldest, newest, hits = result.one()
        except SQLAlchemyError as e:
            raise StorageError(f"读取缓存统计失败: {e}") from e

        async with self._lock:
            misses = self._misses

        return CacheStats(
            total_entries=total,
            total_size_bytes=size,
            oldest_entry=_parse_timestamp(oldest),
            newest_entry=_parse_timestamp(newest),
            total_hits=hits,
            total_misses=misses,
        )

    async def close(self) -> None:
        """落盘待写命中，执行完整的 WAL 检查点，然后释放连接。重复调用是安全的。"""
        if self._closed or self._engine is None:
            return
        self._closed = True
        try:
            await self.flush_pending_hits()
            async with self._engine.connect() as conn:
                await conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
        except SQLAlchemyError as e:
            raise StorageError(f"关闭缓存数据库失败: {e}") from e
        finally:
            await self._engine.dispose()
            self._sessionmaker = None
            logger.info("缓存存储已关闭。", db_path=str(self.db_path))

    @staticmethod
    def _to_entry(record: TranslationRecord) -> CacheEntry:
        try:
            meta = json.loads(record.metadata_json or "{}")
        except json.JSONDecodeError:
            meta = {}
        created_at = _parse_timestamp(record.created_at) or _utcnow()
        accessed_at = _parse_timestamp(record.accessed_at) or created_at
        return CacheEntry(
            cache_key=record.cache_key,
            content_hash=record.content_hash,
            path=record.path,
            translated_content=record.translated_content,
            translated_hash=record.translated_hash,
            created_at=created_at,
            accessed_at=accessed_at,
            hit_count=record.hit_count or 0,
            metadata=meta if isinstance(meta, dict) else {},
        )
