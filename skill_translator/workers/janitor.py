# skill_translator/workers/janitor.py
"""
缓存的后台维护任务。

- `CacheJanitor`：每天在固定的本地时刻清理长期未被访问的缓存条目。
- `HitFlusher`：按固定间隔把待写的命中计数落盘。

两者都在进程生命周期内运行，可被停机事件及时打断；单次执行失败只记录日志，循环继续。
"""

import asyncio
from datetime import datetime, timedelta

import structlog

from skill_translator.cache.store import CacheStore
from skill_translator.core.exceptions import StorageError

log = structlog.get_logger(__name__)


def compute_next_run(now: datetime, hour: int) -> datetime:
    """返回下一次执行时间：今天的 ``hour`` 点，若已过则为明天的同一时刻。"""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return target


async def _sleep_or_shutdown(shutdown_event: asyncio.Event, seconds: float) -> bool:
    """睡眠指定秒数；若期间收到停机信号则提前返回 True。"""
    if shutdown_event.is_set():
        return True
    try:
        await asyncio.wait_for(shutdown_event.wait(), timeout=max(seconds, 0))
    except asyncio.TimeoutError:
        return False
    return True


class CacheJanitor:
    """每日定时执行陈旧缓存清理。"""

    def __init__(self, cache: CacheStore, *, hour: int = 1, stale_days: int = 30):
        self.cache = cache
        self.hour = hour
        self.stale_days = stale_days

    async def run_once(self) -> int | None:
        """执行一次清理。失败时记录错误并返回 None。"""
        try:
            removed = await self.cache.clear_stale(self.stale_days)
        except StorageError:
            log.error("定时缓存清理失败。", stale_days=self.stale_days, exc_info=True)
            return None
        log.info("定时缓存清理完成。", removed=removed, stale_days=self.stale_days)
        return removed

    async def run_forever(self, shutdown_event: asyncio.Event) -> None:
        while not shutdown_event.is_set():
            next_run = compute_next_run(datetime.now(), self.hour)
            wait_seconds = (next_run - datetime.now()).total_seconds()
            log.info("下一次缓存清理已排期。", next_run=next_run.isoformat())
            if await _sleep_or_shutdown(shutdown_event, wait_seconds):
                break
            await self.run_once()
        log.info("缓存清理任务已停止。")


class HitFlusher:
    """周期性地落盘待写的命中计数。"""

    def __init__(self, cache: CacheStore, *, interval_seconds: float = 60):
        self.cache = cache
        self.interval_seconds = interval_seconds

    async def run_forever(self, shutdown_event: asyncio.Event) -> None:
        while not await _sleep_or_shutdown(shutdown_event, self.interval_seconds):
            try:
                await self.cache.flush_pending_hits()
            except StorageError:
                log.error("命中计数落盘失败，将在下个周期重试。", exc_info=True)
        log.info("命中计数落盘任务已停止。")
