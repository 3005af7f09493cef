# skill_translator/cli/cache.py
"""缓存管理子命令：统计、清空、清理过期/陈旧条目。"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Annotated, TypeVar

import questionary
import structlog
import typer
from rich.console import Console
from rich.table import Table

from skill_translator.cache.store import CacheStore
from skill_translator.cli.state import State
from skill_translator.core.exceptions import StorageError

log = structlog.get_logger("skill_translator.cli.cache")
console = Console()

cache_app = typer.Typer(help="管理翻译缓存。", no_args_is_help=True)

_T = TypeVar("_T")


def _run_with_store(
    state: State, operation: Callable[[CacheStore], Awaitable[_T]]
) -> _T:
    """打开缓存存储，执行操作并确保关闭。存储错误转换为非零退出码。"""

    async def _runner() -> _T:
        store = CacheStore(
            state.config.cache_db_path, max_age_days=state.config.cache_max_age_days
        )
        try:
            await store.initialize()
            return await operation(store)
        finally:
            await store.close()

    try:
        return asyncio.run(_runner())
    except StorageError as e:
        log.error("缓存操作失败。", error=str(e))
        console.print(f"[red]缓存操作失败: {e}[/red]")
        raise typer.Exit(code=1) from e


@cache_app.command("stats")
def stats(ctx: typer.Context) -> None:
    """显示缓存统计信息。"""
    state: State = ctx.obj
    result = _run_with_store(state, lambda store: store.stats())

    table = Table(title="缓存统计")
    table.add_column("项目", style="cyan")
    table.add_column("值", style="magenta", justify="right")
    table.add_row("条目数", str(result.total_entries))
    table.add_row("译文总字节数", str(result.total_size_bytes))
    table.add_row("最早条目", str(result.oldest_entry or "-"))
    table.add_row("最新条目", str(result.newest_entry or "-"))
    table.add_row("累计命中", str(result.total_hits))
    console.print(table)


@cache_app.command("clear")
def clear(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="跳过确认。")] = False,
) -> None:
    """清空全部缓存条目。"""
    state: State = ctx.obj
    if not yes:
        proceed = questionary.confirm(
            "这是一个破坏性操作，将删除全部缓存条目，是否继续？",
            default=False,
            auto_enter=False,
        ).ask()
        if not proceed:
            console.print("[red]操作已取消。[/red]")
            raise typer.Exit()
    count = _run_with_store(state, lambda store: store.clear_all())
    console.print(f"[green]✅ 已清空 {count} 条缓存。[/green]")


@cache_app.command("clear-expired")
def clear_expired(ctx: typer.Context) -> None:
    """删除超过最大保留期的缓存条目。"""
    state: State = ctx.obj
    count = _run_with_store(state, lambda store: store.clear_expired())
    console.print(f"[green]✅ 已清理 {count} 条过期缓存。[/green]")


@cache_app.command("clear-stale")
def clear_stale(
    ctx: typer.Context,
    days: Annotated[
        int | None, typer.Option("--days", "-d", min=1, help="未访问天数阈值。")
    ] = None,
) -> None:
    """删除长期未被访问的缓存条目。"""
    state: State = ctx.obj
    threshold = days or state.config.stale_days
    count = _run_with_store(state, lambda store: store.clear_stale(threshold))
    console.print(f"[green]✅ 已清理 {count} 条超过 {threshold} 天未访问的缓存。[/green]")
