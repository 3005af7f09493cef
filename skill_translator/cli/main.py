# skill_translator/cli/main.py
"""skill-translator CLI 的主入口点。"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from pydantic import ValidationError
from rich.console import Console

import skill_translator
from skill_translator.cache.store import CacheStore
from skill_translator.cli.cache import cache_app
from skill_translator.cli.state import State
from skill_translator.config import TranslatorConfig
from skill_translator.coordinator import Coordinator
from skill_translator.core.exceptions import SkillTranslatorError
from skill_translator.core.types import TranslationOutcome
from skill_translator.engines.factory import create_engine_instance
from skill_translator.logging_config import setup_logging
from skill_translator.utils import compute_hash, validate_lang_codes

app = typer.Typer(
    name="skill-translator",
    help="SKILL.md 文档翻译服务：保护代码块与 frontmatter，带持久化缓存。",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(cache_app, name="cache")

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(
            f"skill-translator [bold cyan]v{skill_translator.__version__}[/bold cyan]"
        )
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="显示版本信息并退出。",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """加载配置并初始化日志，然后执行子命令。"""
    try:
        config = TranslatorConfig()
    except ValidationError as e:
        console.print("[bold red]❌ 启动失败：无法加载配置。[/bold red]")
        console.print(f"[dim]{e}[/dim]")
        raise typer.Exit(code=1) from e
    setup_logging(log_level=config.logging.level, log_format=config.logging.format)
    ctx.obj = State(config=config)


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[str | None, typer.Option(help="监听地址。")] = None,
    port: Annotated[int | None, typer.Option(help="监听端口。")] = None,
) -> None:
    """启动 HTTP 翻译服务。SIGINT/SIGTERM 触发优雅停机。"""
    from skill_translator.api.app import create_app

    state: State = ctx.obj
    config = state.config
    bind_host = host or config.host
    bind_port = port or config.port
    console.print(
        f"[green]🚀 skill-translator 正在监听 http://{bind_host}:{bind_port}[/green]"
    )
    uvicorn.run(
        create_app(config),
        host=bind_host,
        port=bind_port,
        log_config=None,
        access_log=False,
    )


async def _translate_once(
    config: TranslatorConfig,
    content: str,
    path: str,
    source_language: str | None,
    target_language: str | None,
    use_cache: bool,
) -> TranslationOutcome:
    cache = CacheStore(config.cache_db_path, max_age_days=config.cache_max_age_days)
    coordinator = Coordinator(config, create_engine_instance(config), cache)
    try:
        await coordinator.initialize()
        return await coordinator.translate_file(
            content,
            compute_hash(content),
            path,
            source_language=source_language,
            target_language=target_language,
            use_cache=use_cache,
        )
    finally:
        await coordinator.close()


@app.command()
def translate(
    ctx: typer.Context,
    file: Annotated[
        Path, typer.Argument(exists=True, dir_okay=False, readable=True)
    ],
    target: Annotated[str | None, typer.Option("--target", "-t", help="目标语言。")] = None,
    source: Annotated[str | None, typer.Option("--source", "-s", help="源语言。")] = None,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="输出文件，缺省时打印到标准输出。")
    ] = None,
    no_cache: Annotated[bool, typer.Option("--no-cache", help="不查询缓存。")] = False,
) -> None:
    """在本地翻译单个 SKILL.md 文件。"""
    state: State = ctx.obj
    languages = [lang for lang in (target, source) if lang]
    try:
        validate_lang_codes(languages)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    content = file.read_text(encoding="utf-8")
    try:
        outcome = asyncio.run(
            _translate_once(
                state.config, content, str(file), source, target, not no_cache
            )
        )
    except SkillTranslatorError as e:
        console.print(f"[red]翻译失败: {e}[/red]")
        raise typer.Exit(code=1) from e

    if output is None:
        console.print(outcome.translated_content, markup=False, highlight=False)
    else:
        output.write_text(outcome.translated_content, encoding="utf-8")
        source_label = "缓存" if outcome.cached else "翻译服务"
        console.print(f"[green]✅ 已写入 {output}（来源: {source_label}）[/green]")
