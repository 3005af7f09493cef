# tests/unit/cli/test_cli_commands.py
"""
针对 skill-translator CLI 的测试。

通过 Typer 的 CliRunner 调用真实命令；配置来自环境变量，缓存位于 tmp_path，
翻译使用 Debug 引擎。
"""

import asyncio
from pathlib import Path

import pytest
from pytest_mock import MockerFixture
from typer.testing import CliRunner

from skill_translator.cache.store import CacheStore
from skill_translator.cli.main import app
from skill_translator.core.exceptions import StorageError

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, db_path: Path, mocker: MockerFixture
) -> None:
    """隔离 .env 与日志配置，让 CLI 使用临时缓存与 Debug 引擎。"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ACTIVE_ENGINE", "debug")
    monkeypatch.setenv("CACHE_DB_PATH", str(db_path))
    monkeypatch.setenv("RETRY_DELAY_SECONDS", "0")
    monkeypatch.setenv("COLUMNS", "250")
    mocker.patch("skill_translator.cli.main.setup_logging")


def _seed(db_path: Path, *keys: str) -> None:
    async def _run() -> None:
        store = CacheStore(db_path)
        await store.initialize()
        for key in keys:
            await store.set(key, f"sha256:{key}", f"{key}.md", "译文", "sha256:t")
        await store.close()

    asyncio.run(_run())


def _count(db_path: Path) -> int:
    async def _run() -> int:
        store = CacheStore(db_path)
        await store.initialize()
        try:
            return (await store.stats()).total_entries
        finally:
            await store.close()

    return asyncio.run(_run())


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "v1.0.0" in result.stdout


def test_invalid_config_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MAX_CONCURRENT_TRANSLATIONS", "0")
    result = runner.invoke(app, ["cache", "stats"])
    assert result.exit_code == 1
    assert "无法加载配置" in result.stdout


def test_cache_stats(db_path: Path) -> None:
    _seed(db_path, "a", "b")
    result = runner.invoke(app, ["cache", "stats"])

    assert result.exit_code == 0, result.stdout
    assert "缓存统计" in result.stdout
    assert "条目数" in result.stdout


def test_cache_clear_with_yes(db_path: Path) -> None:
    _seed(db_path, "a", "b")
    result = runner.invoke(app, ["cache", "clear", "--yes"])

    assert result.exit_code == 0, result.stdout
    assert "已清空 2 条缓存" in result.stdout
    assert _count(db_path) == 0


def test_cache_clear_cancelled(db_path: Path, mocker: MockerFixture) -> None:
    _seed(db_path, "a")
    confirm = mocker.patch("skill_translator.cli.cache.questionary.confirm")
    confirm.return_value.ask.return_value = False

    result = runner.invoke(app, ["cache", "clear"])

    assert result.exit_code == 0
    assert "操作已取消" in result.stdout
    assert _count(db_path) == 1


def test_cache_clear_confirmed(db_path: Path, mocker: MockerFixture) -> None:
    _seed(db_path, "a")
    confirm = mocker.patch("skill_translator.cli.cache.questionary.confirm")
    confirm.return_value.ask.return_value = True

    result = runner.invoke(app, ["cache", "clear"])

    assert result.exit_code == 0
    assert _count(db_path) == 0


def test_cache_clear_expired_and_stale(db_path: Path) -> None:
    _seed(db_path, "a")

    expired = runner.invoke(app, ["cache", "clear-expired"])
    assert expired.exit_code == 0
    assert "已清理 0 条过期缓存" in expired.stdout

    stale = runner.invoke(app, ["cache", "clear-stale", "--days", "3"])
    assert stale.exit_code == 0
    assert "超过 3 天未访问" in stale.stdout
    assert _count(db_path) == 1


def test_translate_prints_result(tmp_path: Path) -> None:
    source = tmp_path / "SKILL.md"
    source.write_text("---\nname: x\ndescription: Hello\n---\nBody\n", encoding="utf-8")

    result = runner.invoke(app, ["translate", str(source)])

    assert result.exit_code == 0, result.stdout
    assert "description: [translated] Hello" in result.stdout
    assert "[translated] Body" in result.stdout


def test_translate_writes_output_and_uses_cache(tmp_path: Path, db_path: Path) -> None:
    source = tmp_path / "SKILL.md"
    source.write_text("Body\n", encoding="utf-8")
    output = tmp_path / "out.md"

    first = runner.invoke(app, ["translate", str(source), "-o", str(output), "-t", "ja"])
    assert first.exit_code == 0, first.stdout
    assert output.read_text(encoding="utf-8") == "[translated] Body"
    assert "来源: 翻译服务" in first.stdout

    second = runner.invoke(app, ["translate", str(source), "-o", str(output), "-t", "ja"])
    assert "来源: 缓存" in second.stdout
    assert _count(db_path) == 1


def test_translate_rejects_invalid_language(tmp_path: Path) -> None:
    source = tmp_path / "SKILL.md"
    source.write_text("Body\n", encoding="utf-8")

    result = runner.invoke(app, ["translate", str(source), "--target", "german"])

    assert result.exit_code == 1
    assert "格式无效" in result.stdout


def test_translate_closes_cache_when_engine_initialization_fails(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, mocker: MockerFixture
) -> None:
    """引擎初始化失败时，已经打开的缓存存储仍会被关闭。"""
    monkeypatch.setenv("ACTIVE_ENGINE", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    close = mocker.spy(CacheStore, "close")
    source = tmp_path / "SKILL.md"
    source.write_text("Body\n", encoding="utf-8")

    result = runner.invoke(app, ["translate", str(source)])

    assert result.exit_code == 1
    assert "翻译失败" in result.stdout
    assert "OPENAI_API_KEY" in result.stdout
    close.assert_called_once()


def test_cache_command_closes_store_when_initialization_fails(
    mocker: MockerFixture,
) -> None:
    mocker.patch.object(
        CacheStore, "initialize", side_effect=StorageError("初始化缓存数据库失败: disk I/O error")
    )
    close = mocker.spy(CacheStore, "close")

    result = runner.invoke(app, ["cache", "stats"])

    assert result.exit_code == 1
    assert "缓存操作失败" in result.stdout
    close.assert_called_once()
