# tests/conftest.py
"""项目全局共享的测试 Fixtures。"""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from pytest_mock import MockerFixture
from rich.console import Console

from skill_translator.cache.store import CacheStore
from skill_translator.config import EngineName, TranslatorConfig
from skill_translator.engines.debug import DebugEngine, DebugEngineConfig


@pytest.fixture(scope="session", autouse=True)
def disable_rich_colors_for_tests(
    session_mocker: MockerFixture,
) -> Generator[None, None, None]:
    """全局禁用 rich 库的颜色输出，以确保测试结果的确定性。"""
    original_init = Console.__init__

    def new_init(self: Console, *args: Any, **kwargs: Any) -> None:
        kwargs["force_terminal"] = False
        kwargs["color_system"] = None
        original_init(self, *args, **kwargs)

    session_mocker.patch("rich.console.Console.__init__", new=new_init)
    yield


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "cache.db"


@pytest.fixture
def test_config(db_path: Path) -> TranslatorConfig:
    """不依赖环境变量与 .env 文件的测试配置。"""
    return TranslatorConfig(
        _env_file=None,
        active_engine=EngineName.DEBUG,
        cache_db_path=db_path,
        retry_delay_seconds=0,
        translation_timeout_seconds=5,
        local_api_bearer="",
    )


@pytest.fixture
def debug_engine() -> DebugEngine:
    return DebugEngine(DebugEngineConfig())


@pytest_asyncio.fixture
async def cache_store(db_path: Path) -> AsyncGenerator[CacheStore, None]:
    """提供一个已初始化的缓存存储，并在测试结束后关闭。"""
    store = CacheStore(db_path, max_age_days=30)
    await store.initialize()
    yield store
    await store.close()
