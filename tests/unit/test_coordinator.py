# tests/unit/test_coordinator.py
"""
针对 `skill_translator.coordinator.Coordinator` 的单元测试。

使用 Debug 引擎与真实的 SQLite 缓存，验证完整的单文件处理流程。
"""

import asyncio
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from pytest_mock import MockerFixture

from skill_translator.cache.store import CacheStore
from skill_translator.config import TranslatorConfig
from skill_translator.coordinator import Coordinator
from skill_translator.core.exceptions import (
    RetryExhaustedError,
    ServiceShuttingDownError,
)
from skill_translator.engines.debug import DebugEngine, DebugEngineConfig
from skill_translator.utils import compute_hash

SKILL = (
    "---\n"
    "name: weather\n"
    "description: Get the current weather\n"
    "---\n"
    "# Weather\n"
    "\n"
    "Run this:\n"
    "```bash\n"
    "curl wttr.in\n"
    "```\n"
)


@pytest_asyncio.fixture
async def coordinator(
    test_config: TranslatorConfig, debug_engine: DebugEngine
) -> AsyncGenerator[Coordinator, None]:
    cache = CacheStore(test_config.cache_db_path)
    coord = Coordinator(test_config, debug_engine, cache)
    await coord.initialize()
    yield coord
    await coord.close()


@pytest.mark.asyncio
async def test_translate_document_keeps_header_first_and_restores_code(
    coordinator: Coordinator,
) -> None:
    translated, metadata = await coordinator.translate_document(SKILL, "en", "zh-CN")

    assert translated.startswith(
        "---\nname: weather\ndescription: [translated] Get the current weather\n---\n"
    )
    assert "[translated] # Weather" in translated
    assert "```bash\ncurl wttr.in\n```" in translated
    assert "___CODE_BLOCK_" not in translated
    assert metadata.original_chars == len(SKILL)
    assert metadata.translated_chars == len(translated)
    assert metadata.model == "debug"
    assert metadata.target_language == "zh-CN"


@pytest.mark.asyncio
async def test_code_block_text_is_never_sent_to_engine(
    test_config: TranslatorConfig, cache_store: CacheStore, mocker: MockerFixture
) -> None:
    engine = DebugEngine(DebugEngineConfig())
    spy = mocker.spy(engine, "complete")
    coord = Coordinator(test_config, engine, cache_store)

    await coord.translate_document(SKILL, "en", "zh-CN")

    sent = [call.args[1] for call in spy.call_args_list]
    assert len(sent) == 2
    assert all("curl wttr.in" not in text for text in sent)
    assert "Get the current weather" in sent


@pytest.mark.asyncio
async def test_document_without_header_translates_body_only(
    coordinator: Coordinator, debug_engine: DebugEngine
) -> None:
    translated, _ = await coordinator.translate_document("Hello\n", "en", "zh-CN")
    assert translated == "[translated] Hello"
    assert debug_engine.calls == 1


@pytest.mark.asyncio
async def test_non_string_description_is_not_translated(
    coordinator: Coordinator, debug_engine: DebugEngine
) -> None:
    content = "---\nname: x\ndescription:\n  - a\n  - b\n---\nBody\n"
    translated, _ = await coordinator.translate_document(content, "en", "zh-CN")

    assert translated.startswith("---\nname: x\ndescription:\n  - a\n  - b\n---\n")
    assert debug_engine.calls == 1


@pytest.mark.asyncio
async def test_translate_file_is_idempotent_through_cache(
    coordinator: Coordinator, debug_engine: DebugEngine
) -> None:
    content_hash = compute_hash(SKILL)
    first = await coordinator.translate_file(SKILL, content_hash, "weather/SKILL.md")
    calls_after_first = debug_engine.calls
    second = await coordinator.translate_file(SKILL, content_hash, "weather/SKILL.md")

    assert not first.cached
    assert second.cached
    assert second.translated_content == first.translated_content
    assert second.translated_hash == compute_hash(first.translated_content)
    assert second.metadata == first.metadata
    assert debug_engine.calls == calls_after_first


@pytest.mark.asyncio
async def test_translate_file_without_cache_always_calls_engine(
    coordinator: Coordinator, debug_engine: DebugEngine
) -> None:
    content_hash = compute_hash("Body\n")
    await coordinator.translate_file("Body\n", content_hash, "a.md")
    await coordinator.translate_file("Body\n", content_hash, "a.md", use_cache=False)
    assert debug_engine.calls == 2


@pytest.mark.asyncio
async def test_language_override_uses_separate_cache_key(
    coordinator: Coordinator, debug_engine: DebugEngine
) -> None:
    content_hash = compute_hash("Body\n")
    await coordinator.translate_file("Body\n", content_hash, "a.md")
    outcome = await coordinator.translate_file(
        "Body\n", content_hash, "a.md", target_language="ja"
    )
    assert not outcome.cached
    assert outcome.metadata["target_language"] == "ja"
    assert debug_engine.calls == 2


@pytest.mark.asyncio
async def test_failure_aborts_and_writes_nothing(
    test_config: TranslatorConfig, cache_store: CacheStore
) -> None:
    engine = DebugEngine(DebugEngineConfig(mode="FAIL"))
    coord = Coordinator(test_config, engine, cache_store)

    with pytest.raises(RetryExhaustedError):
        await coord.translate_file(SKILL, compute_hash(SKILL), "weather/SKILL.md")

    assert (await cache_store.stats()).total_entries == 0


@pytest.mark.asyncio
async def test_close_rejects_new_requests_and_closes_cache_once(
    test_config: TranslatorConfig, mocker: MockerFixture
) -> None:
    cache = CacheStore(test_config.cache_db_path)
    engine = DebugEngine(DebugEngineConfig())
    coord = Coordinator(test_config, engine, cache)
    await coord.initialize()
    close_spy = mocker.spy(cache, "close")

    await coord.close()
    await coord.close()

    assert close_spy.call_count == 1
    assert not engine.initialized
    with pytest.raises(ServiceShuttingDownError):
        await coord.translate_file("Body\n", "sha256:x", "a.md")


@pytest.mark.asyncio
async def test_close_waits_for_in_flight_translation(
    test_config: TranslatorConfig,
) -> None:
    cache = CacheStore(test_config.cache_db_path)
    engine = DebugEngine(DebugEngineConfig(delay_seconds=0.05))
    coord = Coordinator(test_config, engine, cache)
    await coord.initialize()

    task = asyncio.create_task(coord.translate_file("Body\n", "sha256:x", "a.md"))
    await asyncio.sleep(0.01)
    await coord.close()

    outcome = await task
    assert outcome.translated_content == "[translated] Body"
    assert not cache.initialized
