# skill_translator/coordinator.py
"""本模块包含翻译服务的主协调器：把文档转换、受控翻译调用与缓存组合为完整的处理流程。"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from skill_translator.cache.store import CacheStore
from skill_translator.config import TranslatorConfig
from skill_translator.content.parser import ContentTransformer
from skill_translator.core.exceptions import ServiceShuttingDownError
from skill_translator.core.types import TranslationMetadata, TranslationOutcome
from skill_translator.engines.base import BaseTranslationEngine
from skill_translator.gate import TranslationGate
from skill_translator.utils import compute_cache_key, compute_hash

logger = structlog.get_logger(__name__)

DESCRIPTION_FIELD = "description"


class Coordinator:
    """异步主协调器。一个进程内共享同一个协调器（以及同一个并发闸门）。"""

    def __init__(
        self,
        config: TranslatorConfig,
        engine: BaseTranslationEngine[Any],
        cache: CacheStore,
        transformer: ContentTransformer | None = None,
    ):
        self.config = config
        self.engine = engine
        self.cache = cache
        self.transformer = transformer or ContentTransformer()
        self.gate = TranslationGate(
            engine,
            max_concurrency=config.max_concurrent_translations,
            timeout_seconds=config.translation_timeout_seconds,
            max_attempts=config.max_retries,
            retry_delay_seconds=config.retry_delay_seconds,
        )
        self.initialized = False
        self._shutting_down = False
        self._closed = False
        self._in_flight = 0
        self._drained = asyncio.Event()
        self._drained.set()

    async def initialize(self) -> None:
        """初始化缓存存储与翻译引擎。"""
        if self.initialized:
            return
        logger.info("协调器初始化开始...")
        if not self.cache.initialized:
            await self.cache.initialize()
        if not self.engine.initialized:
            await self.engine.initialize()
        self.initialized = True
        logger.info("协调器初始化完成。", engine=self.engine.name)

    async def close(self) -> None:
        """
        优雅停机：拒绝新的翻译请求，等待已受理的请求完成，
        然后关闭引擎并关闭缓存存储（仅执行一次）。
        """
        if self._closed:
            return
        self._closed = True
        self._shutting_down = True
        if self._in_flight:
            logger.info("等待进行中的翻译完成...", in_flight=self._in_flight)
        await self._drained.wait()
        try:
            await self.engine.close()
        finally:
            await self.cache.close()
            self.initialized = False
            logger.info("优雅停机完成。")

    @asynccontextmanager
    async def _admitted(self) -> AsyncIterator[None]:
        if self._shutting_down:
            raise ServiceShuttingDownError("服务正在停机，不再接受新的翻译请求。")
        self._in_flight += 1
        self._drained.clear()
        try:
            yield
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._drained.set()

    def cache_key_for(
        self, content_hash: str, source_language: str, target_language: str
    ) -> str:
        return compute_cache_key(
            content_hash, source_language, target_language, self.config.translator_version
        )

    async def translate_document(
        self, content: str, source_language: str, target_language: str
    ) -> tuple[str, TranslationMetadata]:
        """
        翻译一篇文档。

        正文与 description 字段是两次独立的受控调用，可以并发进行；任一失败则整篇失败。
        结果总是按“frontmatter 在前、正文在后”的顺序拼接。
        """
        started = time.monotonic()
        transformer = self.transformer
        document = transformer.parse(content)
        protected_body = transformer.substitute(document.body, document.code_blocks)

        description = transformer.get_string_field(document.fields, DESCRIPTION_FIELD)
        translate_description = (
            document.has_header
            and transformer.is_translatable_field(DESCRIPTION_FIELD)
            and bool(description and description.strip())
        )

        calls = [self.gate.translate(protected_body, source_language, target_language)]
        if translate_description:
            assert description is not None
            calls.append(
                self.gate.translate(description, source_language, target_language)
            )
        results = await asyncio.gather(*calls, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result

        translated_body = transformer.restore(str(results[0]), document.code_blocks)
        header = document.raw_header
        if translate_description:
            cleaned = "\n".join(
                line for line in str(results[1]).splitlines() if line.strip()
            )
            header = transformer.rewrite_field(header, DESCRIPTION_FIELD, cleaned)

        translated = header + translated_body
        metadata = TranslationMetadata(
            original_chars=len(content),
            translated_chars=len(translated),
            processing_time_ms=int((time.monotonic() - started) * 1000),
            translator_version=self.config.translator_version,
            model=self.engine.model_name,
            source_language=source_language,
            target_language=target_language,
        )
        logger.info(
            "文档翻译完成。",
            code_blocks=len(document.code_blocks),
            description_translated=translate_description,
            processing_time_ms=metadata.processing_time_ms,
        )
        return translated, metadata

    async def translate_file(
        self,
        content: str,
        content_hash: str,
        path: str,
        source_language: str | None = None,
        target_language: str | None = None,
        use_cache: bool = True,
    ) -> TranslationOutcome:
        """
        处理单个文件：查询缓存，未命中时翻译并写入缓存。

        ``content_hash`` 由调用方提供，作为缓存键的一部分。
        """
        source = source_language or self.config.source_language
        target = target_language or self.config.target_language

        async with self._admitted():
            cache_key = self.cache_key_for(content_hash, source, target)
            if use_cache:
                entry = await self.cache.get(cache_key)
                if entry is not None:
                    logger.info("缓存命中。", path=path, hit_count=entry.hit_count)
                    return TranslationOutcome(
                        translated_content=entry.translated_content,
                        content_hash=entry.content_hash,
                        translated_hash=entry.translated_hash,
                        cached=True,
                        metadata=entry.metadata,
                    )

            translated, metadata = await self.translate_document(content, source, target)
            translated_hash = compute_hash(translated)
            metadata_dict = metadata.model_dump()
            await self.cache.set(
                cache_key, content_hash, path, translated, translated_hash, metadata_dict
            )
            return TranslationOutcome(
                translated_content=translated,
                content_hash=content_hash,
                translated_hash=translated_hash,
                cached=False,
                metadata=metadata_dict,
            )
