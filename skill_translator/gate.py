# skill_translator/gate.py
"""
本模块提供 `TranslationGate`：包裹外部翻译调用的准入控制、总超时与线性退避重试。

- 准入：进程内共享的信号量，持有许可时才允许调用翻译服务，许可在任何退出路径上都会释放。
- 超时：一个截止时间覆盖一次逻辑调用的全部尝试，而不是每次尝试。
- 重试：最多 R 次尝试；第 1 次之前不等待，第 k 次 (k≥2) 之前等待 ``k × retry_delay``。
  服务错误与空结果都会消耗一次尝试。
"""

import asyncio

import structlog

from skill_translator.core.exceptions import (
    APIError,
    EmptyResponseError,
    RetryExhaustedError,
    TranslationTimeoutError,
)
from skill_translator.engines.base import BaseTranslationEngine

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT_TEMPLATE = """\
You are a professional technical translator. Translate the SKILL.md document \
provided by the user from {source_language} into {target_language}.

Rules:
- Preserve all Markdown formatting: headings, lists, tables, links, emphasis.
- Keep placeholders such as ___CODE_BLOCK_0___ exactly as they are, on their own lines.
- Do not translate URLs, file paths, command names, environment variables or inline code.
- Keep technical terms that are commonly left in English untranslated.
- Output only the translated text, without explanations or surrounding quotes."""


def build_system_prompt(source_language: str, target_language: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        source_language=source_language, target_language=target_language
    )


class TranslationGate:
    """有界并发 + 总截止时间 + 线性退避重试的翻译调用包装器。"""

    def __init__(
        self,
        engine: BaseTranslationEngine,
        *,
        max_concurrency: int,
        timeout_seconds: float,
        max_attempts: int = 3,
        retry_delay_seconds: float = 2.0,
    ):
        if max_concurrency <= 0:
            raise ValueError("max_concurrency 必须为正整数")
        if max_attempts <= 0:
            raise ValueError("max_attempts 必须为正整数")
        self.engine = engine
        self.max_concurrency = max_concurrency
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def translate(
        self, text: str, source_language: str, target_language: str
    ) -> str:
        """
        翻译一段文本。空白输入原样返回，不占用许可也不调用翻译服务。

        Raises:
            TranslationTimeoutError: 全部尝试未能在截止时间内完成。
            RetryExhaustedError: 所有尝试均失败。
        """
        if not text.strip():
            return text

        system_prompt = build_system_prompt(source_language, target_language)
        async with self._semaphore:
            try:
                return await asyncio.wait_for(
                    self._call_with_retry(system_prompt, text),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                logger.warning(
                    "翻译调用超时。", timeout_seconds=self.timeout_seconds
                )
                raise TranslationTimeoutError(self.timeout_seconds) from e

    async def _call_with_retry(self, system_prompt: str, text: str) -> str:
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                delay = attempt * self.retry_delay_seconds
                logger.info("等待后重试翻译。", attempt=attempt, delay_seconds=delay)
                await asyncio.sleep(delay)
            try:
                result = await self.engine.complete(system_prompt, text)
                if not result:
                    raise EmptyResponseError()
                return result
            except (APIError, EmptyResponseError) as e:
                last_error = e
                logger.warning(
                    "翻译尝试失败。",
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    error=str(e),
                )

        raise RetryExhaustedError(self.max_attempts, last_error) from last_error
