# skill_translator/engines/debug.py
"""提供一个用于开发和测试的调试翻译引擎，不访问任何外部服务。"""

import asyncio
from collections.abc import AsyncIterator
from typing import Literal

from pydantic import Field

from skill_translator.core.exceptions import APIError
from skill_translator.engines.base import BaseEngineConfig, BaseTranslationEngine


class DebugEngineConfig(BaseEngineConfig):
    """Debug 引擎的配置模型。"""

    model: str = "debug"
    mode: Literal["SUCCESS", "FAIL", "EMPTY"] = "SUCCESS"
    prefix: str = "[translated] "
    delay_seconds: float = Field(default=0.0, ge=0.0)
    translation_map: dict[str, str] = Field(default_factory=dict)


class DebugEngine(BaseTranslationEngine[DebugEngineConfig]):
    """
    一个简单的调试翻译引擎实现。

    SUCCESS 模式下返回 ``prefix + 原文``（或 translation_map 中的映射），
    并按行分片流式产出；FAIL 模式抛出 `APIError`；EMPTY 模式返回空结果。
    """

    CONFIG_MODEL = DebugEngineConfig
    VERSION = "1.0.0"

    def __init__(self, config: DebugEngineConfig):
        super().__init__(config)
        self.calls = 0

    async def _stream_completion(
        self, system_prompt: str, user_text: str
    ) -> AsyncIterator[str]:
        self.calls += 1
        if self.config.delay_seconds:
            await asyncio.sleep(self.config.delay_seconds)
        if self.config.mode == "FAIL":
            raise APIError("DebugEngine is in FAIL mode.")
        if self.config.mode == "EMPTY":
            return

        translated = self.config.translation_map.get(
            user_text, f"{self.config.prefix}{user_text}"
        )
        for piece in translated.splitlines(keepends=True):
            yield piece
