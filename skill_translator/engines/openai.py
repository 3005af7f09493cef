# skill_translator/engines/openai.py
"""提供一个使用 OpenAI 兼容 Chat Completions 接口（流式）的翻译引擎。"""

from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog
from openai import APIError as OpenAIAPIError
from openai import AsyncOpenAI
from openai.types.chat import (
    ChatCompletionMessageParam,
    ChatCompletionSystemMessageParam,
    ChatCompletionUserMessageParam,
)
from pydantic import Field, SecretStr, field_validator

from skill_translator.core.exceptions import APIError, ConfigurationError
from skill_translator.engines.base import BaseEngineConfig, BaseTranslationEngine

logger = structlog.get_logger(__name__)


class OpenAIEngineConfig(BaseEngineConfig):
    """OpenAI 引擎的配置模型。"""

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=16000, gt=0)
    timeout_connect: float = Field(default=10.0, gt=0)
    # 单次 HTTP 请求的读超时；逻辑调用的总截止时间由 TranslationGate 控制。
    timeout_read: float | None = None

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return cls.model_fields["base_url"].default
        return v


class OpenAIEngine(BaseTranslationEngine[OpenAIEngineConfig]):
    """使用 OpenAI API 的翻译引擎实现。"""

    CONFIG_MODEL = OpenAIEngineConfig
    VERSION = "1.0.0"

    def __init__(self, config: OpenAIEngineConfig):
        super().__init__(config)
        timeout = httpx.Timeout(config.timeout_read, connect=config.timeout_connect)
        # 重试由 TranslationGate 统一负责，SDK 内部不再重试。
        self.client = AsyncOpenAI(
            api_key=config.api_key.get_secret_value() or "missing-api-key",
            base_url=config.base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def initialize(self) -> None:
        if not self.config.api_key.get_secret_value():
            raise ConfigurationError("OpenAI 引擎配置错误: 缺少 API 密钥 (OPENAI_API_KEY)。")
        logger.info(
            "OpenAI 引擎已就绪。", base_url=self.config.base_url, model=self.config.model
        )
        await super().initialize()

    async def close(self) -> None:
        if not self.client.is_closed():
            await self.client.close()
            logger.info("OpenAI 引擎的 HTTP 客户端已关闭。")
        await super().close()

    async def _stream_completion(
        self, system_prompt: str, user_text: str
    ) -> AsyncIterator[str]:
        messages: list[ChatCompletionMessageParam] = [
            ChatCompletionSystemMessageParam(role="system", content=system_prompt),
            ChatCompletionUserMessageParam(role="user", content=user_text),
        ]
        try:
            stream = await self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except OpenAIAPIError as e:
            raise APIError(f"OpenAI API 错误: {e}") from e
