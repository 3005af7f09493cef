# skill_translator/engines/base.py
"""
本模块定义了所有翻译引擎（外部翻译服务的适配器）必须继承的抽象基类。

引擎只暴露一个逻辑操作 `complete(system_prompt, user_text) -> str`：
内部按顺序拼接流式返回的片段并去除首尾空白。并发、超时与重试
由上层的 `TranslationGate` 负责，引擎自身不做这些控制。
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel

from skill_translator.core.exceptions import APIError

_ConfigType = TypeVar("_ConfigType", bound="BaseEngineConfig")

logger = structlog.get_logger(__name__)


class BaseEngineConfig(BaseModel):
    """所有引擎配置模型的基类。"""

    model: str = "unknown"


class BaseTranslationEngine(ABC, Generic[_ConfigType]):
    """翻译引擎的纯异步抽象基类。"""

    CONFIG_MODEL: type[_ConfigType]
    VERSION: str = "1.0.0"

    def __init__(self, config: _ConfigType):
        self.config = config
        self.initialized: bool = False

    @property
    def name(self) -> str:
        """从类名自动推断引擎的名称。"""
        return self.__class__.__name__.replace("Engine", "").lower()

    @property
    def model_name(self) -> str:
        """写入翻译元数据的模型标识。"""
        return self.config.model

    async def initialize(self) -> None:
        """引擎的异步初始化钩子，用于校验凭据、建立客户端等。"""
        self.initialized = True

    async def close(self) -> None:
        """引擎的异步关闭钩子，用于安全释放资源。"""
        self.initialized = False

    @abstractmethod
    def _stream_completion(
        self, system_prompt: str, user_text: str
    ) -> AsyncIterator[str]:
        """[子类实现] 按顺序产出翻译结果的文本片段。"""
        ...

    async def complete(self, system_prompt: str, user_text: str) -> str:
        """
        执行一次完整的补全调用，返回拼接并去除首尾空白后的文本。

        流式传输或协议层面的任何错误都被统一包装为 `APIError`。
        """
        chunks: list[str] = []
        try:
            async for chunk in self._stream_completion(system_prompt, user_text):
                chunks.append(chunk)
        except APIError:
            raise
        except Exception as e:
            raise APIError(f"{self.name} 引擎流式响应失败: {e}") from e
        result = "".join(chunks).strip()
        logger.debug(
            "引擎调用完成。", engine=self.name, chunks=len(chunks), chars=len(result)
        )
        return result

    def describe(self) -> dict[str, Any]:
        return {"engine": self.name, "version": self.VERSION, "model": self.model_name}
