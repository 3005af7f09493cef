# skill_translator/engines/factory.py
"""
翻译引擎工厂：根据应用配置实例化具体的翻译引擎。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from skill_translator.core.exceptions import ConfigurationError, EngineNotFoundError
from skill_translator.engines import ENGINE_REGISTRY, discover_engines

if TYPE_CHECKING:
    from skill_translator.config import TranslatorConfig
    from skill_translator.engines.base import BaseTranslationEngine

logger = structlog.get_logger(__name__)


def create_engine_instance(
    config: "TranslatorConfig", engine_name: str | None = None
) -> "BaseTranslationEngine[Any]":
    """
    根据引擎名称创建一个（尚未初始化的）翻译引擎实例。

    Args:
        config: 完整的应用配置对象。
        engine_name: 要实例化的引擎名称；缺省时使用 ``config.active_engine``。

    Raises:
        EngineNotFoundError: 如果请求的引擎未注册。
        ConfigurationError: 如果引擎所需的配置无效。
    """
    discover_engines()
    name = engine_name or config.active_engine.value

    engine_class = ENGINE_REGISTRY.get(name)
    if engine_class is None:
        raise EngineNotFoundError(
            f"引擎 '{name}' 未找到。已注册的引擎: {sorted(ENGINE_REGISTRY)}"
        )

    try:
        engine_config = engine_class.CONFIG_MODEL.model_validate(
            config.engine_options(name)
        )
    except ValidationError as e:
        raise ConfigurationError(f"引擎 '{name}' 的配置验证失败: {e}") from e

    engine = engine_class(engine_config)
    logger.info("翻译引擎已创建。", engine=name, model=engine.model_name)
    return engine
