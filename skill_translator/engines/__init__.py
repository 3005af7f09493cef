# skill_translator/engines/__init__.py
"""本包负责动态发现和加载 `skill_translator.engines` 下所有可用的翻译引擎。"""

import importlib
import pkgutil
from typing import Any

import structlog

from skill_translator.engines.base import BaseTranslationEngine

log = structlog.get_logger(__name__)
ENGINE_REGISTRY: dict[str, type[BaseTranslationEngine[Any]]] = {}

_NON_ENGINE_MODULES = {"base", "factory"}


def discover_engines() -> None:
    """
    动态发现 `skill_translator.engines` 包下的所有引擎并注册。

    此函数是幂等的，只在首次调用时执行发现操作。缺少可选依赖的引擎会被跳过。
    """
    if ENGINE_REGISTRY:
        return

    registered: list[str] = []
    skipped: list[dict[str, str]] = []

    for module_info in pkgutil.iter_modules(__path__):
        module_name = module_info.name
        if module_name in _NON_ENGINE_MODULES or module_name.startswith("_"):
            continue
        try:
            module = importlib.import_module(f"{__name__}.{module_name}")
        except ImportError as e:
            skipped.append({"engine_name": module_name, "missing_dependency": str(e.name)})
            continue
        for attr in vars(module).values():
            if (
                isinstance(attr, type)
                and issubclass(attr, BaseTranslationEngine)
                and attr is not BaseTranslationEngine
                and attr.__module__ == module.__name__
            ):
                engine_name = attr.__name__.replace("Engine", "").lower()
                ENGINE_REGISTRY[engine_name] = attr
                registered.append(engine_name)

    log.info("引擎发现完成。", registered=sorted(registered), skipped=skipped)
