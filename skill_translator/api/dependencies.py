# skill_translator/api/dependencies.py
"""
FastAPI 依赖注入：服务实例在 lifespan 中放入 app.state，由依赖函数取出。
"""

from typing import Annotated

from fastapi import Depends, Request

from skill_translator.config import TranslatorConfig
from skill_translator.coordinator import Coordinator


def get_coordinator(request: Request) -> Coordinator:
    coordinator = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise RuntimeError("Coordinator 尚未初始化，请检查 lifespan 配置。")
    return coordinator


def get_config(request: Request) -> TranslatorConfig:
    return request.app.state.config


CoordinatorDep = Annotated[Coordinator, Depends(get_coordinator)]
ConfigDep = Annotated[TranslatorConfig, Depends(get_config)]
