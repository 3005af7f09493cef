# skill_translator/api/app.py
"""
FastAPI 应用工厂。

lifespan 负责：备份缓存数据库、组装并初始化协调器、启动后台维护任务；
停机时通知后台任务退出，然后由协调器完成排空与缓存关闭。
"""

import asyncio
import secrets
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skill_translator import __version__
from skill_translator.api.routes import router
from skill_translator.cache.store import CacheStore, backup_database
from skill_translator.config import TranslatorConfig
from skill_translator.coordinator import Coordinator
from skill_translator.core.exceptions import (
    APIError,
    ContentValidationError,
    ServiceShuttingDownError,
    StorageError,
    TranslationError,
)
from skill_translator.engines.base import BaseTranslationEngine
from skill_translator.engines.factory import create_engine_instance
from skill_translator.workers.janitor import CacheJanitor, HitFlusher

logger = structlog.get_logger(__name__)
access_logger = structlog.get_logger("skill_translator.api.access")

PUBLIC_PATHS = frozenset({"/api/health"})


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def _check_bearer(request: Request, expected: str) -> JSONResponse | None:
    header = request.headers.get("Authorization")
    if header is None:
        return _error(status.HTTP_401_UNAUTHORIZED, "Missing Authorization header")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token:
        return _error(
            status.HTTP_401_UNAUTHORIZED, "Invalid Authorization header format"
        )
    if not secrets.compare_digest(token.encode(), expected.encode()):
        return _error(status.HTTP_401_UNAUTHORIZED, "Invalid API key")
    return None


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ContentValidationError)
    async def _bad_request(request: Request, exc: ContentValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(ServiceShuttingDownError)
    async def _shutting_down(
        request: Request, exc: ServiceShuttingDownError
    ) -> JSONResponse:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))

    @app.exception_handler(TranslationError)
    @app.exception_handler(APIError)
    async def _translation_failed(request: Request, exc: Exception) -> JSONResponse:
        logger.error("翻译失败。", path=request.url.path, error=str(exc))
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, f"Translation failed: {exc}"
        )

    @app.exception_handler(StorageError)
    async def _cache_failed(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("缓存操作失败。", path=request.url.path, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Cache error: {exc}")


def create_app(
    config: TranslatorConfig | None = None,
    engine: BaseTranslationEngine[Any] | None = None,
) -> FastAPI:
    """
    创建 FastAPI 应用。

    Args:
        config: 应用配置，缺省时从环境变量加载。
        engine: 可选的翻译引擎实例，缺省时按 ``config.active_engine`` 创建。
    """
    config = config or TranslatorConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            backup_database(config.cache_db_path)
        except OSError as e:
            logger.warning("缓存数据库备份失败，继续启动。", error=str(e))

        cache = CacheStore(config.cache_db_path, max_age_days=config.cache_max_age_days)
        coordinator = Coordinator(
            config, engine or create_engine_instance(config), cache
        )
        await coordinator.initialize()

        shutdown_event = asyncio.Event()
        janitor = CacheJanitor(
            cache, hour=config.cleanup_hour, stale_days=config.stale_days
        )
        flusher = HitFlusher(cache, interval_seconds=config.hit_flush_interval_seconds)
        workers = [
            asyncio.create_task(janitor.run_forever(shutdown_event)),
            asyncio.create_task(flusher.run_forever(shutdown_event)),
        ]

        app.state.config = config
        app.state.coordinator = coordinator
        logger.info(
            "翻译服务已启动。",
            model=config.model_name,
            target_language=config.target_language,
            auth_enabled=config.auth_enabled,
        )

        yield

        logger.info("翻译服务正在停机...")
        shutdown_event.set()
        await asyncio.gather(*workers, return_exceptions=True)
        await coordinator.close()
        del app.state.coordinator

    app = FastAPI(
        title="skill-translator",
        description="SKILL.md 文档翻译服务：保护代码块与 frontmatter，带持久化缓存。",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    bearer = config.local_api_bearer.get_secret_value()

    @app.middleware("http")
    async def bearer_auth(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if bearer and request.url.path not in PUBLIC_PATHS:
            rejection = _check_bearer(request, bearer)
            if rejection is not None:
                return rejection
        return await call_next(request)

    @app.middleware("http")
    async def access_log(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.monotonic()
        response = await call_next(request)
        access_logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            latency_ms=round((time.monotonic() - started) * 1000, 2),
        )
        return response

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)
    app.include_router(router)
    return app
