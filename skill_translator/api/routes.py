# skill_translator/api/routes.py
"""HTTP 路由：单文件翻译、批量翻译、缓存管理与健康检查。"""

import base64
import binascii
import time
from typing import Any

import structlog
from fastapi import APIRouter

from skill_translator import __version__
from skill_translator.api.dependencies import ConfigDep, CoordinatorDep
from skill_translator.api.schemas import (
    BatchTranslateRequest,
    BatchTranslateResponse,
    CacheStatsResponse,
    FileTranslationResult,
    HealthResponse,
    OperationResponse,
    TranslateOptions,
    TranslateRequest,
    TranslateResponse,
)
from skill_translator.config import TranslatorConfig
from skill_translator.coordinator import Coordinator
from skill_translator.core.exceptions import ContentValidationError, SkillTranslatorError
from skill_translator.core.types import TranslationOutcome
from skill_translator.utils import filter_long_lines

logger = structlog.get_logger(__name__)

router = APIRouter()


def decode_content(encoded: str) -> str:
    """解码 base64 编码的 UTF-8 文本。"""
    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ContentValidationError(f"Invalid base64 content: {e}") from e
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ContentValidationError(f"Content is not valid UTF-8: {e}") from e


def encode_content(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


async def _process_file(
    coordinator: Coordinator,
    config: TranslatorConfig,
    request: TranslateRequest,
    options: TranslateOptions | None,
    use_cache: bool = True,
) -> TranslationOutcome:
    content = filter_long_lines(decode_content(request.content), config.max_line_length)
    return await coordinator.translate_file(
        content,
        request.content_hash,
        request.path,
        source_language=options.source_language if options else None,
        target_language=options.target_language if options else None,
        use_cache=use_cache,
    )


@router.get("/")
async def root(config: ConfigDep) -> dict[str, Any]:
    """服务信息。"""
    return {
        "name": "skill-translator",
        "version": __version__,
        "model": config.model_name,
        "target_language": config.target_language,
        "source_language": config.source_language,
        "endpoints": {
            "health": "GET /api/health",
            "translate": "POST /api/translate",
            "batch": "POST /api/translate/batch",
            "cache_stats": "GET /api/cache/stats",
            "cache_clear": "DELETE /api/cache",
            "cache_clear_expired": "DELETE /api/cache/expired",
            "cache_flush": "POST /api/cache/flush",
        },
    }


@router.get("/api/health", response_model=HealthResponse)
async def health(config: ConfigDep) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        model=config.model_name,
        target_language=config.target_language,
    )


@router.post("/api/translate", response_model=TranslateResponse)
async def translate_file(
    request: TranslateRequest, coordinator: CoordinatorDep, config: ConfigDep
) -> TranslateResponse:
    started = time.monotonic()
    outcome = await _process_file(coordinator, config, request, request.options)
    metadata = dict(outcome.metadata)
    if not outcome.cached:
        metadata["total_processing_time_ms"] = (time.monotonic() - started) * 1000
    logger.info("文件翻译完成。", path=request.path, cached=outcome.cached)
    return TranslateResponse(
        translated_content=encode_content(outcome.translated_content),
        content_hash=outcome.content_hash,
        translated_hash=outcome.translated_hash,
        cached=outcome.cached,
        metadata=metadata,
    )


@router.post("/api/translate/batch", response_model=BatchTranslateResponse)
async def translate_batch(
    request: BatchTranslateRequest, coordinator: CoordinatorDep, config: ConfigDep
) -> BatchTranslateResponse:
    """按顺序逐个处理文件；单个文件失败不影响其余文件。"""
    started = time.monotonic()
    skip_cached = request.options.skip_cached if request.options else True
    results: list[FileTranslationResult] = []

    for item in request.files:
        options = item.options or request.options
        try:
            outcome = await _process_file(
                coordinator, config, item, options, use_cache=skip_cached
            )
        except SkillTranslatorError as e:
            logger.warning("批量翻译中的文件失败。", path=item.path, error=str(e))
            results.append(
                FileTranslationResult(
                    path=item.path,
                    success=False,
                    content_hash=item.content_hash,
                    error=str(e),
                )
            )
            continue
        results.append(
            FileTranslationResult(
                path=item.path,
                success=True,
                translated_content=encode_content(outcome.translated_content),
                content_hash=outcome.content_hash,
                translated_hash=outcome.translated_hash,
                cached=outcome.cached,
            )
        )

    successful = sum(1 for r in results if r.success)
    return BatchTranslateResponse(
        results=results,
        total_files=len(results),
        successful=successful,
        cached_count=sum(1 for r in results if r.cached),
        failed=len(results) - successful,
        processing_time_ms=(time.monotonic() - started) * 1000,
    )


@router.get("/api/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(coordinator: CoordinatorDep) -> CacheStatsResponse:
    stats = await coordinator.cache.stats()
    return CacheStatsResponse(**stats.model_dump())


@router.delete("/api/cache", response_model=OperationResponse)
async def clear_cache(coordinator: CoordinatorDep) -> OperationResponse:
    count = await coordinator.cache.clear_all()
    return OperationResponse(success=True, message=f"Cleared all {count} entries")


@router.delete("/api/cache/expired", response_model=OperationResponse)
async def clear_expired(coordinator: CoordinatorDep) -> OperationResponse:
    count = await coordinator.cache.clear_expired()
    return OperationResponse(success=True, message=f"Cleared {count} expired entries")


@router.post("/api/cache/flush", response_model=OperationResponse)
async def flush_hits(coordinator: CoordinatorDep) -> OperationResponse:
    count = await coordinator.cache.flush_pending_hits()
    return OperationResponse(success=True, message=f"Flushed {count} pending hit keys")
