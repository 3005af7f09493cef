# skill_translator/api/schemas.py
"""HTTP 接口的请求与响应模型。文件内容在传输中一律使用 base64 编码。"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class TranslateOptions(BaseModel):
    """翻译选项。目前只有语言覆盖会影响处理结果，其余字段为兼容保留。"""

    preserve_frontmatter: bool = True
    preserve_code_blocks: bool = True
    translate_code_comments: bool = False
    target_language: str | None = None
    source_language: str | None = None


class TranslateRequest(BaseModel):
    content: str = Field(description="base64 编码的文件内容")
    content_hash: str
    path: str
    options: TranslateOptions | None = None


class TranslateResponse(BaseModel):
    translated_content: str = Field(description="base64 编码的翻译结果")
    content_hash: str
    translated_hash: str
    cached: bool
    metadata: dict[str, Any]


class BatchOptions(TranslateOptions):
    skip_cached: bool = True


class BatchTranslateRequest(BaseModel):
    files: list[TranslateRequest]
    options: BatchOptions | None = None


class FileTranslationResult(BaseModel):
    path: str
    success: bool
    translated_content: str | None = None
    content_hash: str
    translated_hash: str | None = None
    cached: bool = False
    error: str | None = None


class BatchTranslateResponse(BaseModel):
    results: list[FileTranslationResult]
    total_files: int
    successful: int
    cached_count: int
    failed: int
    processing_time_ms: float


class CacheStatsResponse(BaseModel):
    total_entries: int
    total_size_bytes: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    total_hits: int
    total_misses: int


class OperationResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    version: str
    model: str
    target_language: str
