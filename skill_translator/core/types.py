# skill_translator/core/types.py
"""本模块定义了在各组件之间传递的核心数据传输对象 (DTOs)。"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CodeBlock(BaseModel):
    """正文中一段受保护的围栏代码块，以及替换它的占位符。"""

    language: str
    code: str
    placeholder: str

    @property
    def fenced(self) -> str:
        """代码块在原文中的完整文本（含围栏）。"""
        return f"```{self.language}\n{self.code}```"


class ParsedDocument(BaseModel):
    """一次翻译过程中的文档解析结果，用后即弃。"""

    raw_header: str = ""
    fields: dict[str, Any] = Field(default_factory=dict)
    body: str
    code_blocks: list[CodeBlock] = Field(default_factory=list)

    @property
    def has_header(self) -> bool:
        return bool(self.raw_header)


class TranslationMetadata(BaseModel):
    """单次文档翻译的统计信息，写入缓存条目的 metadata 字段。"""

    original_chars: int
    translated_chars: int
    processing_time_ms: int
    translator_version: str
    model: str
    source_language: str
    target_language: str


class CacheEntry(BaseModel):
    """缓存中的一条翻译结果。"""

    cache_key: str
    content_hash: str
    path: str
    translated_content: str
    translated_hash: str
    created_at: datetime
    accessed_at: datetime
    hit_count: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CacheStats(BaseModel):
    """缓存统计。total_hits 仅包含已落盘的命中数；total_misses 为进程内计数。"""

    total_entries: int
    total_size_bytes: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    total_hits: int
    total_misses: int


class TranslationOutcome(BaseModel):
    """协调器处理单个文件后的结果。"""

    translated_content: str
    content_hash: str
    translated_hash: str
    cached: bool
    metadata: dict[str, Any] = Field(default_factory=dict)
