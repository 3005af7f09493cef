# skill_translator/config.py
"""
应用配置。

所有配置项都可以通过环境变量或 `.env` 文件设置，变量名与字段名一致（不区分大小写），
例如 ``OPENAI_API_KEY``、``TARGET_LANGUAGE``。嵌套的日志配置使用 ``__`` 分隔，
例如 ``LOGGING__LEVEL=DEBUG``。
"""

import enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from skill_translator.utils import validate_lang_codes


class EngineName(str, enum.Enum):
    DEBUG = "debug"
    OPENAI = "openai"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: Literal["json", "console"] = "console"

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"无效的日志级别: {v}")
        return level


class TranslatorConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # 翻译服务
    active_engine: EngineName = EngineName.OPENAI
    openai_api_key: SecretStr = SecretStr("")
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    max_tokens: int = Field(default=16000, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)

    # HTTP 服务
    host: str = "127.0.0.1"
    port: int = Field(default=8080, gt=0, lt=65536)
    local_api_bearer: SecretStr = SecretStr("")

    # 翻译流水线
    translator_version: str = "1.0.0"
    target_language: str = "zh-CN"
    source_language: str = "en"
    max_concurrent_translations: int = Field(default=5, gt=0)
    translation_timeout_seconds: float = Field(default=600, gt=0)
    max_retries: int = Field(default=3, gt=0)
    retry_delay_seconds: float = Field(default=2.0, ge=0)
    max_line_length: int = Field(default=5000, gt=0)

    # 缓存
    cache_db_path: Path = Path("./data/cache.db")
    cache_max_age_days: int = Field(default=30, gt=0)
    cleanup_hour: int = Field(default=1, ge=0, le=23)
    stale_days: int = Field(default=30, gt=0)
    hit_flush_interval_seconds: float = Field(default=60, gt=0)

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("target_language", "source_language")
    @classmethod
    def _validate_language(cls, v: str) -> str:
        validate_lang_codes([v])
        return v

    @property
    def auth_enabled(self) -> bool:
        return bool(self.local_api_bearer.get_secret_value())

    @property
    def model_name(self) -> str:
        return self.openai_model if self.active_engine is EngineName.OPENAI else "debug"

    def engine_options(self, engine_name: str) -> dict[str, Any]:
        """提取特定引擎所需的配置部分，交由引擎自身的配置模型校验。"""
        if engine_name == EngineName.OPENAI.value:
            return {
                "api_key": self.openai_api_key,
                "base_url": self.openai_base_url,
                "model": self.openai_model,
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            }
        return {}
