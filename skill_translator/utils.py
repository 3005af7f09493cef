# skill_translator/utils.py
"""
本模块包含项目范围内的通用工具函数：内容指纹、缓存键与语言代码校验。
"""

import hashlib
import re

from langcodes import Language
from langcodes.tag_parser import LanguageTagError

# 语言子标签应该由 2-3 个字母组成 (BCP 47)
LANGUAGE_SUBTAG_PATTERN = re.compile(r"^[a-zA-Z]{2,3}$")

HASH_PREFIX = "sha256:"


def compute_hash(text: str) -> str:
    """计算文本的内容指纹，格式为 ``sha256:<hex>``。"""
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"{HASH_PREFIX}{digest}"


def compute_cache_key(
    content_hash: str, source_lang: str, target_lang: str, version: str
) -> str:
    """
    根据内容指纹、语言对与流水线版本生成确定性的缓存键。
    任一输入发生变化，缓存键都会随之改变。
    """
    return compute_hash(f"{content_hash}:{source_lang}:{target_lang}:{version}")


def validate_lang_codes(lang_codes: list[str]) -> None:
    """使用 `langcodes` 库校验语言代码列表中的每个代码是否符合 BCP 47 规范。"""
    for code in lang_codes:
        try:
            lang = Language.get(code)
            if not lang.language or not LANGUAGE_SUBTAG_PATTERN.match(lang.language):
                raise LanguageTagError(
                    f"Tag '{code}' lacks a valid 2-3 letter language subtag."
                )
        except LanguageTagError as e:
            raise ValueError(f"提供的语言代码 '{code}' 格式无效。原因: {e}") from e


def filter_long_lines(content: str, max_length: int) -> str:
    """移除长度超过 ``max_length`` 的行（通常是内联的大块数据，不值得翻译）。"""
    return "\n".join(
        line for line in content.split("\n") if len(line) <= max_length
    )
