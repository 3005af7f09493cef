# skill_translator/content/__init__.py
"""文档结构化转换。"""

from skill_translator.content.parser import ContentTransformer

__all__ = ["ContentTransformer"]
