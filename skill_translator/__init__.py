# skill_translator/__init__.py
"""skill-translator: 带持久化缓存的 SKILL.md 文档翻译服务。

文档中的代码块与 frontmatter（description 字段除外）在翻译时受到保护，
对外部翻译服务的调用受并发上限、总超时与线性退避重试约束。
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
