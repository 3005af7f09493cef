# skill_translator/cache/__init__.py
"""持久化翻译缓存。"""

from skill_translator.cache.store import CacheStore, backup_database

__all__ = ["CacheStore", "backup_database"]
