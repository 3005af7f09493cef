# skill_translator/workers/__init__.py
"""后台维护任务。"""

from skill_translator.workers.janitor import CacheJanitor, HitFlusher, compute_next_run

__all__ = ["CacheJanitor", "HitFlusher", "compute_next_run"]
