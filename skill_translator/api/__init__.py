# skill_translator/api/__init__.py
"""HTTP 边界层 (FastAPI)。"""

from skill_translator.api.app import create_app

__all__ = ["create_app"]
