# skill_translator/cli/__init__.py
"""skill-translator 命令行工具。"""

from skill_translator.cli.main import app

__all__ = ["app"]
