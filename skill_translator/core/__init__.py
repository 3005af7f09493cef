# skill_translator/core/__init__.py
"""核心类型与异常。"""
