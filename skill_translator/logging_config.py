# skill_translator/logging_config.py
"""
本模块负责集中配置项目的日志系统。

- console：借助 Rich 渲染的单行日志，带级别颜色、记录器名称与排序后的上下文键值对。
- json：每条日志一行 JSON，时间戳为 ISO-8601 (UTC)，便于日志采集。
"""

import logging
from collections.abc import MutableMapping
from typing import Any, Literal

import structlog
from rich.console import Console
from rich.text import Text
from structlog.typing import Processor

APP_LOGGER_NAME = "skill_translator"


class RichLineRenderer:
    """把 structlog 的事件字典渲染为一行带样式的文本。"""

    _LEVEL_STYLES = {
        "debug": ("blue", "DEBUG"),
        "info": ("green", "INFO"),
        "warning": ("yellow", "WARN"),
        "error": ("bold red", "ERROR"),
        "critical": ("bold magenta", "CRIT"),
    }

    def __init__(self, kv_truncate_at: int = 120, show_logger_name: bool = True):
        self._console = Console(soft_wrap=True)
        self._kv_truncate_at = kv_truncate_at
        self._show_logger_name = show_logger_name

    def __call__(
        self, logger: Any, name: str, event_dict: MutableMapping[str, Any]
    ) -> str:
        event = str(event_dict.pop("event", "")).strip()
        timestamp = event_dict.pop("timestamp", "")
        level = str(event_dict.pop("level", "info")).lower()
        logger_name = event_dict.pop("logger", "")
        exception = event_dict.pop("exception", None)
        style, label = self._LEVEL_STYLES.get(level, ("default", level.upper()))

        line = Text()
        if timestamp:
            line.append(f"{timestamp} ", style="dim")
        line.append(f"{label:<5}", style=style)
        if self._show_logger_name and logger_name:
            line.append(f" [{logger_name}]", style="cyan dim")
        line.append(f" {event}")
        for key, value in sorted(event_dict.items()):
            rendered = value if isinstance(value, str) else repr(value)
            if len(rendered) > self._kv_truncate_at:
                rendered = rendered[: self._kv_truncate_at] + "…"
            line.append(f" {key}=", style="dim")
            line.append(rendered, style="bright_white")

        with self._console.capture() as capture:
            self._console.print(line)
        output = capture.get().rstrip()
        if exception:
            output = f"{output}\n{exception}"
        return output


def setup_logging(
    log_level: str = "INFO",
    log_format: Literal["json", "console"] = "console",
) -> None:
    """
    配置全局的 structlog 日志系统。这是整个应用的日志配置入口。

    Args:
        log_level: 本项目记录器的最低日志级别。第三方库固定为 WARNING。
        log_format: 'console' 用于开发环境的可读输出，'json' 用于生产环境。
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.insert(3, structlog.processors.TimeStamper(fmt="iso", utc=True))
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.insert(
            3, structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False)
        )
        processors.append(RichLineRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # structlog 已输出完整的字符串，标准库 handler 只负责原样写出。
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger(APP_LOGGER_NAME).setLevel(log_level.upper())

    structlog.get_logger(__name__).debug(
        "日志系统已配置完成。", log_format=log_format, app_log_level=log_level.upper()
    )
