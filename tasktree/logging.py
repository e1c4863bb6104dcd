"""
日志模块

task-tree 的日志全部走名为 ``tasktree`` 的 logger：
- 存储变更记 debug，被拒绝的变更记 info，不变量被破坏记 error
- 任务日志携带 task_id / operation 字段
- 控制台输出可选彩色文本或 JSON 行
"""

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, TextIO

from rich.console import Console

LOGGER_NAME = "tasktree"


class LogLevel(Enum):
    """日志级别"""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    def to_logging_level(self) -> int:
        """转换为 logging 模块的级别"""
        return getattr(logging, self.name)


@dataclass
class LoggingConfig:
    """日志配置"""
    level: LogLevel = LogLevel.INFO
    console_enabled: bool = True
    json_format: bool = False


class JSONFormatter(logging.Formatter):
    """每条记录输出一行 JSON"""

    EXTRA_FIELDS = ("task_id", "operation")

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (name, getattr(record, name))
            for name in self.EXTRA_FIELDS
            if hasattr(record, name)
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """按级别给 levelname 上色"""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: Optional[str] = None, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if not self.use_colors:
            return text
        color = self.COLORS.get(record.levelno, self.RESET)
        return text.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)


class TaskTreeLogger:
    """task-tree 日志管理器（单例）"""

    CONSOLE_FORMAT = "%(asctime)s %(levelname)s [%(module)s] %(message)s"

    _instance: Optional["TaskTreeLogger"] = None

    def __new__(cls) -> "TaskTreeLogger":
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._logger = logging.getLogger(LOGGER_NAME)
            instance._config = None
            cls._instance = instance
        return cls._instance

    def configure(self, config: Optional[LoggingConfig] = None, stream: Optional[TextIO] = None) -> None:
        """
        重新配置处理器。

        Args:
            config: 日志配置，None 时使用默认配置
            stream: 控制台输出流，默认 sys.stderr
        """
        self._config = config or LoggingConfig()
        level = self._config.level.to_logging_level()

        self._logger.handlers.clear()
        self._logger.setLevel(level)

        if self._config.console_enabled:
            stream = stream or sys.stderr
            handler = logging.StreamHandler(stream)
            handler.setLevel(level)
            if self._config.json_format:
                handler.setFormatter(JSONFormatter())
            else:
                use_colors = hasattr(stream, "isatty") and stream.isatty()
                handler.setFormatter(ColoredFormatter(self.CONSOLE_FORMAT, use_colors=use_colors))
            self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        if self._config is None:
            self.configure()
        return self._logger

    def debug(self, message: str, **extra) -> None:
        self.logger.debug(message, extra=extra)

    def info(self, message: str, **extra) -> None:
        self.logger.info(message, extra=extra)

    def warning(self, message: str, **extra) -> None:
        self.logger.warning(message, extra=extra)

    def error(self, message: str, **extra) -> None:
        self.logger.error(message, extra=extra)

    def task_log(
        self,
        message: str,
        task_id: int,
        operation: Optional[str] = None,
        level: LogLevel = LogLevel.DEBUG,
    ) -> None:
        """
        记录与单个任务相关的日志。

        Args:
            message: 日志消息
            task_id: 任务 ID
            operation: 触发日志的存储操作
            level: 日志级别
        """
        extra: Dict[str, Any] = {"task_id": task_id}
        if operation:
            extra["operation"] = operation
        self.logger.log(level.to_logging_level(), message, extra=extra)


_console: Optional[Console] = None


def get_console() -> Console:
    """获取共享的 rich 控制台"""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_logger() -> TaskTreeLogger:
    return TaskTreeLogger()


def configure_logging(
    level: str = "info",
    console: bool = True,
    json_format: bool = False,
    stream: Optional[TextIO] = None,
) -> TaskTreeLogger:
    """
    按级别名配置日志。

    Args:
        level: debug / info / warning / error
        console: 是否输出到控制台
        json_format: 控制台是否输出 JSON 行
        stream: 控制台输出流，默认 sys.stderr

    Raises:
        ValueError: 未知的级别名
    """
    logger = get_logger()
    logger.configure(
        LoggingConfig(level=LogLevel(level.lower()), console_enabled=console, json_format=json_format),
        stream=stream,
    )
    return logger
