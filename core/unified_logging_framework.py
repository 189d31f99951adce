#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
统一日志框架 v2.0.0
为 Git 链接插件提供统一的日志格式化、输出管理与固定上下文字段

- StructuredFormatter：simple / detailed / structured / json 四种格式
- setup_logging()：按配置安装控制台与滚动文件处理器（幂等）
- get_logger()：返回带固定字段（app / module_name / build_version）的 LoggerAdapter

作者: LAD Team
创建时间: 2025-08-17
最后更新: 2026-10-19
"""

import json
import logging
import logging.handlers
import os
import sys
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

APP_NAME = "git_treeish_links"
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# LogRecord 自带属性，不当作 extra 输出
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def is_test_mode() -> bool:
    return (
        os.environ.get("GTL_TEST_MODE") == "1"
        or "PYTEST_CURRENT_TEST" in os.environ
        or "PYTEST_PROGRESS_LOG" in os.environ
    )


class LogFormat(Enum):
    """日志格式枚举"""
    SIMPLE = "simple"
    DETAILED = "detailed"
    JSON = "json"
    STRUCTURED = "structured"


class StructuredFormatter(logging.Formatter):
    """结构化日志格式化器"""

    def __init__(self, format_type: LogFormat = LogFormat.STRUCTURED):
        super().__init__()
        self.format_type = format_type

    def format(self, record: logging.LogRecord) -> str:
        """格式化日志记录"""
        if self.format_type == LogFormat.JSON:
            return self._format_json(record)
        elif self.format_type == LogFormat.STRUCTURED:
            return self._format_structured(record)
        elif self.format_type == LogFormat.DETAILED:
            return self._format_detailed(record)
        else:
            return self._format_simple(record)

    @staticmethod
    def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
        return {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS and not k.startswith("_")}

    def _format_json(self, record: logging.LogRecord) -> str:
        """JSON格式"""
        log_data = {
            'timestamp': record.created,
            'level': record.levelname,
            'logger': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
            'thread': record.thread,
        }
        extra = self._extra_fields(record)
        if extra:
            log_data['extra'] = extra
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)

    def _format_structured(self, record: logging.LogRecord) -> str:
        """结构化格式"""
        timestamp = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(record.created))
        level = f"[{record.levelname:8}]"
        module = f"[{record.module:15}]"
        function = f"[{record.funcName:20}]"
        line = f"[{record.lineno:4}]"

        structured = f"{timestamp} {level} {module} {function} {line} {record.getMessage()}"
        extra = self._extra_fields(record)
        if extra:
            structured += f" | {json.dumps(extra, ensure_ascii=False, default=str)}"
        if record.exc_info:
            structured += f"\n{self.formatException(record.exc_info)}"
        return structured

    def _format_detailed(self, record: logging.LogRecord) -> str:
        """详细格式"""
        timestamp = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(record.created))
        detailed = (f"[{timestamp}] [{record.levelname}] [{record.module}.{record.funcName}:{record.lineno}] "
                    f"[T:{record.thread}] [P:{record.process}] {record.getMessage()}")
        extra = self._extra_fields(record)
        if extra:
            detailed += f"\nExtra Data: {json.dumps(extra, indent=2, ensure_ascii=False, default=str)}"
        if record.exc_info:
            detailed += f"\nException:\n{self.formatException(record.exc_info)}"
        return detailed

    def _format_simple(self, record: logging.LogRecord) -> str:
        """简单格式"""
        timestamp = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(record.created))
        return f"[{timestamp}] [{record.levelname}] {record.getMessage()}"


_setup_lock = threading.Lock()
_installed_handlers: list = []
_cached_build_version: Optional[str] = None


def resolve_build_version(config_manager: Any = None) -> str:
    """构建版本：配置 build.version → 环境变量 GTL_BUILD_VERSION → "dev" """
    global _cached_build_version
    if _cached_build_version:
        return _cached_build_version
    version = None
    if config_manager is not None:
        try:
            version = config_manager.get_config("version", None, "build")
        except Exception:
            version = None
    version = version or os.environ.get("GTL_BUILD_VERSION") or "dev"
    _cached_build_version = str(version)
    return _cached_build_version


def setup_logging(config_manager: Any = None, force: bool = False) -> logging.Logger:
    """
    按配置安装日志处理器（重复调用不会叠加处理器）

    Args:
        config_manager: 配置管理器；None 时使用默认配置
        force: 先移除本框架此前安装的处理器再重装
    """
    def cfg(key: str, default: Any) -> Any:
        if config_manager is None:
            return default
        return config_manager.get_config(key, default, "logging")

    app_logger = logging.getLogger(APP_NAME)
    with _setup_lock:
        if _installed_handlers and not force:
            return app_logger
        root_logger = logging.getLogger()
        for handler in _installed_handlers:
            root_logger.removeHandler(handler)
            handler.close()
        _installed_handlers.clear()

        level_name = str(cfg("level", "INFO")).upper()
        root_logger.setLevel(getattr(logging, level_name, logging.INFO))
        try:
            log_format = LogFormat(cfg("format", LogFormat.STRUCTURED.value))
        except ValueError:
            log_format = LogFormat.STRUCTURED

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(StructuredFormatter(log_format))
        _installed_handlers.append(console)

        if cfg("file_enabled", True) and not is_test_mode():
            log_dir = Path(cfg("dir", None) or PROJECT_ROOT / "logs")
            try:
                log_dir.mkdir(parents=True, exist_ok=True)
                file_handler = logging.handlers.RotatingFileHandler(
                    log_dir / "git_treeish_links.log",
                    maxBytes=int(cfg("max_file_size", 5 * 1024 * 1024)),
                    backupCount=int(cfg("backup_count", 3)),
                    encoding="utf-8",
                )
                file_handler.setFormatter(StructuredFormatter(log_format))
                _installed_handlers.append(file_handler)
            except OSError as e:
                print(f"创建日志文件处理器失败: {e}", file=sys.stderr)

        for handler in _installed_handlers:
            root_logger.addHandler(handler)

    app_logger.info("统一日志框架初始化完成")
    return app_logger


class ContextLoggerAdapter(logging.LoggerAdapter):
    """固定字段与调用处 extra 合并（调用处优先）"""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str, config_manager: Any = None) -> logging.LoggerAdapter:
    """获取带固定字段的日志适配器"""
    module_name = name.rsplit(".", 1)[-1]
    return ContextLoggerAdapter(
        logging.getLogger(name),
        {"app": APP_NAME, "module_name": module_name, "build_version": resolve_build_version(config_manager)},
    )
