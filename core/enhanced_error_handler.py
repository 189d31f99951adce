#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
增强错误处理器 v2.0.0
为 Git 链接插件提供统一的错误分类、记录、统计和报告机制

错误处理策略（error_handling.strategy）：
- graceful：记录后返回 ErrorInfo，由调用方按既定降级路径继续
- strict：记录后重新抛出（调用方传 propagate=False 时除外）

作者: LAD Team
创建时间: 2025-08-16
最后更新: 2026-10-19
"""

import json
import logging
import sys
import threading
import time
import traceback
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import (
    InvalidTreeishRefError,
    LaunchError,
    MalformedPayloadError,
    ResolutionError,
    UnregisteredTypeError,
)


class ErrorSeverity(Enum):
    """错误严重程度枚举"""
    LOW = "low"           # 低严重程度
    MEDIUM = "medium"     # 中等严重程度
    HIGH = "high"         # 高严重程度
    CRITICAL = "critical" # 严重错误


class ErrorCategory(Enum):
    """错误分类枚举"""
    PAYLOAD = "payload"          # 拖放数据错误
    RESOLUTION = "resolution"    # 摘要解析错误
    LAUNCH = "launch"            # 仓库浏览器启动错误
    REGISTRY = "registry"        # 标签注册错误（编程错误）
    SYSTEM = "system"            # 系统错误
    UNKNOWN = "unknown"          # 未知错误


@dataclass
class ErrorContext:
    """错误上下文数据类"""
    timestamp: float
    module: str
    function: str
    line_number: int
    stack_trace: str
    user_context: Optional[Dict[str, Any]] = None
    system_context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        data = asdict(self)
        data['timestamp_iso'] = datetime.fromtimestamp(self.timestamp).isoformat()
        return data


@dataclass
class ErrorInfo:
    """错误信息数据类"""
    error_id: str
    error_type: str
    error_message: str
    severity: ErrorSeverity
    category: ErrorCategory
    context: ErrorContext

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        data = asdict(self)
        data['severity'] = self.severity.value
        data['category'] = self.category.value
        data['context'] = self.context.to_dict()
        return data


@dataclass
class ErrorStats:
    """错误统计信息数据类"""
    total_errors: int
    errors_by_severity: Dict[str, int]
    errors_by_category: Dict[str, int]
    errors_by_module: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return asdict(self)


def _empty_stats() -> ErrorStats:
    return ErrorStats(total_errors=0, errors_by_severity={}, errors_by_category={}, errors_by_module={})


class EnhancedErrorHandler:
    """增强错误处理器"""

    def __init__(self, error_log_dir: Optional[Union[str, Path]] = None,
                 max_error_history: int = 200,
                 config_manager: Optional[Any] = None):
        """
        初始化增强错误处理器

        Args:
            error_log_dir: 错误报告目录，None 时不落盘
            max_error_history: 最大错误历史记录数
            config_manager: 配置管理器实例
        """
        self.config_manager = config_manager
        self.error_log_dir = Path(error_log_dir) if error_log_dir else None
        self.logger = logging.getLogger(__name__)

        self.error_strategy = "graceful"
        self._load_error_strategy()
        if config_manager is not None:
            max_error_history = config_manager.get_config("max_history", max_error_history, "error_handling")
        self.max_error_history = max_error_history or 200
        self.error_history = deque(maxlen=self.max_error_history)

        self.error_stats = _empty_stats()

        # 线程安全：后台解析线程也会上报
        self._lock = threading.RLock()

    def _load_error_strategy(self):
        """加载错误处理策略配置"""
        if not self.config_manager:
            return
        try:
            strategy = self.config_manager.get_config("strategy", "graceful", "error_handling")
        except Exception as e:
            self.logger.warning(f"加载错误处理配置失败: {e}, 使用默认值")
            return
        if strategy not in ("graceful", "strict"):
            self.logger.warning(f"未知的错误处理策略: {strategy}, 使用 graceful")
            strategy = "graceful"
        self.error_strategy = strategy
        self.logger.debug(f"加载错误处理策略: {self.error_strategy}")

    def handle_error(self,
                     exception: Exception,
                     context: Optional[Union[ErrorContext, Dict[str, Any]]] = None,
                     category: Optional[ErrorCategory] = None,
                     severity: Optional[ErrorSeverity] = None,
                     propagate: bool = True) -> ErrorInfo:
        """
        处理异常并返回错误信息

        Args:
            exception: 要处理的异常
            context: 错误上下文信息，可以是ErrorContext对象或字典
            category: 显式分类；未指定时按异常类型推断
            severity: 显式严重程度；未指定时按分类推断
            propagate: strict 模式下是否重新抛出

        Returns:
            错误信息对象
        """
        if isinstance(context, ErrorContext):
            error_context = context
        else:
            error_context = self._create_error_context(context if isinstance(context, dict) else None)

        category = category or self._categorize_exception(exception)
        error_info = ErrorInfo(
            error_id=self._generate_error_id(),
            error_type=type(exception).__name__,
            error_message=str(exception),
            severity=severity or self._determine_severity(category),
            category=category,
            context=error_context,
        )

        with self._lock:
            self._record_error(error_info)
        self._log_error(error_info)

        if self.error_strategy == "strict" and propagate:
            raise exception
        return error_info

    def _create_error_context(self, context: Optional[Dict[str, Any]] = None) -> ErrorContext:
        """创建错误上下文（调用栈跳过 handle_error 本身）"""
        frame = sys._getframe(2)
        return ErrorContext(
            timestamp=time.time(),
            module=frame.f_globals.get('__name__', 'unknown'),
            function=frame.f_code.co_name,
            line_number=frame.f_lineno,
            stack_trace=traceback.format_exc(),
            user_context=context or None,
            system_context=self._get_system_context(),
        )

    def _get_system_context(self) -> Dict[str, Any]:
        """获取系统上下文"""
        try:
            import psutil
            return {
                'memory_usage': psutil.virtual_memory().percent,
                'cpu_usage': psutil.cpu_percent(),
                'python_version': sys.version,
                'platform': sys.platform
            }
        except Exception:
            return {'python_version': sys.version, 'platform': sys.platform}

    def _categorize_exception(self, exception: Exception) -> ErrorCategory:
        """对异常进行分类"""
        if isinstance(exception, (MalformedPayloadError, InvalidTreeishRefError, UnicodeDecodeError)):
            return ErrorCategory.PAYLOAD
        elif isinstance(exception, ResolutionError):
            return ErrorCategory.RESOLUTION
        elif isinstance(exception, LaunchError):
            return ErrorCategory.LAUNCH
        elif isinstance(exception, UnregisteredTypeError):
            return ErrorCategory.REGISTRY
        elif isinstance(exception, (MemoryError, SystemError, OSError)):
            return ErrorCategory.SYSTEM
        return ErrorCategory.UNKNOWN

    def _determine_severity(self, category: ErrorCategory) -> ErrorSeverity:
        """确定错误严重程度"""
        if category == ErrorCategory.SYSTEM:
            return ErrorSeverity.CRITICAL
        elif category == ErrorCategory.REGISTRY:
            return ErrorSeverity.HIGH
        elif category == ErrorCategory.LAUNCH:
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.LOW

    def _generate_error_id(self) -> str:
        """生成错误ID"""
        return f"ERR_{int(time.time() * 1000)}_{threading.get_ident()}"

    def _record_error(self, error_info: ErrorInfo):
        """记录错误并更新统计"""
        self.error_history.append(error_info)
        stats = self.error_stats
        stats.total_errors += 1
        for bucket, key in ((stats.errors_by_severity, error_info.severity.value),
                            (stats.errors_by_category, error_info.category.value),
                            (stats.errors_by_module, error_info.context.module)):
            bucket[key] = bucket.get(key, 0) + 1

    def _log_error(self, error_info: ErrorInfo):
        """记录错误日志"""
        log_message = f"错误 {error_info.error_id}: {error_info.error_type} - {error_info.error_message}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_message)
        elif error_info.severity == ErrorSeverity.HIGH:
            self.logger.error(log_message)
        elif error_info.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

    def get_error_stats(self) -> ErrorStats:
        """获取错误统计信息（副本）"""
        with self._lock:
            return ErrorStats(
                total_errors=self.error_stats.total_errors,
                errors_by_severity=self.error_stats.errors_by_severity.copy(),
                errors_by_category=self.error_stats.errors_by_category.copy(),
                errors_by_module=self.error_stats.errors_by_module.copy(),
            )

    def get_error_history(self, limit: int = 100,
                          severity: Optional[ErrorSeverity] = None,
                          category: Optional[ErrorCategory] = None) -> List[Dict[str, Any]]:
        """
        获取错误历史

        Args:
            limit: 返回数量限制
            severity: 严重程度过滤
            category: 分类过滤
        """
        with self._lock:
            filtered_errors = list(self.error_history)

        if severity:
            filtered_errors = [e for e in filtered_errors if e.severity == severity]
        if category:
            filtered_errors = [e for e in filtered_errors if e.category == category]

        return [error.to_dict() for error in filtered_errors[-limit:]]

    def clear_error_history(self):
        """清空错误历史"""
        with self._lock:
            self.error_history.clear()
            self.error_stats = _empty_stats()
        self.logger.info("错误历史已清空")

    def save_error_report(self, filename: Optional[str] = None) -> bool:
        """保存错误报告"""
        if not self.error_log_dir:
            return False

        try:
            self.error_log_dir.mkdir(parents=True, exist_ok=True)
            filepath = self.error_log_dir / (filename or f"error_report_{int(time.time())}.json")
            report_data = {
                'metadata': {
                    'version': '2.0.0',
                    'created_time': datetime.now().isoformat(),
                    'total_errors': self.error_stats.total_errors
                },
                'stats': self.get_error_stats().to_dict(),
                'recent_errors': self.get_error_history(50)
            }
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(report_data, f, indent=2, ensure_ascii=False, default=str)
            self.logger.info(f"错误报告已保存: {filepath}")
            return True
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(f"保存错误报告失败: {e}")
            return False
