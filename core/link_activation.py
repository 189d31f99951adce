#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
链接激活处理
点击 Git 链接时以仓库路径为工作目录启动仓库浏览器（默认 gitg --select <treeish>）。
不等待、不捕获输出；启动失败时给出一次非致命提示，不重试、不换用其他浏览器。
"""

import logging
import subprocess
from typing import Any, Callable, List, Optional

from .enhanced_error_handler import ErrorCategory, ErrorSeverity
from .errors import LaunchError
from .link_tag import LinkTagInstance

LAUNCH_FAILED_TITLE = "Cannot open Git repository browser"

ErrorReporter = Callable[[str, str], None]


class LinkActivationHandler:
    def __init__(self, browser_executable: str = "gitg", select_flag: str = "--select",
                 error_reporter: Optional[ErrorReporter] = None, error_handler: Any = None,
                 logger: Optional[logging.Logger] = None):
        self.browser_executable = browser_executable
        self.select_flag = select_flag
        self.error_reporter = error_reporter
        self.error_handler = error_handler
        self.logger = logger or logging.getLogger(__name__)
        # 已启动的浏览器进程；每次启动前回收已退出的，避免僵尸进程
        self._children: List[subprocess.Popen] = []

    @classmethod
    def from_config(cls, config_manager: Any, **kwargs) -> "LinkActivationHandler":
        return cls(
            browser_executable=config_manager.get_config("executable", "gitg", "browser"),
            select_flag=config_manager.get_config("select_flag", "--select", "browser"),
            **kwargs,
        )

    def build_command(self, revision_id: str) -> List[str]:
        return [self.browser_executable, self.select_flag, revision_id]

    def activate(self, tag: LinkTagInstance) -> bool:
        """启动仓库浏览器；无论成功与否都返回 True（点击已处理）"""
        self.logger.info(f"Trying to open '{tag.revision_id}' in '{tag.repository_path}'")
        self.reap()
        try:
            child = subprocess.Popen(
                self.build_command(tag.revision_id),
                cwd=tag.repository_path,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            self._report_launch_failure(tag, e)
        else:
            self._children.append(child)
        return True

    @property
    def running(self) -> int:
        return len(self._children)

    def reap(self) -> int:
        """回收已退出的浏览器进程，返回仍在运行的数量"""
        self._children = [child for child in self._children if child.poll() is None]
        return len(self._children)

    def _report_launch_failure(self, tag: LinkTagInstance, cause: Exception) -> None:
        message = f"Error running {self.browser_executable}: {cause}"
        self.logger.error(message)
        if self.error_handler is not None:
            self.error_handler.handle_error(
                LaunchError(message, cause=repr(cause)),
                context={"repo_path": tag.repository_path, "treeish": tag.revision_id},
                category=ErrorCategory.LAUNCH,
                severity=ErrorSeverity.MEDIUM,
                propagate=False,
            )
        if self.error_reporter is not None:
            try:
                self.error_reporter(LAUNCH_FAILED_TITLE, message)
            except Exception as e:
                self.logger.warning(f"错误提示显示失败: {e}")
