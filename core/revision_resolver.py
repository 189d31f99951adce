#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
提交摘要解析器 v1.0.0
=====================================

【模块定位】
- 位置：core/revision_resolver.py
- 职责：对单个 treeish 执行 `git log --oneline <rev>^..<rev>`，得到一行可读摘要
- 特点：单次尝试、不重试；任何失败都转换为"未解析"结果，绝不向外抛异常

【失败类型】
- 进程无法启动（git 不存在、仓库目录不存在）
- 非零退出或异常退出
- 输出为空
- 超时（默认 5 秒，超时即杀进程）
- 调用方取消（cancel_event 被置位）

调用方在"未解析"时使用 treeish 本身作为显示文本。

作者: LAD Team
创建时间: 2026-10-13
最后更新: 2026-10-19
"""

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Any, List, Optional

from .errors import ErrorCode, ResolutionError

DEFAULT_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class ResolutionResult:
    revision_id: str
    summary: Optional[str] = None
    error_code: ErrorCode = ErrorCode.OK
    message: str = ""

    @property
    def resolved(self) -> bool:
        return self.summary is not None

    @property
    def display_text(self) -> str:
        return self.summary if self.summary is not None else self.revision_id


class RevisionSummaryResolver:
    def __init__(self, git_executable: str = "git", timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 poll_interval: float = 0.05, logger: Optional[logging.Logger] = None):
        self.git_executable = git_executable
        self.timeout = float(timeout)
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config_manager: Any, logger: Optional[logging.Logger] = None) -> "RevisionSummaryResolver":
        return cls(
            git_executable=config_manager.get_config("executable", "git", "git"),
            timeout=config_manager.get_config("resolve_timeout_seconds", DEFAULT_TIMEOUT_SECONDS, "git"),
            logger=logger,
        )

    def build_command(self, revision_id: str) -> List[str]:
        return [self.git_executable, "log", "--oneline", f"{revision_id}^..{revision_id}"]

    def resolve(self, repository_path: str, revision_id: str,
                cancel_event: Optional[threading.Event] = None) -> Optional[str]:
        """返回摘要；未解析时返回 None"""
        return self.resolve_detailed(repository_path, revision_id, cancel_event).summary

    def display_text(self, repository_path: str, revision_id: str) -> str:
        return self.resolve_detailed(repository_path, revision_id).display_text

    def resolve_detailed(self, repository_path: str, revision_id: str,
                         cancel_event: Optional[threading.Event] = None) -> ResolutionResult:
        try:
            result = self._run(repository_path, revision_id, cancel_event)
        except ResolutionError as e:
            result = ResolutionResult(revision_id, error_code=e.code, message=e.message)
        except Exception as e:  # 边界：任何异常都视为未解析
            self.logger.exception("revision_resolver_internal_error")
            result = ResolutionResult(revision_id, error_code=ErrorCode.RESOLUTION_FAILED, message=str(e))

        if result.resolved:
            self.logger.debug(f"treeish 已解析: {revision_id} -> {result.summary}")
        else:
            self.logger.info(
                "treeish_unresolved",
                extra={"treeish": revision_id, "repo_path": repository_path,
                       "error_code": result.error_code.name, "detail": result.message},
            )
        return result

    def _run(self, repository_path: str, revision_id: str,
             cancel_event: Optional[threading.Event]) -> ResolutionResult:
        if cancel_event is not None and cancel_event.is_set():
            return ResolutionResult(revision_id, error_code=ErrorCode.RESOLUTION_CANCELLED, message="cancelled")

        try:
            proc = subprocess.Popen(
                self.build_command(revision_id),
                cwd=repository_path,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise ResolutionError(f"cannot start git: {e}", repo_path=repository_path) from e

        deadline = time.monotonic() + self.timeout
        stdout = b""
        try:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    self._kill(proc)
                    return ResolutionResult(revision_id, error_code=ErrorCode.RESOLUTION_CANCELLED,
                                            message="cancelled")
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._kill(proc)
                    return ResolutionResult(revision_id, error_code=ErrorCode.RESOLUTION_TIMEOUT,
                                            message=f"git log timed out after {self.timeout}s")
                try:
                    stdout, _ = proc.communicate(timeout=min(self.poll_interval, remaining))
                    break
                except subprocess.TimeoutExpired:
                    continue
        finally:
            if proc.poll() is None:
                self._kill(proc)

        if proc.returncode != 0:
            return ResolutionResult(revision_id, error_code=ErrorCode.RESOLUTION_FAILED,
                                    message=f"git log exited with {proc.returncode}")

        text = (stdout or b"").decode("utf-8", errors="replace").strip()
        if not text:
            return ResolutionResult(revision_id, error_code=ErrorCode.RESOLUTION_FAILED, message="empty output")
        # 合并提交会列出多行，链接只取第一行（合并提交本身）
        return ResolutionResult(revision_id, summary=text.splitlines()[0].strip())

    def _kill(self, proc: subprocess.Popen) -> None:
        try:
            proc.kill()
            proc.communicate()
        except OSError as e:
            self.logger.warning(f"结束 git 进程失败: {e}")
