#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
统一异常定义
Git 链接插件内部使用的异常类型与错误码
"""

from enum import Enum


class ErrorCode(Enum):
    OK = "OK"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"
    RESOLUTION_TIMEOUT = "RESOLUTION_TIMEOUT"
    RESOLUTION_CANCELLED = "RESOLUTION_CANCELLED"
    LAUNCH_FAILED = "LAUNCH_FAILED"
    UNREGISTERED_TYPE = "UNREGISTERED_TYPE"
    INVALID_REF = "INVALID_REF"


class GitLinkError(Exception):
    """插件异常基类"""

    code = ErrorCode.OK

    def __init__(self, message: str = "", **details):
        super().__init__(message)
        self.message = message
        self.details = details


class MalformedPayloadError(GitLinkError):
    """拖放数据不足两行（无仓库路径或无 treeish）"""

    code = ErrorCode.MALFORMED_PAYLOAD


class ResolutionError(GitLinkError):
    """git log 查询失败；只在解析器内部使用，不会越过 resolve() 边界"""

    code = ErrorCode.RESOLUTION_FAILED


class LaunchError(GitLinkError):
    """仓库浏览器进程无法启动"""

    code = ErrorCode.LAUNCH_FAILED


class UnregisteredTypeError(GitLinkError, LookupError):
    """创建未注册的标签类型：属于编程错误，不做运行期恢复"""

    code = ErrorCode.UNREGISTERED_TYPE


class InvalidTreeishRefError(GitLinkError, ValueError):
    code = ErrorCode.INVALID_REF
