#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
标签注册表
进程级、幂等的标签类型注册，以及标签实例工厂
"""

import logging
import threading
from typing import Dict, Optional

from .errors import UnregisteredTypeError
from .link_tag import LinkTagInstance, LinkTagType, TreeishRef


class TagRegistry:
    """按名称登记 LinkTagType；重复注册同名类型是静默的空操作"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._types: Dict[str, LinkTagType] = {}
        self._lock = threading.Lock()

    def register(self, name: str, tag_type: LinkTagType) -> bool:
        """注册类型；返回 True 表示本次真正写入，False 表示已存在"""
        with self._lock:
            if name in self._types:
                self.logger.debug(f"标签类型已注册，忽略重复注册: {name}")
                return False
            self._types[name] = tag_type
        self.logger.info(f"标签类型已注册: {name}")
        return True

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._types

    def get(self, name: str) -> LinkTagType:
        with self._lock:
            tag_type = self._types.get(name)
        if tag_type is None:
            raise UnregisteredTypeError(f"tag type not registered: {name}", name=name)
        return tag_type

    def create(self, name: str, repository_path: str, revision_id: str) -> LinkTagInstance:
        """创建新的标签实例；属性在构造时校验，此后只读"""
        tag_type = self.get(name)
        return tag_type.new_instance(TreeishRef(repository_path, revision_id))

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._types.pop(name, None) is not None

    def names(self):
        with self._lock:
            return sorted(self._types)


_default_registry: Optional[TagRegistry] = None
_default_lock = threading.Lock()


def get_tag_registry() -> TagRegistry:
    """进程级默认注册表"""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = TagRegistry()
        return _default_registry
