#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
配置管理器 v1.0.0
负责加载 Git 链接插件的 JSON 配置，并提供带默认值的分段读取接口

配置来源（优先级从高到低）：
- 配置目录下的 <section>.json（目录由 GTL_CONFIG_DIR 指定，默认为项目根目录下 config/）
- 内置默认值 DEFAULT_CONFIG

作者: LAD Team
创建时间: 2026-10-12
最后更新: 2026-10-19
"""

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "git": {
        "executable": "git",
        "resolve_timeout_seconds": 5.0,
    },
    "browser": {
        "executable": "gitg",
        "select_flag": "--select",
    },
    "drag": {
        "mime_type": "git/treeish-list",
        "mime_aliases": ["application/x-git-treeish-list"],
    },
    "resolution": {
        "async_enabled": True,
        "max_workers": 4,
    },
    "link": {
        "tag_name": "link:git",
        "foreground": "blue",
        "icon": "git",
        "icon_size": 16,
    },
    "logging": {
        "level": "INFO",
        "format": "structured",
        "dir": None,
        "file_enabled": True,
        "max_file_size": 5 * 1024 * 1024,
        "backup_count": 3,
    },
    "error_handling": {
        "strategy": "graceful",
        "max_history": 200,
    },
    "build": {
        "version": None,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    配置管理器类
    按分段（section）管理配置，每个分段对应配置目录下的一个 JSON 文件
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None,
                 overrides: Optional[Dict[str, Dict[str, Any]]] = None):
        """
        初始化配置管理器

        Args:
            config_dir: 配置目录，None 时读取环境变量 GTL_CONFIG_DIR，再退回到 <项目>/config
            overrides: 运行期覆盖值（测试或嵌入宿主时使用），优先级最高
        """
        self.logger = logging.getLogger(__name__)
        if config_dir is None:
            env_dir = os.environ.get("GTL_CONFIG_DIR")
            config_dir = Path(env_dir) if env_dir else PROJECT_ROOT / "config"
        self.config_dir = Path(config_dir)
        self._overrides = overrides or {}
        self._lock = threading.RLock()
        self._sections: Dict[str, Dict[str, Any]] = {}
        self.reload()

    def reload(self) -> None:
        """重新加载全部分段（默认值 → 文件 → 覆盖值）"""
        with self._lock:
            sections: Dict[str, Dict[str, Any]] = {}
            names = set(DEFAULT_CONFIG) | set(self._overrides)
            if self.config_dir.is_dir():
                names |= {p.stem for p in self.config_dir.glob("*.json")}
            for name in sorted(names):
                section = copy.deepcopy(DEFAULT_CONFIG.get(name, {}))
                section = _deep_merge(section, self._load_section_file(name))
                section = _deep_merge(section, self._overrides.get(name, {}))
                sections[name] = section
            self._sections = sections

    def _load_section_file(self, name: str) -> Dict[str, Any]:
        path = self.config_dir / f"{name}.json"
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.logger.warning(f"配置文件读取失败，使用默认值: {path}: {e}")
            return {}
        if not isinstance(data, dict):
            self.logger.warning(f"配置文件顶层不是对象，已忽略: {path}")
            return {}
        return data

    def get_config(self, key: str, default: Any = None, section: str = "app") -> Any:
        """
        读取分段内的配置项，key 支持点号路径（如 "windows.width"）

        Args:
            key: 配置键
            default: 缺省值
            section: 分段名
        """
        with self._lock:
            node: Any = self._sections.get(section, {})
            for part in key.split("."):
                if not isinstance(node, dict) or part not in node:
                    return default
                node = node[part]
            return default if node is None else node

    def get_unified_config(self, dotted_key: str, default: Any = None) -> Any:
        """统一点号访问：首段为分段名，例如 "git.executable"；只给分段名时返回整个分段副本"""
        section, _, rest = dotted_key.partition(".")
        if not rest:
            with self._lock:
                if section not in self._sections:
                    return default
                return copy.deepcopy(self._sections[section])
        return self.get_config(rest, default, section)

    def set_config(self, key: str, value: Any, section: str = "app") -> None:
        """运行期设置（不落盘）"""
        with self._lock:
            node = self._sections.setdefault(section, {})
            parts = key.split(".")
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = value

    def save_section(self, section: str) -> Path:
        """将分段写回配置目录"""
        with self._lock:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            path = self.config_dir / f"{section}.json"
            path.write_text(
                json.dumps(self._sections.get(section, {}), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        self.logger.info(f"配置已保存: {path}")
        return path


_config_manager: Optional[ConfigManager] = None
_config_lock = threading.Lock()


def get_config_manager() -> ConfigManager:
    """获取进程级配置管理器（首次访问时创建）"""
    global _config_manager
    with _config_lock:
        if _config_manager is None:
            _config_manager = ConfigManager()
        return _config_manager


def set_config_manager(manager: Optional[ConfigManager]) -> None:
    """替换进程级配置管理器（测试用，传 None 复位）"""
    global _config_manager
    with _config_lock:
        _config_manager = manager
