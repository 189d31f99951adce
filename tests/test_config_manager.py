#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""配置管理器用例"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from utils.config_manager import ConfigManager, get_config_manager, set_config_manager


def test_defaults(tmp_path):
    manager = ConfigManager(config_dir=tmp_path)
    assert manager.get_config("mime_type", None, "drag") == "git/treeish-list"
    assert manager.get_config("executable", None, "browser") == "gitg"
    assert manager.get_config("resolve_timeout_seconds", None, "git") == 5.0
    assert manager.get_config("missing", "fallback", "git") == "fallback"
    assert manager.get_config("version", "dev", "build") == "dev"


def test_section_file_overrides_defaults(tmp_path):
    (tmp_path / "browser.json").write_text(json.dumps({"executable": "gitk"}), encoding="utf-8")
    manager = ConfigManager(config_dir=tmp_path)
    assert manager.get_config("executable", None, "browser") == "gitk"
    assert manager.get_config("select_flag", None, "browser") == "--select"


def test_broken_file_falls_back_to_defaults(tmp_path):
    (tmp_path / "git.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "drag.json").write_text("[1, 2]", encoding="utf-8")
    manager = ConfigManager(config_dir=tmp_path)
    assert manager.get_config("executable", None, "git") == "git"
    assert manager.get_config("mime_type", None, "drag") == "git/treeish-list"


def test_overrides_win_over_files(tmp_path):
    (tmp_path / "resolution.json").write_text(json.dumps({"max_workers": 8}), encoding="utf-8")
    manager = ConfigManager(config_dir=tmp_path, overrides={"resolution": {"max_workers": 1}})
    assert manager.get_config("max_workers", None, "resolution") == 1


def test_unified_access_and_save(tmp_path):
    manager = ConfigManager(config_dir=tmp_path)
    assert manager.get_unified_config("link.tag_name") == "link:git"
    assert manager.get_unified_config("link")["foreground"] == "blue"
    assert manager.get_unified_config("nope.key", 3) == 3

    manager.set_config("executable", "/usr/local/bin/gitg", "browser")
    path = manager.save_section("browser")
    assert json.loads(path.read_text(encoding="utf-8"))["executable"] == "/usr/local/bin/gitg"
    assert ConfigManager(config_dir=tmp_path).get_config("executable", None, "browser") == "/usr/local/bin/gitg"


def test_env_config_dir(tmp_path, monkeypatch):
    (tmp_path / "git.json").write_text(json.dumps({"executable": "/opt/git"}), encoding="utf-8")
    monkeypatch.setenv("GTL_CONFIG_DIR", str(tmp_path))
    set_config_manager(None)
    try:
        assert get_config_manager().get_config("executable", None, "git") == "/opt/git"
    finally:
        set_config_manager(None)
