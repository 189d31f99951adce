#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""链接激活用例：启动仓库浏览器与失败提示"""

import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.enhanced_error_handler import EnhancedErrorHandler, ErrorCategory
from core.link_activation import LAUNCH_FAILED_TITLE, LinkActivationHandler
from core.link_tag import LinkTagType, TreeishRef
from utils.config_manager import ConfigManager


def _tag(repo="/home/u/repo", rev="abc123"):
    return LinkTagType().new_instance(TreeishRef(repo, rev))


def test_launches_browser_in_repository(fake_popen):
    calls = fake_popen()
    handler = LinkActivationHandler()
    assert handler.activate(_tag()) is True
    assert calls[0].args == ["gitg", "--select", "abc123"]
    assert calls[0].kwargs["cwd"] == "/home/u/repo"
    assert calls[0].kwargs["stdin"] is subprocess.DEVNULL


def test_launch_failure_is_reported_once_and_still_handled(fake_popen):
    fake_popen(raise_error=FileNotFoundError(2, "No such file or directory", "gitg"))
    reports = []
    errors = EnhancedErrorHandler()
    handler = LinkActivationHandler(error_reporter=lambda title, msg: reports.append((title, msg)),
                                    error_handler=errors)

    assert handler.activate(_tag("/tmp/nonexistent", "HEAD")) is True
    assert len(reports) == 1
    title, message = reports[0]
    assert title == LAUNCH_FAILED_TITLE
    assert message.startswith("Error running gitg:")
    assert errors.get_error_stats().errors_by_category == {ErrorCategory.LAUNCH.value: 1}

    # 之后的点击照常处理
    assert handler.activate(_tag("/tmp/nonexistent", "HEAD")) is True
    assert len(reports) == 2


def test_reporter_failure_does_not_escape(fake_popen):
    fake_popen(raise_error=OSError("boom"))

    def broken_reporter(title, message):
        raise RuntimeError("no display")

    assert LinkActivationHandler(error_reporter=broken_reporter).activate(_tag()) is True


def test_strict_error_strategy_still_does_not_raise(fake_popen, tmp_path):
    fake_popen(raise_error=OSError("boom"))
    manager = ConfigManager(config_dir=tmp_path, overrides={"error_handling": {"strategy": "strict"}})
    handler = LinkActivationHandler(error_handler=EnhancedErrorHandler(config_manager=manager))
    assert handler.activate(_tag()) is True


def test_from_config(tmp_path):
    manager = ConfigManager(config_dir=tmp_path, overrides={"browser": {"executable": "tig", "select_flag": "show"}})
    assert LinkActivationHandler.from_config(manager).build_command("v1") == ["tig", "show", "v1"]


def test_exited_browsers_are_reaped_on_next_launch(fake_popen):
    calls = fake_popen()
    handler = LinkActivationHandler()
    handler.activate(_tag(rev="abc123"))
    assert handler.running == 1
    handler.activate(_tag(rev="def456"))
    assert handler.running == 1
    assert handler.reap() == 0
    assert len(calls) == 2


def test_running_browsers_are_kept(fake_popen):
    calls = fake_popen(hang=True)
    handler = LinkActivationHandler()
    handler.activate(_tag(rev="abc123"))
    handler.activate(_tag(rev="def456"))
    assert handler.reap() == 2
    calls[0].kill()
    assert handler.reap() == 1


def test_failed_launch_is_not_tracked(fake_popen):
    fake_popen(raise_error=FileNotFoundError(2, "No such file or directory", "gitg"))
    handler = LinkActivationHandler()
    handler.activate(_tag())
    assert handler.running == 0
