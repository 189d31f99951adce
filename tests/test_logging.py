#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""统一日志框架用例"""

import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.unified_logging_framework import APP_NAME, LogFormat, StructuredFormatter, get_logger, is_test_mode


def _record(**extra):
    record = logging.LogRecord("git_treeish_links.test", logging.INFO, __file__, 10, "link_inserted", (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_format_carries_extra_fields():
    line = StructuredFormatter(LogFormat.JSON).format(_record(treeish="abc123", repo_path="/r"))
    data = json.loads(line)
    assert data["message"] == "link_inserted"
    assert data["extra"] == {"treeish": "abc123", "repo_path": "/r"}


def test_structured_and_simple_formats():
    structured = StructuredFormatter(LogFormat.STRUCTURED).format(_record(treeish="abc123"))
    assert "link_inserted" in structured and '"treeish": "abc123"' in structured
    assert "treeish" not in StructuredFormatter(LogFormat.SIMPLE).format(_record(treeish="abc123"))


def test_adapter_merges_fixed_and_call_site_fields(caplog):
    logger = get_logger("git_treeish_links.tests.sample")
    with caplog.at_level(logging.INFO, logger="git_treeish_links.tests.sample"):
        logger.info("treeish_unresolved", extra={"treeish": "HEAD"})
    record = caplog.records[-1]
    assert record.app == APP_NAME
    assert record.module_name == "sample"
    assert record.treeish == "HEAD"
    assert record.build_version


def test_test_mode_detected():
    assert is_test_mode()
