#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""标签注册表用例"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import UnregisteredTypeError
from core.link_tag import LinkTagStyle, LinkTagType
from core.tag_registry import TagRegistry, get_tag_registry


def test_double_registration_keeps_first_type():
    registry = TagRegistry()
    first = LinkTagType("link:git")
    assert registry.register("link:git", first) is True
    assert registry.register("link:git", LinkTagType("link:git", LinkTagStyle(foreground="red"))) is False
    assert registry.get("link:git") is first
    assert registry.names() == ["link:git"]


def test_create_unregistered_raises():
    with pytest.raises(UnregisteredTypeError):
        TagRegistry().create("link:git", "/r", "abc")


def test_create_returns_fresh_instances():
    registry = TagRegistry()
    registry.register("link:git", LinkTagType())
    a = registry.create("link:git", "/r", "abc")
    b = registry.create("link:git", "/r", "abc")
    assert a is not b
    assert a.applied_range is None
    assert a.tag_type is registry.get("link:git")


def test_unregister():
    registry = TagRegistry()
    registry.register("link:git", LinkTagType())
    assert registry.unregister("link:git") is True
    assert registry.unregister("link:git") is False
    assert not registry.is_registered("link:git")


def test_default_registry_is_process_wide():
    assert get_tag_registry() is get_tag_registry()
