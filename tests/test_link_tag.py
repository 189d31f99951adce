#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""链接标签数据模型用例"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import InvalidTreeishRefError
from core.link_tag import ATTR_REPO_PATH, ATTR_TREEISH, LinkTagType, TextRange, TreeishRef


def test_attributes_read_back_exactly():
    ref = TreeishRef("/home/u/repo", "abc123")
    tag = LinkTagType().new_instance(ref)
    assert tag.repository_path == "/home/u/repo"
    assert tag.revision_id == "abc123"
    assert tag.attributes() == {ATTR_REPO_PATH: "/home/u/repo", ATTR_TREEISH: "abc123"}
    assert TreeishRef.from_attributes(tag.attributes()) == ref


@pytest.mark.parametrize("repo, rev", [("", "abc"), ("/r", ""), ("/r", "a b"), ("/r\n/s", "abc"), (None, "abc")])
def test_invalid_refs_are_rejected(repo, rev):
    with pytest.raises(InvalidTreeishRefError):
        TreeishRef(repo, rev)


def test_instances_are_distinct_and_attach_once():
    tag_type = LinkTagType()
    ref = TreeishRef("/r", "abc")
    first, second = tag_type.new_instance(ref), tag_type.new_instance(ref)
    assert first is not second
    assert first != second

    first.attach(3, 9)
    assert first.applied_range == TextRange(3, 9)
    with pytest.raises(RuntimeError):
        first.attach(10, 12)


def test_empty_range_rejected():
    with pytest.raises(ValueError):
        TextRange(5, 5)
    assert TextRange(0, 3).overlaps(TextRange(2, 4))
    assert not TextRange(0, 3).overlaps(TextRange(3, 4))


def test_href_round_trip_with_spaces_and_special_chars():
    tag_type = LinkTagType()
    ref = TreeishRef("/home/u/my repo?&", "feature/x~1")
    href = tag_type.to_href(ref)
    assert href.startswith("git-treeish:")
    assert tag_type.parse_href(href) == ref


@pytest.mark.parametrize("href", ["", "https://example.com", "git-treeish:abc", "git-treeish:?repo-path=%2Fr"])
def test_foreign_or_incomplete_hrefs(href):
    assert LinkTagType().parse_href(href) is None
