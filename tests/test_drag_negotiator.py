#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""拖拽协议协商状态机用例"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.drag_negotiator import DragProtocolNegotiator, DragState, DropAction


def test_matching_drag_is_armed_with_link_action():
    n = DragProtocolNegotiator()
    decision = n.drag_over(["text/plain", "git/treeish-list"])
    assert decision.handled is True
    assert decision.action is DropAction.LINK
    assert decision.requested_type == "git/treeish-list"
    assert n.state is DragState.ARMED


def test_other_drags_are_not_handled():
    n = DragProtocolNegotiator()
    decision = n.drag_over(["text/plain", "text/uri-list"])
    assert decision.handled is False
    assert n.state is DragState.IDLE


def test_alias_is_accepted_but_primary_type_wins():
    n = DragProtocolNegotiator(aliases=["application/x-git-treeish-list"])
    assert n.drag_over(["application/x-git-treeish-list"]).requested_type == "application/x-git-treeish-list"
    both = ["application/x-git-treeish-list", "git/treeish-list"]
    assert n.drag_over(both).requested_type == "git/treeish-list"


def test_drop_fetches_requested_type_and_always_reports_handled():
    n = DragProtocolNegotiator()
    n.drag_over(["git/treeish-list"])
    fetched, processed = [], []
    handled = n.drop(lambda t: fetched.append(t) or b"garbage", processed.append)
    assert handled is True
    assert fetched == ["git/treeish-list"]
    assert processed == [b"garbage"]
    assert n.state is DragState.IDLE


def test_drop_without_negotiation_is_declined():
    n = DragProtocolNegotiator()
    called = []
    assert n.drop(called.append, called.append) is False
    assert called == []


def test_cancel_and_leave_reset_session():
    n = DragProtocolNegotiator()
    n.drag_over(["git/treeish-list"])
    n.cancel()
    assert n.state is DragState.IDLE
    assert n.drop(lambda t: b"", lambda raw: None) is False


def test_state_resets_even_when_processing_fails():
    n = DragProtocolNegotiator()
    n.drag_over(["git/treeish-list"])

    def boom(raw):
        raise RuntimeError("insert failed")

    with pytest.raises(RuntimeError):
        n.drop(lambda t: b"", boom)
    assert n.state is DragState.IDLE
