#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
拖拽协议协商 v1.0.0

每个拖拽会话一个小状态机：
    IDLE --drag_over(含自定义类型)--> ARMED
    IDLE --drag_over(不含)--> IDLE（不标记已处理，交给其他处理器）
    ARMED --drop--> IDLE（无论数据是否合法都标记已处理）
    任意 --cancel--> IDLE

协商必须发生在 drop 之前，拖拽源才能显示正确的光标（link 而非 copy/move）。

作者: LAD Team
创建时间: 2026-10-13
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Sequence


class DragState(Enum):
    IDLE = "IDLE"
    EVALUATING = "EVALUATING"
    ARMED = "ARMED"


class DropAction(Enum):
    IGNORE = "IGNORE"
    LINK = "LINK"


@dataclass(frozen=True)
class DragDecision:
    handled: bool
    action: DropAction = DropAction.IGNORE
    requested_type: Optional[str] = None


DECLINED = DragDecision(handled=False)


class DragProtocolNegotiator:
    def __init__(self, mime_type: str = "git/treeish-list", aliases: Sequence[str] = (),
                 logger: Optional[logging.Logger] = None):
        self.mime_type = mime_type
        # 主类型优先，其次按配置顺序匹配别名
        self.accepted_types = tuple(dict.fromkeys([mime_type, *aliases]))
        self.logger = logger or logging.getLogger(__name__)
        self._state = DragState.IDLE
        self._requested_type: Optional[str] = None

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def requested_type(self) -> Optional[str]:
        return self._requested_type

    def drag_over(self, offered_types: Iterable[str]) -> DragDecision:
        """drag-enter / drag-move：检查拖拽源提供的类型"""
        self._state = DragState.EVALUATING
        offered = set(offered_types or ())
        matched = next((t for t in self.accepted_types if t in offered), None)
        if matched is None:
            if self._requested_type is not None:
                self.logger.debug("拖拽类型不再匹配，退回 IDLE")
            self._reset()
            return DECLINED

        if self._requested_type != matched:
            self.logger.debug(f"拖拽已接管: type={matched}")
        self._state = DragState.ARMED
        self._requested_type = matched
        return DragDecision(handled=True, action=DropAction.LINK, requested_type=matched)

    def drop(self, fetch_payload: Callable[[str], Any], process: Callable[[Any], Any]) -> bool:
        """
        drop：仅在 ARMED 时取数据并处理

        Args:
            fetch_payload: 按类型名取回拖拽数据（Qt 中为 QMimeData.data）
            process: 处理取回的数据（解析 + 插入）

        Returns:
            是否已处理；ARMED 状态下恒为 True
        """
        if self._state != DragState.ARMED:
            self._reset()
            return False
        requested = self._requested_type
        try:
            process(fetch_payload(requested))
        finally:
            self._reset()
        return True

    def cancel(self) -> None:
        """drag-leave 或拖拽被取消"""
        if self._state != DragState.IDLE:
            self.logger.debug("拖拽会话取消")
        self._reset()

    def _reset(self) -> None:
        self._state = DragState.IDLE
        self._requested_type = None
