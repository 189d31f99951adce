#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
单次拖放的结果排序缓冲

后台解析可能乱序完成；缓冲区只按拖拽顺序放行连续前缀，保证插入顺序与拖拽顺序一致。
"""

import threading
from dataclasses import dataclass
from typing import Dict, List

from .drop_payload import DropPayload


@dataclass(frozen=True)
class ReadyItem:
    index: int
    revision_id: str
    display_text: str


class OrderedDropBatch:
    def __init__(self, batch_id: int, payload: DropPayload):
        self.batch_id = batch_id
        self.payload = payload
        self._pending: Dict[int, str] = {}
        self._next_index = 0
        self._cancel_event = threading.Event()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def released(self) -> int:
        return self._next_index

    @property
    def done(self) -> bool:
        return self._next_index >= len(self.payload.revision_ids)

    def cancel(self) -> None:
        self._cancel_event.set()
        self._pending.clear()

    def submit(self, index: int, display_text: str) -> List[ReadyItem]:
        """登记第 index 项的显示文本，返回此刻可以按序插入的全部条目"""
        if self.cancelled:
            return []
        if not 0 <= index < len(self.payload.revision_ids):
            raise IndexError(f"batch {self.batch_id}: index {index} out of range")
        if index < self._next_index or index in self._pending:
            raise ValueError(f"batch {self.batch_id}: index {index} submitted twice")
        self._pending[index] = display_text

        ready: List[ReadyItem] = []
        while self._next_index in self._pending:
            i = self._next_index
            ready.append(ReadyItem(i, self.payload.revision_ids[i], self._pending.pop(i)))
            self._next_index += 1
        return ready
