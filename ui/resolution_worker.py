#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
后台摘要解析任务
每个 treeish 一个 QRunnable，在线程池中执行 git log，结果通过 finished 信号回到 GUI 线程。
"""

from PyQt5.QtCore import QObject, QRunnable, pyqtSignal

from core.drop_batch import OrderedDropBatch
from core.errors import ErrorCode
from core.revision_resolver import ResolutionResult, RevisionSummaryResolver


class RevisionResolveWorkerSignals(QObject):
    """后台解析任务的信号"""

    finished = pyqtSignal(int, int, object)  # (batch_id, index, ResolutionResult)


class RevisionResolveWorker(QRunnable):
    """解析一次拖放中的第 index 个 treeish"""

    def __init__(self, resolver: RevisionSummaryResolver, batch: OrderedDropBatch, index: int):
        super().__init__()
        self.resolver = resolver
        self.batch_id = batch.batch_id
        self.index = index
        self.repository_path = batch.payload.repository_path
        self.revision_id = batch.payload.revision_ids[index]
        self.cancel_event = batch.cancel_event
        self.signals = RevisionResolveWorkerSignals()

    def run(self) -> None:
        try:
            result = self.resolver.resolve_detailed(self.repository_path, self.revision_id, self.cancel_event)
        except Exception as exc:
            result = ResolutionResult(self.revision_id, error_code=ErrorCode.RESOLUTION_FAILED, message=str(exc))
        self.signals.finished.emit(self.batch_id, self.index, result)
