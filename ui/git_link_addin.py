#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Git 链接插件 v1.0.0
=====================================

【模块定位】
- 位置：ui/git_link_addin.py
- 职责：把拖拽协商、数据解析、摘要解析、链接插入、链接激活接到 QTextEdit 上
- 特点：每个打开的笔记一个 NoteSubscription，关闭即解除全部事件订阅并取消未完成的解析

【生命周期】
- initialize()：注册链接标签类型（幂等）
- open_note(editor)：返回 NoteSubscription；支持 with 语句，close() 幂等
- shutdown()：关闭所有订阅，等待后台解析退出

【事件处理（安装在 editor.viewport() 上的事件过滤器）】
- DragEnter / DragMove：含自定义类型时接管并选择 LinkAction
- DragLeave：取消本次拖拽会话
- Drop：取数据 → 解析 → 插入（异步：线程池解析，按拖拽顺序落地）
- MouseButtonRelease：点击链接时启动仓库浏览器
- MouseMove：悬停在链接上时显示手形光标

作者: LAD Team
创建时间: 2026-10-15
最后更新: 2026-10-19
"""

import itertools
from typing import Any, Dict, List, Optional, Tuple

from PyQt5.QtCore import QEvent, QObject, QThreadPool, Qt, pyqtSignal, pyqtSlot
from PyQt5.QtWidgets import QApplication, QMessageBox, QTextEdit

from core.drag_negotiator import DragProtocolNegotiator
from core.drop_batch import OrderedDropBatch
from core.drop_payload import DropPayload, DropPayloadParser
from core.enhanced_error_handler import EnhancedErrorHandler
from core.errors import GitLinkError
from core.link_activation import LinkActivationHandler
from core.link_insertion import InsertionSession, LinkInsertionEngine
from core.link_tag import LinkTagInstance, LinkTagStyle, LinkTagType
from core.revision_resolver import ResolutionResult, RevisionSummaryResolver
from core.tag_registry import TagRegistry, get_tag_registry
from core.unified_logging_framework import get_logger, is_test_mode
from utils.config_manager import get_config_manager

from .qt_text_surface import QtTextSurface
from .resolution_worker import RevisionResolveWorker

_batch_ids = itertools.count(1)


class NoteSubscription(QObject):
    """单个笔记编辑器上的事件订阅"""

    def __init__(self, addin: "GitLinkAddin", editor: QTextEdit):
        # 不挂在 editor 下：编辑器销毁时由 destroyed 信号触发 close()
        super().__init__()
        self.addin = addin
        self.editor = editor
        self.viewport = editor.viewport()
        self.logger = addin.logger
        self.surface = QtTextSurface(editor, addin.registry, addin.tag_type.name, logger=self.logger)
        self.negotiator = DragProtocolNegotiator(addin.mime_type, addin.mime_aliases, logger=self.logger)
        self.parser = DropPayloadParser()
        self.engine = LinkInsertionEngine(
            self.surface,
            addin.registry,
            resolver=None if addin.async_enabled else addin.resolver,
            tag_name=addin.tag_type.name,
            logger=self.logger,
        )
        self._batches: Dict[int, Tuple[OrderedDropBatch, InsertionSession]] = {}
        self._workers: Dict[Tuple[int, int], RevisionResolveWorker] = {}
        self._hovering = False
        self._closed = False

        self.editor.setAcceptDrops(True)
        self.viewport.setAcceptDrops(True)
        self.viewport.setMouseTracking(True)
        self.viewport.installEventFilter(self)
        self.editor.destroyed.connect(self._on_editor_destroyed)

    # ------------------------------------------------------------------
    # 作用域
    # ------------------------------------------------------------------
    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_batches(self) -> int:
        return len(self._batches)

    def __enter__(self) -> "NoteSubscription":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        """解除事件订阅并取消该笔记的全部未完成解析（可重复调用）"""
        if self._closed:
            return
        self._closed = True
        for batch, _ in self._batches.values():
            batch.cancel()
        self._batches.clear()
        self.negotiator.cancel()
        if self.viewport is not None:
            self.viewport.removeEventFilter(self)
            if self._hovering:
                self.viewport.unsetCursor()
        self._hovering = False
        self.addin._forget(self)
        self.logger.debug("笔记订阅已关闭")

    def _on_editor_destroyed(self, *_args) -> None:
        # 视口随编辑器一起销毁，Qt 会自行移除事件过滤器
        self.viewport = None
        self.close()

    # ------------------------------------------------------------------
    # 事件分发
    # ------------------------------------------------------------------
    def eventFilter(self, obj, event) -> bool:
        if self._closed:
            return False
        event_type = event.type()
        if event_type in (QEvent.DragEnter, QEvent.DragMove):
            return self._on_drag_over(event)
        if event_type == QEvent.DragLeave:
            self.negotiator.cancel()
            return False
        if event_type == QEvent.Drop:
            return self._on_drop(event)
        if event_type == QEvent.MouseButtonRelease:
            return self._on_click(event)
        if event_type == QEvent.MouseMove:
            self._on_hover(event)
        return False

    def _on_drag_over(self, event) -> bool:
        decision = self.negotiator.drag_over(event.mimeData().formats())
        if not decision.handled:
            return False
        event.setDropAction(Qt.LinkAction)
        event.accept()
        return True

    def _on_drop(self, event) -> bool:
        pos = event.pos()
        mime_data = event.mimeData()

        def fetch(mime_type: str) -> bytes:
            return bytes(mime_data.data(mime_type))

        def process(raw: bytes) -> None:
            self.handle_drop(pos.x(), pos.y(), raw)

        try:
            handled = self.negotiator.drop(fetch, process)
        except GitLinkError as e:
            # process 只在已接管时调用
            self._report_drop_error(e)
            handled = True
        if handled:
            event.setDropAction(Qt.LinkAction)
            event.accept()
        return handled

    def _on_click(self, event) -> bool:
        if event.button() != Qt.LeftButton or self.editor.textCursor().hasSelection():
            return False
        tag = self.surface.tag_at(event.pos().x(), event.pos().y())
        if tag is None:
            return False
        return self.addin.activate(tag)

    def _on_hover(self, event) -> None:
        over_link = self.surface.tag_at(event.pos().x(), event.pos().y()) is not None
        if over_link and not self._hovering:
            self.viewport.setCursor(Qt.PointingHandCursor)
        elif not over_link and self._hovering:
            self.viewport.setCursor(Qt.IBeamCursor)
        self._hovering = over_link

    # ------------------------------------------------------------------
    # 插入
    # ------------------------------------------------------------------
    def handle_drop(self, x: int, y: int, raw: Any) -> Optional[int]:
        """
        处理一次拖放数据（视口坐标 x, y）

        Returns:
            异步模式下返回批次号；同步模式或数据无效时返回 None
        """
        payload = self.parser.parse(raw)
        if payload.is_empty:
            return None
        self.logger.info("drop_parsed", extra={"repo_path": payload.repository_path, "count": len(payload)})
        if not self.addin.async_enabled:
            session = self.engine.begin(x, y, payload.repository_path)
            for index, revision_id in enumerate(payload.revision_ids):
                display_text = self.engine.display_text(payload.repository_path, revision_id)
                self._append_link(session, index, revision_id, display_text)
            self.addin.links_inserted.emit(list(session.tags))
            return None
        return self._start_batch(x, y, payload)

    def _start_batch(self, x: int, y: int, payload: DropPayload) -> int:
        session = self.engine.begin(x, y, payload.repository_path)
        batch = OrderedDropBatch(next(_batch_ids), payload)
        self._batches[batch.batch_id] = (batch, session)
        self.logger.debug(f"拖放批次 {batch.batch_id} 开始后台解析")
        for index in range(len(payload)):
            worker = RevisionResolveWorker(self.addin.resolver, batch, index)
            worker.signals.finished.connect(self._on_resolved)
            self._workers[(batch.batch_id, index)] = worker
            self.addin.thread_pool.start(worker)
        return batch.batch_id

    @pyqtSlot(int, int, object)
    def _on_resolved(self, batch_id: int, index: int, result: ResolutionResult) -> None:
        self._workers.pop((batch_id, index), None)
        entry = self._batches.get(batch_id)
        if entry is None or self._closed:
            return
        batch, session = entry
        for item in batch.submit(index, result.display_text):
            self._append_link(session, item.index, item.revision_id, item.display_text)
        if batch.done:
            del self._batches[batch_id]
            self.addin.links_inserted.emit(list(session.tags))

    def _append_link(self, session: InsertionSession, index: int, revision_id: str, display_text: str) -> None:
        """插入单个链接；失败只记录，不影响同批其余链接"""
        try:
            session.append(index, revision_id, display_text)
        except GitLinkError as e:
            self._report_drop_error(e, session.repository_path, revision_id)

    def _report_drop_error(self, error: GitLinkError, repository_path: Optional[str] = None,
                           revision_id: Optional[str] = None) -> None:
        self.logger.warning(f"链接插入失败，已跳过: {error.message}")
        self.addin.error_handler.handle_error(
            error,
            context={"repo_path": repository_path, "treeish": revision_id},
            propagate=False,
        )

    def cancel_batch(self, batch_id: int) -> bool:
        entry = self._batches.pop(batch_id, None)
        if entry is None:
            return False
        entry[0].cancel()
        self.logger.debug(f"拖放批次 {batch_id} 已取消")
        return True

    def tags(self) -> List[LinkTagInstance]:
        return self.surface.collect_tags()


class GitLinkAddin(QObject):
    """Git treeish 链接插件"""

    links_inserted = pyqtSignal(object)   # 一次拖放完成后插入的 LinkTagInstance 列表
    link_activated = pyqtSignal(str, str)  # (repository_path, revision_id)
    launch_failed = pyqtSignal(str)        # 错误消息

    def __init__(self, config_manager: Any = None, registry: Optional[TagRegistry] = None,
                 resolver: Optional[RevisionSummaryResolver] = None,
                 activation_handler: Optional[LinkActivationHandler] = None,
                 error_handler: Optional[EnhancedErrorHandler] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.config_manager = config_manager or get_config_manager()
        self.logger = get_logger(__name__, self.config_manager)
        self.registry = registry or get_tag_registry()
        self.error_handler = error_handler or EnhancedErrorHandler(config_manager=self.config_manager)
        self.resolver = resolver or RevisionSummaryResolver.from_config(self.config_manager, logger=self.logger)
        self.activation_handler = activation_handler or LinkActivationHandler.from_config(
            self.config_manager, error_handler=self.error_handler, logger=self.logger)
        if self.activation_handler.error_reporter is None:
            self.activation_handler.error_reporter = self._report_launch_failure

        cfg = self.config_manager.get_config
        self.mime_type = cfg("mime_type", "git/treeish-list", "drag")
        self.mime_aliases = tuple(cfg("mime_aliases", [], "drag"))
        self.async_enabled = bool(cfg("async_enabled", True, "resolution"))
        self.tag_type = LinkTagType(
            cfg("tag_name", "link:git", "link"),
            LinkTagStyle(
                foreground=cfg("foreground", "blue", "link"),
                icon=cfg("icon", "git", "link"),
                icon_size=int(cfg("icon_size", 16, "link")),
            ),
        )

        self.thread_pool = QThreadPool(self)
        self.thread_pool.setMaxThreadCount(max(1, int(cfg("max_workers", 4, "resolution"))))
        self._subscriptions: List[NoteSubscription] = []
        self._initialized = False

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------
    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def subscriptions(self) -> List[NoteSubscription]:
        return list(self._subscriptions)

    def initialize(self) -> None:
        """注册链接标签类型；重复调用无副作用"""
        if not self.registry.register(self.tag_type.name, self.tag_type):
            self.tag_type = self.registry.get(self.tag_type.name)
        self._initialized = True
        self.logger.info(f"Git 链接插件已初始化: tag={self.tag_type.name} drag_type={self.mime_type}")

    def open_note(self, editor: QTextEdit) -> NoteSubscription:
        if not self._initialized:
            self.initialize()
        subscription = NoteSubscription(self, editor)
        self._subscriptions.append(subscription)
        return subscription

    def shutdown(self, wait_ms: int = 2000) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()
        # 已取消的任务会尽快杀掉 git 进程
        self.thread_pool.waitForDone(wait_ms)
        self.activation_handler.reap()
        self.logger.info("Git 链接插件已关闭")

    def _forget(self, subscription: NoteSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    # ------------------------------------------------------------------
    # 激活
    # ------------------------------------------------------------------
    def activate(self, tag: LinkTagInstance) -> bool:
        handled = self.activation_handler.activate(tag)
        self.link_activated.emit(tag.repository_path, tag.revision_id)
        return handled

    def _report_launch_failure(self, title: str, message: str) -> None:
        self.launch_failed.emit(message)
        if is_test_mode():
            return
        QMessageBox.information(QApplication.activeWindow(), title, message)
