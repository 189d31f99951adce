#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
QTextEdit 文档适配层 v1.0.0
=====================================

【模块定位】
- 位置：ui/qt_text_surface.py
- 职责：以 QTextEdit / QTextDocument 实现 core.link_insertion.ITextSurface
- 特点：标签以 QTextCharFormat 片段落地，属性写入 UserProperty，并镜像为锚点 href

【标签在文档中的表示】
- PROP_TAG_NAME / PROP_REPO_PATH / PROP_TREEISH：标签类型名与两个属性
- PROP_TAG_SERIAL：实例序号，用于区分相邻的同属性实例
- anchorHref：git-treeish:<treeish>?repo-path=<路径>；HTML 往返后 UserProperty 丢失，仅靠 href 重建

作者: LAD Team
创建时间: 2026-10-15
最后更新: 2026-10-19
"""

import contextlib
import itertools
import logging
from typing import Iterator, List, Optional, Tuple

from PyQt5.QtCore import QPointF, Qt
from PyQt5.QtGui import QColor, QTextBlock, QTextCharFormat, QTextCursor, QTextFormat
from PyQt5.QtWidgets import QTextEdit

from core.errors import InvalidTreeishRefError, UnregisteredTypeError
from core.link_tag import LinkTagInstance, LinkTagType, TreeishRef
from core.tag_registry import TagRegistry

PROP_TAG_NAME = QTextFormat.UserProperty + 1
PROP_REPO_PATH = QTextFormat.UserProperty + 2
PROP_TREEISH = QTextFormat.UserProperty + 3
PROP_TAG_SERIAL = QTextFormat.UserProperty + 4

_LINK_PROPERTIES = (PROP_TAG_NAME, PROP_REPO_PATH, PROP_TREEISH, PROP_TAG_SERIAL)

PARAGRAPH_SEPARATOR = "\u2029"

_serials = itertools.count(1)


class QtTextSurface:
    """QTextEdit 上的插入/标签操作"""

    def __init__(self, editor: QTextEdit, registry: TagRegistry, default_tag_name: str = "link:git",
                 logger: Optional[logging.Logger] = None):
        self.editor = editor
        self.registry = registry
        self.default_tag_name = default_tag_name
        self.logger = logger or logging.getLogger(__name__)

    def document(self):
        return self.editor.document()

    # ------------------------------------------------------------------
    # ITextSurface
    # ------------------------------------------------------------------
    def visible_origin(self) -> Tuple[int, int]:
        """可见区域左上角在文档坐标中的位置（即滚动偏移）"""
        return self.editor.horizontalScrollBar().value(), self.editor.verticalScrollBar().value()

    def position_at(self, doc_x: int, doc_y: int) -> int:
        layout = self.document().documentLayout()
        position = layout.hitTest(QPointF(doc_x, doc_y), Qt.FuzzyHit)
        if position < 0:
            position = self._end_position()
        return position

    def place_cursor(self, position: int) -> QTextCursor:
        cursor = QTextCursor(self.document())
        cursor.setPosition(max(0, min(position, self._end_position())))
        self.editor.setTextCursor(cursor)
        # 独立的标记：随文档编辑自动移动，不受用户后续移动光标影响
        return QTextCursor(cursor)

    def mark_position(self, mark: QTextCursor) -> int:
        return mark.position()

    def mark_at_line_start(self, mark: QTextCursor) -> bool:
        return mark.positionInBlock() == 0

    def insert_at_mark(self, mark: QTextCursor, text: str) -> None:
        # 不继承相邻链接的格式，否则分隔符会被并入前一个链接
        mark.insertText(text, self._plain_format(mark))

    def apply_tag(self, tag: LinkTagInstance) -> None:
        applied = tag.applied_range
        if applied is None:
            raise ValueError("tag has no applied range")
        cursor = QTextCursor(self.document())
        cursor.setPosition(applied.start)
        cursor.setPosition(applied.end, QTextCursor.KeepAnchor)
        cursor.mergeCharFormat(self.link_format(tag))

    @contextlib.contextmanager
    def edit_block(self) -> Iterator[None]:
        """一次链接插入在撤销栈中为一步"""
        cursor = QTextCursor(self.document())
        cursor.beginEditBlock()
        try:
            yield
        finally:
            cursor.endEditBlock()

    # ------------------------------------------------------------------
    # 格式
    # ------------------------------------------------------------------
    def link_format(self, tag: LinkTagInstance) -> QTextCharFormat:
        style = tag.tag_type.style
        fmt = QTextCharFormat()
        fmt.setAnchor(True)
        fmt.setAnchorHref(tag.href())
        fmt.setFontUnderline(style.underline)
        fmt.setForeground(QColor(style.foreground))
        fmt.setToolTip(f"{tag.revision_id} @ {tag.repository_path}")
        fmt.setProperty(PROP_TAG_NAME, tag.tag_type.name)
        fmt.setProperty(PROP_REPO_PATH, tag.repository_path)
        fmt.setProperty(PROP_TREEISH, tag.revision_id)
        fmt.setProperty(PROP_TAG_SERIAL, next(_serials))
        return fmt

    def _plain_format(self, mark: QTextCursor) -> QTextCharFormat:
        fmt = QTextCharFormat(mark.charFormat())
        if not (fmt.hasProperty(PROP_TAG_NAME) or fmt.isAnchor()):
            return fmt
        for prop in _LINK_PROPERTIES:
            fmt.clearProperty(prop)
        fmt.clearProperty(QTextFormat.IsAnchor)
        fmt.clearProperty(QTextFormat.AnchorHref)
        fmt.clearProperty(QTextFormat.TextUnderlineStyle)
        fmt.clearProperty(QTextFormat.FontUnderline)
        fmt.clearForeground()
        fmt.clearProperty(QTextFormat.TextToolTip)
        return fmt

    # ------------------------------------------------------------------
    # 标签重建
    # ------------------------------------------------------------------
    def collect_tags(self) -> List[LinkTagInstance]:
        """按文档顺序重建全部标签实例（相邻且同一实例的片段合并）"""
        runs: List[list] = []  # [key, tag_type, ref, start, end]
        block = self.document().begin()
        while block.isValid():
            self._collect_block_runs(block, runs)
            block = block.next()
        return [self._instance_from_run(run) for run in runs]

    def tag_at_position(self, position: int) -> Optional[LinkTagInstance]:
        """文档位置处的标签；先看该字符的格式，是链接时才扫描所在段落"""
        document = self.document()
        if position < 0 or position >= self._end_position():
            return None
        if document.characterAt(position) == PARAGRAPH_SEPARATOR:
            return None
        cursor = QTextCursor(document)
        cursor.setPosition(position + 1)
        if self._tag_key_from_format(cursor.charFormat()) is None:
            return None

        for run in self._collect_block_runs(document.findBlock(position), []):
            if run[3] <= position < run[4]:
                return self._instance_from_run(run)
        return None

    def tag_at(self, x: int, y: int) -> Optional[LinkTagInstance]:
        """视口坐标处的标签（精确命中字符）"""
        origin_x, origin_y = self.visible_origin()
        layout = self.document().documentLayout()
        position = layout.hitTest(QPointF(x + origin_x, y + origin_y), Qt.ExactHit)
        if position < 0:
            return None
        return self.tag_at_position(position)

    def _collect_block_runs(self, block: QTextBlock, runs: List[list]) -> List[list]:
        it = block.begin()
        while not it.atEnd():
            fragment = it.fragment()
            if fragment.isValid():
                parsed = self._tag_key_from_format(fragment.charFormat())
                if parsed is not None:
                    key, tag_type, ref = parsed
                    start = fragment.position()
                    end = start + fragment.length()
                    if runs and runs[-1][0] == key and runs[-1][4] == start:
                        runs[-1][4] = end
                    else:
                        runs.append([key, tag_type, ref, start, end])
            it += 1
        return runs

    @staticmethod
    def _instance_from_run(run: list) -> LinkTagInstance:
        _, tag_type, ref, start, end = run
        tag = tag_type.new_instance(ref)
        tag.attach(start, end)
        return tag

    def _tag_key_from_format(self, fmt: QTextCharFormat):
        if fmt.hasProperty(PROP_TAG_NAME):
            name = fmt.stringProperty(PROP_TAG_NAME)
            try:
                tag_type = self.registry.get(name)
                ref = TreeishRef(fmt.stringProperty(PROP_REPO_PATH), fmt.stringProperty(PROP_TREEISH))
            except (UnregisteredTypeError, InvalidTreeishRefError) as e:
                self.logger.debug(f"跳过无法重建的链接片段: {e}")
                return None
            return (name, fmt.intProperty(PROP_TAG_SERIAL)), tag_type, ref

        if fmt.isAnchor():
            try:
                tag_type: LinkTagType = self.registry.get(self.default_tag_name)
            except UnregisteredTypeError:
                return None
            ref = tag_type.parse_href(fmt.anchorHref())
            if ref is None:
                return None
            return (tag_type.name, fmt.anchorHref()), tag_type, ref
        return None

    def _end_position(self) -> int:
        return max(0, self.document().characterCount() - 1)
