#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
链接插入引擎 v1.0.0
=====================================

【模块定位】
- 位置：core/link_insertion.py
- 职责：把一次拖放的多个 treeish 依次插入文档，并为每段插入文本套上独立的链接标签
- 特点：不直接依赖 Qt；通过 ITextSurface 协议访问宿主文档（Qt 实现见 ui/qt_text_surface.py）

【插入算法】
1. 拖放坐标（控件局部坐标）加上可见区域左上角偏移，换算为文档坐标，再映射到最近的文档位置
2. 对第 i 个 treeish：
   - i > 0 时先插入分隔符：光标位于行首插入换行，否则插入 ", "
   - 显示文本为解析出的摘要，未解析时为 treeish 本身
   - 记录插入前后偏移，新建标签实例并套用到 [before, after)

【保证】
N 个 treeish 产生 N 个标签实例，区间互不重叠、按拖拽顺序递增，除分隔符外无空隙。

作者: LAD Team
创建时间: 2026-10-14
最后更新: 2026-10-19
"""

import logging
from typing import Any, ContextManager, List, Optional, Protocol, Sequence, Tuple

from .link_tag import DEFAULT_TAG_NAME, LinkTagInstance
from .tag_registry import TagRegistry

LINE_SEPARATOR = "\n"
INLINE_SEPARATOR = ", "


class ITextSurface(Protocol):
    """宿主文档需要提供的最小能力"""

    def visible_origin(self) -> Tuple[int, int]:  # pragma: no cover - 协议
        ...

    def position_at(self, doc_x: int, doc_y: int) -> int:  # pragma: no cover - 协议
        ...

    def place_cursor(self, position: int) -> Any:  # pragma: no cover - 协议
        """把插入光标放到 position，返回随文档编辑自动移动的标记"""
        ...

    def mark_position(self, mark: Any) -> int:  # pragma: no cover - 协议
        ...

    def mark_at_line_start(self, mark: Any) -> bool:  # pragma: no cover - 协议
        ...

    def insert_at_mark(self, mark: Any, text: str) -> None:  # pragma: no cover - 协议
        """在标记处插入文本，标记移动到插入文本之后"""
        ...

    def apply_tag(self, tag: LinkTagInstance) -> None:  # pragma: no cover - 协议
        """把标签落到 tag.applied_range 覆盖的文本上"""
        ...

    def edit_block(self) -> ContextManager[None]:  # pragma: no cover - 协议
        ...


class InsertionSession:
    """一次拖放的插入会话：持有插入标记，按顺序追加链接"""

    def __init__(self, engine: "LinkInsertionEngine", mark: Any, repository_path: str):
        self.engine = engine
        self.mark = mark
        self.repository_path = repository_path
        self.tags: List[LinkTagInstance] = []

    def append(self, index: int, revision_id: str, display_text: Optional[str] = None) -> LinkTagInstance:
        """插入第 index 个链接（会话中已有链接时先插分隔符）；display_text 为空时使用 revision_id"""
        surface = self.engine.surface
        text = display_text or revision_id
        # 先创建标签：属性非法时不改动文档
        tag = self.engine.registry.create(self.engine.tag_name, self.repository_path, revision_id)

        with surface.edit_block():
            if self.tags:
                separator = LINE_SEPARATOR if surface.mark_at_line_start(self.mark) else INLINE_SEPARATOR
                surface.insert_at_mark(self.mark, separator)
            before = surface.mark_position(self.mark)
            surface.insert_at_mark(self.mark, text)
            after = surface.mark_position(self.mark)
            tag.attach(before, after)
            surface.apply_tag(tag)

        self.tags.append(tag)
        self.engine.logger.info(
            "link_inserted",
            extra={"treeish": revision_id, "repo_path": self.repository_path,
                   "index": index, "start": before, "end": after},
        )
        return tag


class LinkInsertionEngine:
    def __init__(self, surface: ITextSurface, registry: TagRegistry, resolver: Any = None,
                 tag_name: str = DEFAULT_TAG_NAME, logger: Optional[logging.Logger] = None):
        self.surface = surface
        self.registry = registry
        self.resolver = resolver
        self.tag_name = tag_name
        self.logger = logger or logging.getLogger(__name__)

    def drop_position(self, drop_x: int, drop_y: int) -> int:
        """控件局部坐标 → 文档坐标 → 最近的文档位置"""
        origin_x, origin_y = self.surface.visible_origin()
        return self.surface.position_at(drop_x + origin_x, drop_y + origin_y)

    def begin(self, drop_x: int, drop_y: int, repository_path: str) -> InsertionSession:
        position = self.drop_position(drop_x, drop_y)
        mark = self.surface.place_cursor(position)
        self.logger.debug(f"插入会话开始: drop=({drop_x}, {drop_y}) position={position}")
        return InsertionSession(self, mark, repository_path)

    def insert_all(self, drop_x: int, drop_y: int, repository_path: str,
                   revision_ids: Sequence[str]) -> List[LinkTagInstance]:
        """同步版本：逐个解析并插入"""
        if not revision_ids:
            return []
        session = self.begin(drop_x, drop_y, repository_path)
        for index, revision_id in enumerate(revision_ids):
            session.append(index, revision_id, self.display_text(repository_path, revision_id))
        return session.tags

    def display_text(self, repository_path: str, revision_id: str) -> str:
        if self.resolver is None:
            return revision_id
        summary = self.resolver.resolve(repository_path, revision_id)
        return summary if summary else revision_id
