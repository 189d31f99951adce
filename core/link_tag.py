#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Git 链接标签模型 v1.0.0
=====================================

【模块定位】
- 位置：core/link_tag.py
- 职责：定义可点击的 Git 链接标签类型（LinkTagType）与标签实例（LinkTagInstance）
- 特点：纯数据模型，不依赖 Qt；Qt 文档中的落地由 ui/qt_text_surface.py 负责

【持久化约定】
- 标签类型名：默认 "link:git"
- 属性：repo-path（仓库绝对路径）、treeish（提交哈希 / tag / ref）
- 同时镜像为锚点 href：git-treeish:<treeish>?repo-path=<路径>，便于 HTML 往返后重建

作者: LAD Team
创建时间: 2026-10-12
最后更新: 2026-10-19
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qs, quote, unquote, urlencode, urlparse

from .errors import InvalidTreeishRefError

ATTR_REPO_PATH = "repo-path"
ATTR_TREEISH = "treeish"
HREF_SCHEME = "git-treeish"
DEFAULT_TAG_NAME = "link:git"


def is_valid_revision_id(revision_id: Any) -> bool:
    """treeish 须为非空且不含空白的字符串"""
    return isinstance(revision_id, str) and bool(revision_id) and not any(ch.isspace() for ch in revision_id)


@dataclass(frozen=True)
class TreeishRef:
    """(仓库路径, treeish) 二元组，构造时校验，之后不可修改"""

    repository_path: str
    revision_id: str

    def __post_init__(self):
        if not isinstance(self.repository_path, str) or not self.repository_path.strip():
            raise InvalidTreeishRefError("repository path must be a non-empty string",
                                         repository_path=self.repository_path)
        if "\n" in self.repository_path or "\r" in self.repository_path:
            raise InvalidTreeishRefError("repository path must be a single line",
                                         repository_path=self.repository_path)
        if not isinstance(self.revision_id, str) or not self.revision_id:
            raise InvalidTreeishRefError("revision id must be a non-empty string",
                                         revision_id=self.revision_id)
        if any(ch.isspace() for ch in self.revision_id):
            raise InvalidTreeishRefError("revision id must not contain whitespace",
                                         revision_id=self.revision_id)

    def to_attributes(self) -> Dict[str, str]:
        return {ATTR_REPO_PATH: self.repository_path, ATTR_TREEISH: self.revision_id}

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "TreeishRef":
        return cls(
            repository_path=attributes.get(ATTR_REPO_PATH),
            revision_id=attributes.get(ATTR_TREEISH),
        )


@dataclass(frozen=True)
class TextRange:
    """文档内的半开区间 [start, end)"""

    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.start >= self.end:
            raise ValueError(f"empty or inverted range: [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "TextRange") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class LinkTagStyle:
    underline: bool = True
    foreground: str = "blue"
    icon: str = "git"
    icon_size: int = 16
    can_activate: bool = True


@dataclass(frozen=True)
class LinkTagType:
    """标签类型：进程内唯一，样式对所有实例相同"""

    name: str = DEFAULT_TAG_NAME
    style: LinkTagStyle = field(default_factory=LinkTagStyle)

    def new_instance(self, ref: TreeishRef) -> "LinkTagInstance":
        return LinkTagInstance(self, ref)

    def to_href(self, ref: TreeishRef) -> str:
        query = urlencode({ATTR_REPO_PATH: ref.repository_path}, quote_via=quote)
        return f"{HREF_SCHEME}:{quote(ref.revision_id, safe='')}?{query}"

    def parse_href(self, href: str) -> Optional[TreeishRef]:
        """从锚点 href 还原 TreeishRef；不是本类型的 href 返回 None"""
        if not href:
            return None
        parsed = urlparse(href)
        if parsed.scheme != HREF_SCHEME:
            return None
        repo = parse_qs(parsed.query).get(ATTR_REPO_PATH, [""])[0]
        try:
            return TreeishRef(repository_path=repo, revision_id=unquote(parsed.path))
        except InvalidTreeishRefError:
            return None


class LinkTagInstance:
    """
    标签实例：每个插入的链接一个

    - repository_path / revision_id 在创建时确定，只读
    - applied_range 在插入时一次性确定，必须非空
    - 相同属性的两个实例互不相等（各自独立的文档对象）
    """

    __slots__ = ("_tag_type", "_ref", "_applied_range")

    def __init__(self, tag_type: LinkTagType, ref: TreeishRef):
        if not isinstance(ref, TreeishRef):
            raise InvalidTreeishRefError("LinkTagInstance requires a TreeishRef")
        self._tag_type = tag_type
        self._ref = ref
        self._applied_range: Optional[TextRange] = None

    @property
    def tag_type(self) -> LinkTagType:
        return self._tag_type

    @property
    def ref(self) -> TreeishRef:
        return self._ref

    @property
    def repository_path(self) -> str:
        return self._ref.repository_path

    @property
    def revision_id(self) -> str:
        return self._ref.revision_id

    @property
    def applied_range(self) -> Optional[TextRange]:
        return self._applied_range

    def attach(self, start: int, end: int) -> TextRange:
        """记录标签覆盖的区间；只允许调用一次"""
        if self._applied_range is not None:
            raise RuntimeError(f"tag already applied to {self._applied_range}")
        self._applied_range = TextRange(start, end)
        return self._applied_range

    def attributes(self) -> Dict[str, str]:
        return self._ref.to_attributes()

    def href(self) -> str:
        return self._tag_type.to_href(self._ref)

    def __repr__(self) -> str:
        return (f"LinkTagInstance(name={self._tag_type.name!r}, repo={self.repository_path!r}, "
                f"treeish={self.revision_id!r}, range={self._applied_range})")
