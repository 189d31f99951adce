#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
拖放数据解析

格式（UTF-8 文本）：
    第 0 行：仓库路径
    第 1..N 行：treeish，每个被拖拽的条目一行，保持拖拽顺序

不足两行（或没有任何 treeish）时返回空结果，调用方不做插入，这不是错误。
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple, Union

from .errors import MalformedPayloadError
from .link_tag import is_valid_revision_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DropPayload:
    repository_path: str = ""
    revision_ids: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.repository_path or not self.revision_ids

    def __len__(self) -> int:
        return len(self.revision_ids)


EMPTY_PAYLOAD = DropPayload()


class DropPayloadParser:
    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def parse(self, raw: Union[bytes, bytearray, memoryview, str, None]) -> DropPayload:
        """解析拖放数据；格式不符时返回 EMPTY_PAYLOAD"""
        try:
            return self.parse_strict(raw)
        except MalformedPayloadError as e:
            logger.debug(f"拖放数据格式不符，忽略本次拖放: {e.message}")
            return EMPTY_PAYLOAD

    def parse_strict(self, raw: Union[bytes, bytearray, memoryview, str, None]) -> DropPayload:
        """与 parse 相同，但格式不符时抛出 MalformedPayloadError"""
        text = self._decode(raw)
        lines = text.split("\n")
        if len(lines) < 2:
            raise MalformedPayloadError("payload has fewer than 2 lines", line_count=len(lines))

        repository_path = lines[0].rstrip("\r")
        if not repository_path.strip():
            raise MalformedPayloadError("payload has no repository path")

        # 末尾换行或 CRLF 产生的空行不构成 treeish；含空白的行不是合法 treeish，跳过
        revision_ids = []
        for line in lines[1:]:
            candidate = line.strip()
            if not candidate:
                continue
            if not is_valid_revision_id(candidate):
                logger.debug(f"跳过非法 treeish: {candidate!r}")
                continue
            revision_ids.append(candidate)
        if not revision_ids:
            raise MalformedPayloadError("payload has no revision ids")

        return DropPayload(repository_path=repository_path, revision_ids=tuple(revision_ids))

    def _decode(self, raw: Union[bytes, bytearray, memoryview, str, None]) -> str:
        if raw is None:
            return ""
        if isinstance(raw, str):
            return raw
        try:
            return bytes(raw).decode(self.encoding)
        except UnicodeDecodeError as e:
            raise MalformedPayloadError(f"payload is not valid {self.encoding}: {e}") from e
