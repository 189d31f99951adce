#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
笔记编辑窗口
最小的宿主：一个 QTextEdit 笔记，挂载 Git 链接插件；笔记以 HTML 保存，链接随 href 一起保存。

用法:
    git-treeish-notes [笔记.html]
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from PyQt5.QtWidgets import QApplication, QLabel, QTextEdit, QVBoxLayout, QWidget

from core.unified_logging_framework import get_logger, setup_logging
from utils.config_manager import get_config_manager

from .git_link_addin import GitLinkAddin


class NoteEditor(QWidget):
    """单个笔记窗口"""

    def __init__(self, addin: GitLinkAddin, note_path: Optional[Path] = None, parent=None):
        super().__init__(parent)
        self.addin = addin
        self.note_path = note_path
        self.logger = get_logger(__name__)

        self.setWindowTitle(note_path.name if note_path else "Untitled note")
        self.resize(720, 480)
        layout = QVBoxLayout(self)
        self.editor = QTextEdit(self)
        layout.addWidget(self.editor)
        self.status_label = QLabel("Drop commits from a Git repository browser to link them", self)
        layout.addWidget(self.status_label)

        self._load()
        self.subscription = addin.open_note(self.editor)
        addin.links_inserted.connect(self._on_links_inserted)
        addin.launch_failed.connect(self._on_launch_failed)

    def _load(self) -> None:
        if self.note_path is None or not self.note_path.exists():
            return
        try:
            self.editor.setHtml(self.note_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error(f"笔记读取失败: {self.note_path}: {e}")
            self.status_label.setText(f"Cannot read {self.note_path}: {e}")

    def save(self) -> bool:
        if self.note_path is None:
            return False
        try:
            self.note_path.write_text(self.editor.toHtml(), encoding="utf-8")
        except OSError as e:
            self.logger.error(f"笔记保存失败: {self.note_path}: {e}")
            return False
        self.logger.info(f"笔记已保存: {self.note_path}")
        return True

    def _on_links_inserted(self, tags) -> None:
        self.status_label.setText(f"Inserted {len(tags)} link(s)")

    def _on_launch_failed(self, message: str) -> None:
        self.status_label.setText(message)

    def closeEvent(self, event):
        self.subscription.close()
        self.save()
        super().closeEvent(event)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="git-treeish-notes", description="Rich-text note with Git treeish links")
    parser.add_argument("note", nargs="?", type=Path, help="HTML note file to open (created on close)")
    args = parser.parse_args(argv)

    config_manager = get_config_manager()
    setup_logging(config_manager)
    app = QApplication.instance() or QApplication(sys.argv[:1])

    addin = GitLinkAddin(config_manager)
    addin.initialize()
    window = NoteEditor(addin, args.note)
    window.show()
    try:
        return app.exec_()
    finally:
        addin.shutdown()


if __name__ == "__main__":
    sys.exit(main())
