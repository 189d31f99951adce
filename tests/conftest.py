import os
import subprocess
import sys
from pathlib import Path

import pytest

# 必须在导入 PyQt5 之前设置：无显示环境下使用 offscreen 平台
os.environ.setdefault("GTL_TEST_MODE", "1")
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.link_tag import LinkTagType
from core.tag_registry import TagRegistry


class FakeProcess:
    """subprocess.Popen 的替身：记录调用参数，按预设返回输出"""

    instances = []

    def __init__(self, args, stdout_bytes=b"", returncode=0, hang=False, **kwargs):
        self.args = args
        self.kwargs = kwargs
        self._stdout = stdout_bytes
        self._hang = hang
        self.returncode = None if hang else returncode
        self._final_returncode = returncode
        self.killed = False
        FakeProcess.instances.append(self)

    def communicate(self, timeout=None):
        if self._hang and not self.killed:
            raise subprocess.TimeoutExpired(self.args, timeout)
        self.returncode = -9 if self.killed else self._final_returncode
        return (b"" if self.killed else self._stdout), None

    def poll(self):
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9


@pytest.fixture
def fake_popen(monkeypatch):
    """
    替换 subprocess.Popen

    用法：fake_popen({"abc123": (b"abc123 Fix bug\\n", 0)}) 按 treeish 返回不同输出；
    未配置的 treeish 以退出码 128 结束。
    """
    FakeProcess.instances = []

    def install(outputs=None, hang=False, raise_error=None):
        outputs = outputs or {}

        def factory(args, **kwargs):
            if raise_error is not None:
                raise raise_error
            treeish = args[-1].split("^..")[-1]
            stdout_bytes, returncode = outputs.get(treeish, (b"", 128))
            return FakeProcess(args, stdout_bytes=stdout_bytes, returncode=returncode, hang=hang, **kwargs)

        monkeypatch.setattr(subprocess, "Popen", factory)
        return FakeProcess.instances

    return install


@pytest.fixture
def registry():
    reg = TagRegistry()
    reg.register("link:git", LinkTagType("link:git"))
    return reg


@pytest.fixture(scope="session")
def qapp():
    from PyQt5.QtWidgets import QApplication
    app = QApplication.instance() or QApplication(["pytest"])
    yield app
