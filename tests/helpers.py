"""测试辅助: 假命令执行器 + 归档构造工具

FakeExecutor 实现 CommandExecutor 协议，按参数前缀匹配返回预设结果，
并记录每次调用，测试无需真实的 git / patch / 构建脚本。
"""

from __future__ import annotations

import io
import shlex
import tarfile
from collections.abc import Callable
from pathlib import Path

from relpack.utils.shell import CommandResult

Predicate = Callable[[list[str]], bool]


class FakeExecutor:
    """可编程的命令执行器"""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], str]] = []
        self._rules: list[tuple[Predicate, CommandResult]] = []

    def on(
        self,
        prefix: list[str],
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        contains: str = "",
    ) -> FakeExecutor:
        """注册规则: 参数以 prefix 开头（且任一参数包含 contains）时返回该结果

        按注册顺序匹配，先注册的规则优先。
        """
        def match(args: list[str]) -> bool:
            if args[: len(prefix)] != prefix:
                return False
            return not contains or any(contains in a for a in args)

        self._rules.append((match, CommandResult(returncode, stdout, stderr)))
        return self

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        self.calls.append((args, cwd))
        for match, result in self._rules:
            if match(args):
                return result
        return CommandResult(0, "", "")

    def commands(self, program: str) -> list[list[str]]:
        return [args for args, _ in self.calls if args and args[0] == program]


def make_tar(path: Path, files: dict[str, str]) -> Path:
    """构造 tar 归档（压缩格式由扩展名决定），files 为 {成员路径: 内容}"""
    mode = "w"
    for suffix, m in ((".gz", "w:gz"), (".bz2", "w:bz2"), (".xz", "w:xz")):
        if path.name.endswith(suffix):
            mode = m
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, mode) as tf:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return path
