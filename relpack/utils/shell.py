"""Shell 命令执行工具 — 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
git / patch / 构建脚本等外部工具都经由这里调用。
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from relpack.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def lines(self) -> list[str]:
        """按行拆分 stdout，去掉空行"""
        return [ln for ln in self.stdout.splitlines() if ln.strip()]


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用

    测试时可注入假实现，无需 patch subprocess。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地命令执行器（默认实现）"""

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else cmd
        logger.debug("执行: %s (cwd=%s)", " ".join(args), cwd)
        try:
            r = subprocess.run(
                args, capture_output=True, text=True,
                cwd=cwd, env=env, check=False, timeout=timeout,
            )
        except FileNotFoundError as e:
            # 命令本身不存在时按 127 处理，与 shell 行为一致
            return CommandResult(returncode=127, stdout="", stderr=str(e))
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


# =========================================================================
# 便捷函数
# =========================================================================

def run_cmd(
    cmd: str | list[str], *, cwd: str = ".",
    env: dict[str, str] | None = None,
    label: str = "cmd",
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，失败抛 ExecutionError

    Args:
        cmd: 命令字符串或参数列表
        cwd: 工作目录
        env: 环境变量（不传则继承当前进程）
        label: 日志标签
        executor: 命令执行器（默认使用全局执行器）
    """
    shown = cmd if isinstance(cmd, str) else " ".join(cmd)
    logger.info("  %s: %s (cwd=%s)", label, shown, cwd)
    r = (executor or get_executor()).execute(cmd, cwd=cwd, env=env)
    if not r.success:
        raise ExecutionError(f"{label}失败 (rc={r.returncode}): {r.stderr[:500]}")
    return r


def run_git(
    args: list[str], repo_dir: str | Path, *,
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """在 repo_dir 中执行 git 子命令，日志标签取子命令名"""
    return run_cmd(
        ["git", *args], cwd=str(repo_dir),
        label=f"git {args[0]}", executor=executor,
    )
