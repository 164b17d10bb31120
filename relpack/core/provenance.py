"""源码来源追溯

记录每个源码子目录当前的 Git commit，并从已有的 prebuilts README
中读取上一次发布时的 commit，用于生成变更摘要。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from relpack.core.exceptions import ReleaseError
from relpack.utils.shell import get_executor, run_git

if TYPE_CHECKING:
    from relpack.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

README_NAME = "README"


@dataclass
class SubdirProvenance:
    """单个源码子目录的版本信息"""

    subdir: str             # 如 external/qemu
    commit: str             # 当前 commit（短 SHA1）
    description: str        # git log --oneline 的整行输出
    previous_commit: str = ""

    @property
    def changed(self) -> bool:
        return self.commit != self.previous_commit


def read_previous_commit(readme: str | Path, subdir: str) -> str:
    """从 README 中读取 subdir 对应行的第二列（上次发布的 commit）"""
    for line in Path(readme).read_text(encoding="utf-8").splitlines():
        cols = line.split()
        if len(cols) >= 2 and cols[0] == subdir:
            return cols[1]
    return ""


def extract_subdir_history(
    subdir: str,
    source_root: str | Path,
    prebuilts_dir: str | Path | None = None,
    executor: CommandExecutor | None = None,
) -> SubdirProvenance:
    """提取子目录当前 commit 及上次发布的 commit

    异常:
        ReleaseError: 目录不存在，或不是 Git 检出目录
    """
    path = Path(source_root) / subdir
    if not path.is_dir():
        raise ReleaseError(f"缺少源码目录: {path}")
    logger.info("找到源码目录: %s", path)

    r = (executor or get_executor()).execute(
        ["git", "log", "--oneline", "--no-merges", "-1", "."], cwd=str(path),
    )
    lines = r.lines() if r.success else []
    if not lines:
        raise ReleaseError(f"不是 Git 目录: {path}")

    description = lines[0].strip()
    prov = SubdirProvenance(
        subdir=subdir, commit=description.split()[0], description=description,
    )
    logger.info("当前 %s commit: %s", subdir, prov.commit)

    if prebuilts_dir:
        readme = Path(prebuilts_dir) / README_NAME
        if readme.is_file():
            prov.previous_commit = read_previous_commit(readme, subdir)
            logger.info("上次 %s commit: %s", subdir, prov.previous_commit or "(无)")
    return prov


def changelog(
    prov: SubdirProvenance,
    source_root: str | Path,
    executor: CommandExecutor | None = None,
) -> list[str]:
    """列出上次发布以来该子目录的提交（无上次记录或未变化时为空）"""
    if not prov.previous_commit or not prov.changed:
        return []
    r = run_git(
        ["log", "--oneline", "--no-merges", f"{prov.previous_commit}..{prov.commit}", "."],
        Path(source_root) / prov.subdir,
        executor=executor,
    )
    return r.lines()


def check_unchecked_files(
    repo_dir: str | Path,
    excludes: list[str],
    executor: CommandExecutor | None = None,
) -> list[str]:
    """列出未纳入版本控制的文件（排除 excludes 中的模式）"""
    args = ["ls-files", "-o"]
    for pattern in excludes:
        args += ["-x", pattern]
    r = run_git(args, repo_dir, executor=executor)
    return r.lines()
