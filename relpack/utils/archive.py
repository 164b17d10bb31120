"""归档工具: 解压、可复现打包、文件复制

职责:
- archive_unpack: 按扩展名识别格式并解压（zip / tar.*）
- package_archive_files: 生成可复现的 tar 包（固定顺序、属主、时间戳）
- copy_directory_files / copy_git_files: 将文件复制到打包暂存目录
"""

from __future__ import annotations

import logging
import shutil
import tarfile
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from relpack.core.exceptions import ExecutionError
from relpack.utils.shell import run_git

if TYPE_CHECKING:
    from relpack.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

# 解压时识别的 tar 扩展名 → tarfile 读模式
_TAR_READ_SUFFIXES = (".tar.gz", ".tgz", ".tar.bz2", ".tar.xz", ".tar")

# 打包时支持的扩展名 → tarfile 写模式
_TAR_WRITE_MODES = {
    ".tar.gz": "w:gz",
    ".tar.bz2": "w:bz2",
    ".tar.xz": "w:xz",
    ".tar": "w",
}

DEFAULT_ARCHIVE_OWNER = "android"
DEFAULT_ARCHIVE_MTIME = "2015-01-01 00:00:00"


# =========================================================================
# 解压
# =========================================================================

def archive_unpack(archive_path: str | Path, dest_dir: str | Path) -> None:
    """解压归档到目标目录，格式由扩展名决定

    异常:
        FileNotFoundError: 归档不存在
        ValueError: 无法识别的扩展名
        tarfile.TarError / zipfile.BadZipFile: 归档损坏
    """
    src = Path(archive_path)
    dest = Path(dest_dir)
    if not src.is_file():
        raise FileNotFoundError(f"归档不存在: {src}")

    name = src.name
    if name.endswith(".zip"):
        with zipfile.ZipFile(src) as zf:
            zf.extractall(path=str(dest))
    elif name.endswith(_TAR_READ_SUFFIXES):
        with tarfile.open(src, "r:*") as tf:
            tf.extractall(path=str(dest), filter="data")  # noqa: S202
    else:
        raise ValueError(f"无法识别的归档格式: {name}")
    logger.debug("已解压: %s -> %s", src, dest)


# =========================================================================
# 可复现打包
# =========================================================================

def _tar_write_mode(pkg_file: str) -> str:
    for suffix, mode in _TAR_WRITE_MODES.items():
        if pkg_file.endswith(suffix):
            return mode
    raise ExecutionError(f"不支持的打包格式: {pkg_file}")


def _collect_files(pkg_dir: Path, filters: list[str]) -> list[str]:
    """展开过滤器为去重排序后的相对文件列表（只收集普通文件）"""
    files: set[str] = set()
    for flt in filters:
        matches = sorted(pkg_dir.glob(flt))
        if not matches:
            raise ExecutionError(f"找不到匹配的文件: {flt} (目录 {pkg_dir})")
        for match in matches:
            candidates = [match] if not match.is_dir() else sorted(match.rglob("*"))
            for f in candidates:
                if f.is_file() and not f.is_symlink():
                    files.add(f.relative_to(pkg_dir).as_posix())
    return sorted(files)


def package_archive_files(
    pkg_file: str | Path,
    pkg_dir: str | Path,
    filters: list[str],
    *,
    owner: str = DEFAULT_ARCHIVE_OWNER,
    mtime: str = DEFAULT_ARCHIVE_MTIME,
) -> list[str]:
    """创建可复现的 tar 包，返回打入包中的文件列表

    固定文件顺序（字典序）、属主/属组名和修改时间，
    使相同输入得到相同的 tar 内容。
    """
    pkg_path = Path(pkg_file)
    base = Path(pkg_dir)
    mode = _tar_write_mode(pkg_path.name)
    members = _collect_files(base, filters)
    stamp = int(
        datetime.strptime(mtime, "%Y-%m-%d %H:%M:%S")
        .replace(tzinfo=timezone.utc)
        .timestamp()
    )

    pkg_path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(pkg_path, mode, format=tarfile.GNU_FORMAT) as tf:
        for name in members:
            src = base / name
            info = tf.gettarinfo(str(src), arcname=name)
            info.uid = info.gid = 0
            info.uname = info.gname = owner
            info.mtime = stamp
            with open(src, "rb") as f:
                tf.addfile(info, f)

    logger.info("已打包 %d 个文件 -> %s", len(members), pkg_path)
    return members


# =========================================================================
# 复制
# =========================================================================

def copy_directory_files(
    src_dir: str | Path, dst_dir: str | Path, files: list[str] | None = None,
) -> None:
    """复制 src_dir 下的指定相对路径到 dst_dir（files 为空则复制全部）"""
    src = Path(src_dir)
    dst = Path(dst_dir)
    if not src.is_dir():
        raise ExecutionError(f"源目录不存在: {src}")
    try:
        dst.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExecutionError(f"无法创建目标目录: {dst} ({e})") from e

    if not files:
        shutil.copytree(src, dst, dirs_exist_ok=True)
        return

    for rel in files:
        s = src / rel
        d = dst / rel
        if s.is_dir():
            shutil.copytree(s, d, dirs_exist_ok=True)
        elif s.is_file():
            d.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(s, d)
        else:
            raise ExecutionError(f"源文件不存在: {s}")


def copy_git_files(
    src_dir: str | Path, dst_dir: str | Path,
    executor: CommandExecutor | None = None,
) -> list[str]:
    """复制 git ls-files 列出的全部受控文件，返回复制的文件列表"""
    logger.info("复制 Git 受控文件: %s -> %s", src_dir, dst_dir)
    r = run_git(["ls-files", "-z"], src_dir, executor=executor)
    # -z 输出以 NUL 分隔，文件名可包含空格
    files = [f for f in r.stdout.split("\0") if f]
    src = Path(src_dir)
    dst = Path(dst_dir)
    dst.mkdir(parents=True, exist_ok=True)
    for rel in files:
        s = src / rel
        if s.is_symlink() or not s.exists():
            continue
        if s.is_dir():
            # 子模块在 ls-files 中只是一个 gitlink 条目
            logger.debug("跳过子模块: %s", rel)
            continue
        d = dst / rel
        d.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(s, d)
    return files
