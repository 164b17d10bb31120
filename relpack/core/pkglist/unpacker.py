"""源码包解压与打补丁

职责:
- 解压清单中的源码归档到目标目录
- 检查解压出的源码目录
- 按约定查找 <full_name>-patches.tar.xz，依次应用其中的 *.patch
- SHA1 校验（可选）

任一步骤失败只中止当前包，已应用的补丁不回滚。
"""

from __future__ import annotations

import hashlib
import logging
import tarfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING

from relpack.core.exceptions import (
    ChecksumMismatchError,
    DirectoryCreateError,
    ExecutionError,
    MissingExtractedDirectoryError,
    PatchApplyError,
    UnpackError,
)
from relpack.core.pkglist.models import PackageRecord, UnpackResult
from relpack.utils.archive import archive_unpack
from relpack.utils.patch import apply_patch

if TYPE_CHECKING:
    from relpack.core.pkglist.store import PackageListStore
    from relpack.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

_UNPACK_ERRORS = (OSError, ValueError, tarfile.TarError, zipfile.BadZipFile)


class PackageUnpacker:
    """源码包解压器"""

    def __init__(
        self,
        store: PackageListStore,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.store = store
        self.executor = executor

    def unpack_and_patch(
        self,
        basename: str,
        archive_dir: str | Path,
        dest_dir: str | Path,
        *,
        verify: bool = False,
    ) -> UnpackResult:
        """解压单个包并应用补丁，返回解压结果。

        步骤:
          1. 查找包记录（不存在抛 UnknownPackageError）
          2. 创建目标目录
          3. 解压 archive_dir/<file> 到目标目录
          4. 检查目标目录下的 <src_dir> 存在
          5. 若存在补丁包，解压并按文件名顺序应用补丁
        """
        record = self.store.require(basename)
        archives = Path(archive_dir)
        dest = Path(dest_dir)

        try:
            dest.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreateError(
                basename, "无法创建目标目录", path=str(dest), detail=str(e),
            ) from e

        if verify:
            self.verify_checksum(basename, archives)

        archive = archives / record.file
        logger.info(
            "解压 %s: %s -> %s", record.full_name, archive, dest,
            extra={"package": basename},
        )
        self._unpack(record, archive, dest)

        src_path = dest / record.src_dir
        if not src_path.is_dir():
            raise MissingExtractedDirectoryError(
                basename, "解压后缺少源码目录", path=str(src_path),
            )

        applied: list[str] = []
        patches_archive = archives / record.patches_archive
        if patches_archive.is_file():
            applied = self._apply_patches(record, patches_archive, dest, src_path)
        else:
            logger.debug("无补丁包: %s", patches_archive)

        return UnpackResult(
            basename=basename, src_path=str(src_path), applied_patches=applied,
        )

    def _unpack(self, record: PackageRecord, archive: Path, dest: Path) -> None:
        try:
            archive_unpack(archive, dest)
        except _UNPACK_ERRORS as e:
            raise UnpackError(
                record.basename, "解压失败", path=str(archive), detail=str(e),
            ) from e

    def _apply_patches(
        self,
        record: PackageRecord,
        patches_archive: Path,
        dest: Path,
        src_path: Path,
    ) -> list[str]:
        """解压补丁包并依次应用，遇到第一个失败即中止"""
        basename = record.basename
        logger.info("解压补丁包: %s", patches_archive, extra={"package": basename})
        self._unpack(record, patches_archive, dest)

        patches_dir = dest / record.patches_dir
        if not patches_dir.is_dir():
            raise MissingExtractedDirectoryError(
                basename, "补丁包中缺少补丁目录", path=str(patches_dir),
            )

        applied: list[str] = []
        for patch in sorted(patches_dir.glob("*.patch"), key=lambda p: p.name):
            logger.info("  应用补丁: %s", patch.name, extra={"package": basename})
            try:
                apply_patch(patch, src_path, executor=self.executor)
            except ExecutionError as e:
                raise PatchApplyError(basename, patch.name, detail=str(e)) from e
            applied.append(patch.name)

        logger.info(
            "%s: 已应用 %d 个补丁", record.full_name, len(applied),
            extra={"package": basename},
        )
        return applied

    def verify_checksum(self, basename: str, archive_dir: str | Path) -> bool:
        """校验归档 SHA1；清单未记录 SHA1 时返回 False"""
        record = self.store.require(basename)
        if not record.sha1:
            return False

        path = Path(archive_dir) / record.file
        sha1 = hashlib.sha1()  # noqa: S324
        try:
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(8192), b""):
                    sha1.update(chunk)
        except OSError as e:
            raise UnpackError(basename, "无法读取归档", path=str(path), detail=str(e)) from e

        actual = sha1.hexdigest()
        if actual != record.sha1.lower():
            raise ChecksumMismatchError(
                basename, "校验和不匹配", path=str(path),
                detail=f"期望 {record.sha1}, 实际 {actual}",
            )
        logger.info("  校验和通过: %s", path.name, extra={"package": basename})
        return True

    def unpack_all(
        self, archive_dir: str | Path, dest_dir: str | Path, *, verify: bool = False,
    ) -> dict[str, UnpackResult | str]:
        """按清单顺序解压全部包，返回 {name: result|error_msg}"""
        results: dict[str, UnpackResult | str] = {}
        failed: list[str] = []
        for name in self.store.list_basenames():
            try:
                results[name] = self.unpack_and_patch(
                    name, archive_dir, dest_dir, verify=verify,
                )
            except (
                DirectoryCreateError, UnpackError, MissingExtractedDirectoryError,
                PatchApplyError, ChecksumMismatchError,
            ) as exc:
                logger.error("解压失败: %s", exc, extra={"package": name})
                failed.append(name)
                results[name] = f"[FAILED] {exc}"
        if failed:
            logger.warning(
                "解压汇总: %d 成功, %d 失败 (%s)",
                len(results) - len(failed), len(failed), ", ".join(failed),
            )
        return results
