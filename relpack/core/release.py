"""发布流程编排

将产品源码重新构建并打包为可分发的 tar 包:

  1. 检查产品目录没有未受控文件
  2. 提取各源码子目录的 commit 信息
  3. (可选) 生成源码包 <prefix>-<revision>-sources.tar.bz2
  4. 对每个目标系统执行本地构建，生成 <prefix>-<revision>-<os>.tar.bz2
  5. (可选) 将二进制复制到 AOSP prebuilts/android-emulator/ 并生成 README

用法:
    from relpack.core.release import ReleaseBuilder

    builder = ReleaseBuilder(config)
    packages = builder.run()
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from relpack.core.config import Config, get_config
from relpack.core.exceptions import ExecutionError, ReleaseError
from relpack.core.provenance import (
    README_NAME,
    SubdirProvenance,
    changelog,
    check_unchecked_files,
    extract_subdir_history,
)
from relpack.utils.archive import (
    copy_directory_files,
    copy_git_files,
    package_archive_files,
)
from relpack.utils.shell import get_executor, run_cmd
from relpack.utils.yaml_io import atomic_write

if TYPE_CHECKING:
    from relpack.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

PREBUILTS_SUBDIR = "prebuilts/android-emulator"
PREBUILT_SYSTEMS = ("linux", "darwin", "windows")

_SOURCES_README = """\
This directory contains the sources of the Android emulator.
Use './rebuild.sh' to rebuild the binaries from scratch.
"""

_REBUILD_SCRIPT = """\
#!/bin/sh

# Auto-generated script used to rebuild the Android emulator binaries
# from sources.

cd $(dirname "$0") &&
(cd qemu && ./android-rebuild.sh --ignore-audio) &&
mkdir -p bin/ &&
cp -rfp qemu/objs/emulator* bin/ &&
echo "Emulator binaries are under $(pwd -P)/bin/"
"""

_BINARIES_README = """\
This directory contains Android emulator binaries. You can use them directly
by defining ANDROID_SDK_ROOT in your environment, then call tools/emulator
with the usual set of options.

To install them directly into your SDK, copy them with:

    cp -r tools/* $ANDROID_SDK_ROOT/tools/
"""

_PREBUILTS_README_HEADER = """\
This directory contains prebuilt emulator binaries that were generated by
running the following command on a 64-bit Linux machine:

  relpack release \\
      --copy-prebuilts=<path>

Where <path> is the root path of this AOSP repo workspace.

Below is the list of specific commits for each input directory used:

"""


# =========================================================================
# 纯函数
# =========================================================================

def host_list_to_os_list(hosts: list[str]) -> list[str]:
    """主机标识转换为去重排序的操作系统名

    >>> host_list_to_os_list(["linux-x86_64", "linux-x86", "windows-x86"])
    ['linux', 'windows']
    """
    systems: set[str] = set()
    for host in hosts:
        for os_name in PREBUILT_SYSTEMS:
            if host.startswith(f"{os_name}-"):
                systems.add(os_name)
                break
        else:
            systems.add(host)
    return sorted(systems)


def system_arch(system: str) -> str:
    """prebuilts 下的子目录名"""
    return system if system == "windows" else f"{system}-x86_64"


def prebuilt_file_list(
    system: str, tools_dir: str | Path, emugl_libraries: list[str],
) -> list[str]:
    """计算需要复制到 prebuilts/<system-arch>/ 的文件（相对 tools/）"""
    if system == "linux":
        exeext, dllext, bitness = "", ".so", "64"
    elif system == "darwin":
        exeext, dllext, bitness = "", ".dylib", "64"
    elif system == "windows":
        exeext, dllext, bitness = ".exe", ".dll", ""
    else:
        raise ReleaseError(f"不支持的 prebuilt 系统: {system}")

    tools = Path(tools_dir)
    files = [f"emulator{exeext}"]
    files += [f"emulator{bitness}-{arch}{exeext}" for arch in ("arm", "x86", "mips")]
    for arch in ("arm64", "mips64"):
        name = f"emulator64-{arch}{exeext}"
        if (tools / name).is_file():
            files.append(name)
    files += [f"lib/lib{bitness}{lib}{dllext}" for lib in emugl_libraries]

    # 暂时保留 linux 32 位二进制
    if system == "linux":
        files += [f"emulator-{arch}" for arch in ("arm", "x86", "mips")]
        files += [f"lib/lib{lib}{dllext}" for lib in emugl_libraries]
    return files


def render_prebuilts_readme(
    provenances: list[SubdirProvenance],
    changelogs: dict[str, list[str]],
) -> str:
    """生成 prebuilts README: commit 列表 + 变更摘要"""
    out = [_PREBUILTS_README_HEADER]
    for prov in provenances:
        out.append("%-20s %s\n" % (prov.subdir, prov.description))

    out.append("\nSummary of changes:\n\n")
    for prov in provenances:
        if not prov.changed:
            out.append(f"    # No changes to {prov.subdir}\n")
            continue
        if not prov.previous_commit:
            out.append(f"    # No previous commit recorded for {prov.subdir}\n")
            continue
        cmd = (
            f"cd {prov.subdir} && git log --oneline --no-merges "
            f"{prov.previous_commit}..{prov.commit} ."
        )
        out.append(f"    $ {cmd}\n")
        for line in changelogs.get(prov.subdir, []):
            out.append(f"        {line}\n")
        out.append("\n")
    return "".join(out)


# =========================================================================
# 发布构建器
# =========================================================================

class ReleaseBuilder:
    """发布构建器 - 按配置串行执行整个发布流程"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
        temp_dir: str | Path | None = None,
    ) -> None:
        cfg = config or get_config()
        # 版本名在构建开始时固定，跨午夜的构建也使用同一个日期
        self.config = replace(cfg, revision=cfg.effective_revision())
        self.executor = executor or get_executor()
        self.product_dir = Path(self.config.product_dir).resolve()
        self.source_root = (self.product_dir / self.config.source_root).resolve()
        self.pkg_dir = Path(self.config.pkg_dir)
        self._temp_dir = Path(temp_dir) if temp_dir else None
        self._owns_temp_dir = temp_dir is None
        self.provenances: list[SubdirProvenance] = []

    @property
    def temp_dir(self) -> Path:
        """暂存目录；未指定时首次使用才创建，由 cleanup() 删除"""
        if self._temp_dir is None:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="relpack-"))
        return self._temp_dir

    def cleanup(self) -> None:
        if self._owns_temp_dir and self._temp_dir is not None:
            shutil.rmtree(self._temp_dir, ignore_errors=True)
            self._temp_dir = None

    @property
    def name(self) -> str:
        return self.config.package_basename()

    def _label(self, suffix: str) -> str:
        return f"[{self.config.effective_revision()}-{suffix}]"

    def _archive(self, pkg_file: Path, stage_root: Path) -> Path:
        package_archive_files(
            pkg_file, stage_root, [self.name],
            owner=self.config.archive_owner, mtime=self.config.archive_mtime,
        )
        return pkg_file

    # ------------------------------------------------------------------
    # 准备
    # ------------------------------------------------------------------

    def target_prebuilts_dir(self) -> Path | None:
        """--copy-prebuilts 指定的目标目录；未指定时尝试源码根目录下的 prebuilts"""
        if self.config.copy_prebuilts:
            target = Path(self.config.copy_prebuilts) / PREBUILTS_SUBDIR
            if not target.is_dir():
                raise ReleaseError(
                    f"找不到 {PREBUILTS_SUBDIR}: {self.config.copy_prebuilts}"
                )
            logger.info("使用 AOSP prebuilts 目录: %s", target)
            return target
        candidate = self.source_root / PREBUILTS_SUBDIR
        return candidate if candidate.is_dir() else None

    def check_clean_checkout(self) -> None:
        if not (self.product_dir / ".git").exists():
            raise ReleaseError(f"产品目录不是 Git 检出目录: {self.product_dir}")
        unchecked = check_unchecked_files(
            self.product_dir, self.config.unchecked_excludes, executor=self.executor,
        )
        if unchecked:
            raise ReleaseError(
                "当前目录存在未受控文件，请先删除:\n" + "\n".join(unchecked)
            )

    def collect_provenance(
        self, prebuilts_dir: Path | None = None,
    ) -> list[SubdirProvenance]:
        self.provenances = [
            extract_subdir_history(
                subdir, self.source_root, prebuilts_dir, executor=self.executor,
            )
            for subdir in self.config.source_subdirs
        ]
        return self.provenances

    # ------------------------------------------------------------------
    # 源码包
    # ------------------------------------------------------------------

    def create_sources_package(self) -> Path:
        label = self._label("sources")
        build_dir = self.temp_dir / "sources" / self.name
        for subdir in self.config.source_subdirs:
            logger.info("%s 复制 %s 源码文件", label, subdir)
            copy_git_files(
                self.source_root / subdir, build_dir / Path(subdir).name,
                executor=self.executor,
            )

        logger.info("%s 生成 README 和 rebuild.sh", label)
        (build_dir / "README").write_text(_SOURCES_README, encoding="utf-8")
        script = build_dir / "rebuild.sh"
        script.write_text(_REBUILD_SCRIPT, encoding="utf-8")
        script.chmod(0o755)

        pkg_file = self.pkg_dir / f"{self.name}-sources.tar.bz2"
        logger.info("%s 创建源码包: %s", label, pkg_file)
        return self._archive(pkg_file, build_dir.parent)

    # ------------------------------------------------------------------
    # 二进制包
    # ------------------------------------------------------------------

    def rebuild_flags(self) -> list[str]:
        flags = [f"--verbosity={self.config.verbosity}"]
        if self.config.debug:
            flags.append("--debug")
        if self.config.aosp_prebuilts_dir:
            flags.append(f"--aosp-prebuilts-dir={self.config.aosp_prebuilts_dir}")
        else:
            flags.append("--no-aosp-prebuilts")
        return flags

    def build_local(self, system: str) -> None:
        """在产品目录执行构建脚本；windows 通过 --mingw 交叉编译"""
        script = self.config.rebuild_script
        cmd = [script]
        if system == "windows":
            cmd.append("--mingw")
        cmd += self.rebuild_flags()
        logger.info("%s 从源码重新构建", self._label(system), extra={"system": system})
        try:
            run_cmd(
                cmd, cwd=str(self.product_dir),
                label=f"rebuild {system}", executor=self.executor,
            )
        except ExecutionError as e:
            raise ReleaseError(
                f"{system} 构建失败，直接运行 {' '.join(cmd[:2])} 查看原因: {e}"
            ) from e

    def create_binaries_package(self, system: str) -> Path:
        label = self._label(system)
        stage_root = self.temp_dir / system
        stage = stage_root / self.name
        tools = stage / "tools"
        objs = self.product_dir / "objs"

        emulators = [p for p in sorted(objs.glob("emulator*")) if p.is_file()]
        if not emulators:
            raise ReleaseError(f"构建产物缺失: {objs}/emulator*")

        logger.info("%s 复制模拟器二进制", label, extra={"system": system})
        tools.mkdir(parents=True, exist_ok=True)
        for binary in emulators:
            shutil.copy2(binary, tools / binary.name)
        if (objs / "lib").is_dir():
            logger.info("%s 复制 GLES 模拟库", label, extra={"system": system})
            shutil.copytree(objs / "lib", tools / "lib", dirs_exist_ok=True)

        (stage / "README").write_text(_BINARIES_README, encoding="utf-8")

        licenses = stage / "licenses"
        licenses.mkdir(exist_ok=True)
        for name in ("COPYING", "COPYING.LIB"):
            src = self.product_dir / name
            if src.is_file():
                shutil.copy2(src, licenses / name)
            else:
                logger.warning("%s 缺少许可证文件: %s", label, src)

        pkg_file = self.pkg_dir / f"{self.name}-{system}.tar.bz2"
        logger.info("%s 创建二进制包: %s", label, pkg_file)
        return self._archive(pkg_file, stage_root)

    # ------------------------------------------------------------------
    # prebuilts 安装
    # ------------------------------------------------------------------

    def copy_prebuilts(self, target_dir: Path) -> Path:
        """复制各系统二进制到 prebuilts 目录并重写 README，返回 README 路径"""
        for system in PREBUILT_SYSTEMS:
            src = self.temp_dir / system / self.name / "tools"
            if not src.is_dir():
                logger.warning("跳过 %s: 本次未构建该系统的二进制", system)
                continue
            dst = target_dir / system_arch(system)
            logger.info("[%s] 复制模拟器二进制到 %s", system_arch(system), dst)
            files = prebuilt_file_list(system, src, self.config.emugl_libraries)
            try:
                copy_directory_files(src, dst, files)
            except ExecutionError as e:
                raise ReleaseError(f"无法复制二进制到 {dst}: {e}") from e

        changelogs = {
            prov.subdir: changelog(prov, self.source_root, executor=self.executor)
            for prov in self.provenances
        }
        readme = target_dir / README_NAME
        atomic_write(readme, render_prebuilts_readme(self.provenances, changelogs))
        logger.info("已更新 %s", readme)
        return readme

    # ------------------------------------------------------------------
    # 完整流程
    # ------------------------------------------------------------------

    def run(self) -> list[Path]:
        """执行完整发布流程，返回生成的包文件；结束后删除自建的暂存目录"""
        try:
            return self._run()
        finally:
            self.cleanup()

    def _run(self) -> list[Path]:
        self.pkg_dir.mkdir(parents=True, exist_ok=True)
        self.check_clean_checkout()
        target = self.target_prebuilts_dir()
        self.collect_provenance(target)

        packages: list[Path] = []
        if self.config.sources:
            packages.append(self.create_sources_package())

        systems = host_list_to_os_list(self.config.hosts)
        logger.info("目标系统: %s", " ".join(systems))
        for system in systems:
            self.build_local(system)
            packages.append(self.create_binaries_package(system))

        if self.config.copy_prebuilts and target is not None:
            self.copy_prebuilts(target)

        logger.info("完成，输出目录: %s", self.pkg_dir)
        return packages
