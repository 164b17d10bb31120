"""归档工具测试 - 解压、可复现打包、文件复制"""

from __future__ import annotations

import tarfile
import zipfile
from pathlib import Path

import pytest
from helpers import FakeExecutor, make_tar

from relpack.core.exceptions import ExecutionError
from relpack.utils.archive import (
    archive_unpack,
    copy_directory_files,
    copy_git_files,
    package_archive_files,
)

# 2015-01-01 00:00:00 UTC
FIXED_MTIME = 1420070400


def _stage(root: Path) -> Path:
    """构造打包暂存目录 root/pkg-1.0/..."""
    pkg = root / "pkg-1.0"
    (pkg / "tools" / "lib").mkdir(parents=True)
    (pkg / "tools" / "emulator").write_text("bin\n")
    (pkg / "tools" / "lib" / "libfoo.so").write_text("lib\n")
    (pkg / "README").write_text("readme\n")
    return root


class TestArchiveUnpack:
    @pytest.mark.parametrize("name", ["a.tar.gz", "a.tgz", "a.tar.bz2", "a.tar.xz", "a.tar"])
    def test_tar_variants(self, tmp_path: Path, name: str) -> None:
        archive = make_tar(tmp_path / name, {"a/file.txt": "hello"})
        archive_unpack(archive, tmp_path / "out")
        assert (tmp_path / "out" / "a" / "file.txt").read_text() == "hello"

    def test_zip(self, tmp_path: Path) -> None:
        archive = tmp_path / "a.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("a/file.txt", "hello")
        archive_unpack(archive, tmp_path / "out")
        assert (tmp_path / "out" / "a" / "file.txt").read_text() == "hello"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            archive_unpack(tmp_path / "nope.tar.gz", tmp_path / "out")

    def test_unknown_extension(self, tmp_path: Path) -> None:
        (tmp_path / "a.7z").write_bytes(b"")
        with pytest.raises(ValueError, match="无法识别的归档格式"):
            archive_unpack(tmp_path / "a.7z", tmp_path / "out")

    def test_path_traversal_rejected(self, tmp_path: Path) -> None:
        archive = make_tar(tmp_path / "evil.tar", {"../escape.txt": "x"})
        with pytest.raises(tarfile.TarError):
            archive_unpack(archive, tmp_path / "out")
        assert not (tmp_path / "escape.txt").exists()


class TestPackageArchiveFiles:
    def test_members_sorted_and_normalised(self, tmp_path: Path) -> None:
        stage = _stage(tmp_path / "stage")
        pkg = tmp_path / "out" / "pkg-1.0-linux.tar.bz2"
        members = package_archive_files(pkg, stage, ["pkg-1.0"])

        assert members == [
            "pkg-1.0/README",
            "pkg-1.0/tools/emulator",
            "pkg-1.0/tools/lib/libfoo.so",
        ]
        with tarfile.open(pkg) as tf:
            infos = tf.getmembers()
        assert [i.name for i in infos] == members
        for info in infos:
            assert info.uname == "android"
            assert info.gname == "android"
            assert info.uid == 0
            assert info.mtime == FIXED_MTIME

    def test_byte_identical_output(self, tmp_path: Path) -> None:
        stage = _stage(tmp_path / "stage")
        first = tmp_path / "a" / "pkg.tar"
        second = tmp_path / "b" / "pkg.tar"
        package_archive_files(first, stage, ["pkg-1.0"])
        package_archive_files(second, stage, ["pkg-1.0"])
        assert first.read_bytes() == second.read_bytes()

    def test_custom_owner_and_mtime(self, tmp_path: Path) -> None:
        stage = _stage(tmp_path / "stage")
        pkg = tmp_path / "pkg.tar.gz"
        package_archive_files(
            pkg, stage, ["pkg-1.0/README"], owner="builder", mtime="2020-01-01 00:00:00",
        )
        with tarfile.open(pkg) as tf:
            (info,) = tf.getmembers()
        assert info.uname == "builder"
        assert info.mtime == 1577836800

    def test_glob_filters(self, tmp_path: Path) -> None:
        stage = _stage(tmp_path / "stage")
        members = package_archive_files(
            tmp_path / "pkg.tar.xz", stage, ["pkg-1.0/tools/emu*", "pkg-1.0/README"],
        )
        assert members == ["pkg-1.0/README", "pkg-1.0/tools/emulator"]

    def test_filter_without_match(self, tmp_path: Path) -> None:
        stage = _stage(tmp_path / "stage")
        with pytest.raises(ExecutionError, match="找不到匹配的文件"):
            package_archive_files(tmp_path / "pkg.tar", stage, ["missing-*"])

    def test_unsupported_format(self, tmp_path: Path) -> None:
        stage = _stage(tmp_path / "stage")
        with pytest.raises(ExecutionError, match="不支持的打包格式"):
            package_archive_files(tmp_path / "pkg.zip", stage, ["pkg-1.0"])


class TestCopyDirectoryFiles:
    def test_copy_selected(self, tmp_path: Path) -> None:
        src = _stage(tmp_path / "stage") / "pkg-1.0" / "tools"
        dst = tmp_path / "dst"
        copy_directory_files(src, dst, ["emulator", "lib/libfoo.so"])
        assert (dst / "emulator").read_text() == "bin\n"
        assert (dst / "lib" / "libfoo.so").is_file()

    def test_copy_everything(self, tmp_path: Path) -> None:
        src = _stage(tmp_path / "stage") / "pkg-1.0"
        dst = tmp_path / "dst"
        copy_directory_files(src, dst)
        assert (dst / "tools" / "lib" / "libfoo.so").is_file()
        assert (dst / "README").is_file()

    def test_missing_file(self, tmp_path: Path) -> None:
        src = _stage(tmp_path / "stage") / "pkg-1.0" / "tools"
        with pytest.raises(ExecutionError, match="源文件不存在"):
            copy_directory_files(src, tmp_path / "dst", ["emulator64-arm"])

    def test_missing_source_directory(self, tmp_path: Path) -> None:
        with pytest.raises(ExecutionError, match="源目录不存在"):
            copy_directory_files(tmp_path / "nope", tmp_path / "dst")


class TestCopyGitFiles:
    def test_copies_tracked_files(self, tmp_path: Path, fake_executor: FakeExecutor) -> None:
        src = tmp_path / "repo"
        (src / "sub").mkdir(parents=True)
        (src / "a.c").write_text("a")
        (src / "sub" / "b with space.h").write_text("b")
        (src / "untracked.o").write_text("o")
        fake_executor.on(["git", "ls-files"], stdout="a.c\0sub/b with space.h\0")

        files = copy_git_files(src, tmp_path / "dst", executor=fake_executor)

        assert files == ["a.c", "sub/b with space.h"]
        assert (tmp_path / "dst" / "sub" / "b with space.h").read_text() == "b"
        assert not (tmp_path / "dst" / "untracked.o").exists()
        assert fake_executor.calls[0] == (["git", "ls-files", "-z"], str(src))

    def test_git_failure(self, tmp_path: Path, fake_executor: FakeExecutor) -> None:
        fake_executor.on(["git"], returncode=128, stderr="not a git repository")
        with pytest.raises(ExecutionError, match="git ls-files失败"):
            copy_git_files(tmp_path, tmp_path / "dst", executor=fake_executor)

    def test_submodule_entry_skipped(self, tmp_path: Path, fake_executor: FakeExecutor) -> None:
        src = tmp_path / "repo"
        (src / "third_party" / "dtc").mkdir(parents=True)
        (src / "third_party" / "dtc" / "Makefile").write_text("all:\n")
        (src / "a.c").write_text("a")
        fake_executor.on(["git", "ls-files"], stdout="a.c\0third_party/dtc\0")

        files = copy_git_files(src, tmp_path / "dst", executor=fake_executor)

        assert files == ["a.c", "third_party/dtc"]
        assert (tmp_path / "dst" / "a.c").is_file()
        assert not (tmp_path / "dst" / "third_party").exists()
