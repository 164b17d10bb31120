"""包清单数据模型

数据类:
- PackageRecord: 清单中的一条包记录（解析后只读）
- UnpackResult: 单个包解压结果
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

# 清单行可识别的字段名
KNOWN_FIELDS = frozenset(("URL", "GIT", "BRANCH", "SHA1", "PATCHES", "SRCDIR"))

# URL 文件名可剥离的归档扩展名，多段扩展名排在前面
ARCHIVE_EXTENSIONS = (".tar.gz", ".tar.bz2", ".tar.xz", ".zip")

# GIT 来源的包统一打成该格式
GIT_ARCHIVE_EXTENSION = ".tar.xz"

# 补丁包命名约定: <full_name>-patches.tar.xz，解压出 <full_name>-patches/
PATCHES_SUFFIX = "-patches"
PATCHES_ARCHIVE_EXTENSION = ".tar.xz"


@dataclass(frozen=True)
class PackageRecord:
    """单个源码包的元信息"""

    index: int          # 1 起始的序号，按清单出现顺序
    line_no: int        # 所在清单行号
    basename: str       # 不带版本的包名，如 zlib
    version: str        # 版本号，GIT 来源时为 BRANCH
    file: str           # 归档文件名
    src_dir: str        # 解压后的源码目录名
    url: str = ""
    git_url: str = ""
    git_branch: str = ""
    sha1: str = ""
    patches: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.basename}-{self.version}"

    @property
    def is_git(self) -> bool:
        return bool(self.git_url)

    @property
    def patches_archive(self) -> str:
        """约定的补丁包文件名"""
        return f"{self.full_name}{PATCHES_SUFFIX}{PATCHES_ARCHIVE_EXTENSION}"

    @property
    def patches_dir(self) -> str:
        """补丁包解压后的目录名"""
        return f"{self.full_name}{PATCHES_SUFFIX}"

    def to_dict(self) -> dict[str, str | int]:
        data: dict[str, str | int] = asdict(self)
        data["full_name"] = self.full_name
        return data


@dataclass
class UnpackResult:
    """单个包的解压结果"""

    basename: str
    src_path: str                   # 解压出的源码目录
    applied_patches: list[str]      # 按应用顺序的补丁文件名

    @property
    def patched(self) -> bool:
        return bool(self.applied_patches)
