"""统一异常体系

所有业务异常继承 RelpackError，替代散落的 ValueError / RuntimeError。
CLI 层可据此输出友好提示。

分组:
- PackageListError: 包清单解析阶段的致命错误，携带文件路径和行号
- UnpackPhaseError: 单个包解压/打补丁阶段的错误，携带包名
"""

from __future__ import annotations


class RelpackError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(RelpackError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ExecutionError(RelpackError):
    """外部命令执行失败"""

    code = "EXECUTION_ERROR"


class ReleaseError(RelpackError):
    """发布流程中的致命错误（源码目录缺失、非 Git 目录等）"""

    code = "RELEASE_ERROR"


# =========================================================================
# 包清单解析
# =========================================================================


class PackageListError(RelpackError):
    """包清单解析错误基类"""

    code = "PACKAGE_LIST_ERROR"

    def __init__(self, message: str, path: str = "", line_no: int = 0) -> None:
        self.path = path
        self.line_no = line_no
        if line_no:
            message = f"{path}:{line_no}: {message}"
        elif path:
            message = f"{path}: {message}"
        super().__init__(message)


class DocumentNotFoundError(PackageListError):
    """清单文件不存在或不可读"""

    code = "DOCUMENT_NOT_FOUND"


class ConflictingSourceFieldsError(PackageListError):
    """同一行同时定义了 URL 和 GIT"""

    code = "CONFLICTING_SOURCE_FIELDS"


class MissingBranchError(PackageListError):
    """定义了 GIT 但缺少 BRANCH"""

    code = "MISSING_BRANCH"


class MissingSourceFieldError(PackageListError):
    """URL 和 GIT 均未定义"""

    code = "MISSING_SOURCE_FIELD"


class DuplicateBasenameError(PackageListError):
    """同一个包名在清单中出现多次"""

    code = "DUPLICATE_BASENAME"

    def __init__(
        self, basename: str, path: str, line_no: int, first_line_no: int,
    ) -> None:
        self.basename = basename
        self.first_line_no = first_line_no
        super().__init__(
            f"包名重复: '{basename}' (首次出现于第 {first_line_no} 行)",
            path=path, line_no=line_no,
        )


# =========================================================================
# 查询 / 解压阶段
# =========================================================================


class UnknownPackageError(RelpackError):
    """查询的包名不在清单中"""

    code = "UNKNOWN_PACKAGE"

    def __init__(self, basename: str, available: list[str] | None = None) -> None:
        self.basename = basename
        msg = f"依赖包 '{basename}' 不在清单中"
        if available is not None:
            msg += f"。可用: {available}"
        super().__init__(msg)


class UnpackPhaseError(RelpackError):
    """单个包解压阶段错误基类"""

    code = "UNPACK_PHASE_ERROR"

    def __init__(
        self, basename: str, message: str, *, path: str = "", detail: str = "",
    ) -> None:
        self.basename = basename
        self.path = path
        self.detail = detail
        text = f"[{basename}] {message}"
        if path:
            text += f": {path}"
        if detail:
            text += f" ({detail})"
        super().__init__(text)


class DirectoryCreateError(UnpackPhaseError):
    """目标目录创建失败"""

    code = "DIRECTORY_CREATE_FAILED"


class UnpackError(UnpackPhaseError):
    """归档解压失败"""

    code = "UNPACK_FAILED"


class MissingExtractedDirectoryError(UnpackPhaseError):
    """解压后预期的源码目录不存在"""

    code = "MISSING_EXTRACTED_DIRECTORY"


class PatchApplyError(UnpackPhaseError):
    """补丁应用失败（已应用的补丁不回滚）"""

    code = "PATCH_APPLY_FAILED"

    def __init__(self, basename: str, patch_file: str, detail: str = "") -> None:
        self.patch_file = patch_file
        super().__init__(basename, "补丁应用失败", path=patch_file, detail=detail)


class ChecksumMismatchError(UnpackPhaseError):
    """归档 SHA1 校验不匹配"""

    code = "CHECKSUM_MISMATCH"
