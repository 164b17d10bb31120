"""包清单解析器

清单格式（逐行）:

    # 注释行
    URL=<url> [SHA1=<sha1>] [SRCDIR=<dir>] [PATCHES=<name>]
    GIT=<url> BRANCH=<name> [SHA1=<sha1>] [SRCDIR=<dir>]

空行和 # 开头的行忽略；记录行按空白拆分为 NAME=VALUE 词元。
未知字段只记录警告，不中断解析；其余错误会中止整个解析。
"""

from __future__ import annotations

import logging
from pathlib import Path

from relpack.core.exceptions import (
    ConflictingSourceFieldsError,
    DocumentNotFoundError,
    DuplicateBasenameError,
    MissingBranchError,
    MissingSourceFieldError,
    PackageListError,
)
from relpack.core.pkglist.models import (
    ARCHIVE_EXTENSIONS,
    GIT_ARCHIVE_EXTENSION,
    KNOWN_FIELDS,
    PackageRecord,
)
from relpack.core.pkglist.store import PackageListStore

logger = logging.getLogger(__name__)


def strip_archive_extension(filename: str) -> str:
    """去掉已知的归档扩展名；无法识别时原样返回

    >>> strip_archive_extension("foo.tar.bz2")
    'foo'
    >>> strip_archive_extension("foo.tar")
    'foo.tar'
    """
    for ext in ARCHIVE_EXTENSIONS:
        if filename.endswith(ext) and len(filename) > len(ext):
            return filename[: -len(ext)]
    return filename


def split_basename_version(name: str) -> tuple[str, str]:
    """按最后一个连字符拆分包名和版本

    没有连字符时整个名字作为包名，版本为空串。
    """
    basename, sep, version = name.rpartition("-")
    if not sep:
        return name, ""
    return basename, version


def _last_segment(url: str) -> str:
    return url.rstrip("/").rsplit("/", 1)[-1]


def _collect_fields(
    line: str, line_no: int, path: str, warnings: list[str],
) -> dict[str, str]:
    """拆分记录行，返回可识别字段；未知词元写入 warnings"""
    fields: dict[str, str] = {}
    for token in line.split():
        name, sep, value = token.partition("=")
        if not sep or name not in KNOWN_FIELDS:
            msg = f"{path}:{line_no}: 未知字段 '{token}'，已忽略"
            logger.warning(msg, extra={"line_no": line_no})
            warnings.append(msg)
            continue
        if value:
            fields[name] = value
    return fields


def parse_record_line(
    line: str, line_no: int, index: int, *,
    path: str = "", warnings: list[str] | None = None,
) -> PackageRecord:
    """解析单条记录行为 PackageRecord"""
    if warnings is None:
        warnings = []
    fields = _collect_fields(line, line_no, path, warnings)
    url = fields.get("URL", "")
    git_url = fields.get("GIT", "")
    branch = fields.get("BRANCH", "")

    if url and git_url:
        raise ConflictingSourceFieldsError(
            "URL 和 GIT 不能同时定义", path=path, line_no=line_no,
        )

    if url:
        file = _last_segment(url)
        if not file:
            raise PackageListError(
                f"无法从 URL 解析文件名: {url}", path=path, line_no=line_no,
            )
        basename, version = split_basename_version(strip_archive_extension(file))
    elif git_url:
        if not branch:
            raise MissingBranchError(
                f"GIT 来源必须指定 BRANCH: {git_url}", path=path, line_no=line_no,
            )
        basename = _last_segment(git_url).removesuffix(".git")
        if not basename:
            raise PackageListError(
                f"无法从 GIT 地址解析包名: {git_url}", path=path, line_no=line_no,
            )
        version = branch
        file = f"{basename}-{version}{GIT_ARCHIVE_EXTENSION}"
    else:
        raise MissingSourceFieldError(
            "必须定义 URL 或 GIT", path=path, line_no=line_no,
        )

    return PackageRecord(
        index=index,
        line_no=line_no,
        basename=basename,
        version=version,
        file=file,
        src_dir=fields.get("SRCDIR", f"{basename}-{version}"),
        url=url,
        git_url=git_url,
        git_branch=branch if git_url else "",
        sha1=fields.get("SHA1", ""),
        patches=fields.get("PATCHES", ""),
    )


def parse_package_list_text(text: str, path: str = "<string>") -> PackageListStore:
    """解析清单文本，任一致命错误都不会返回部分结果"""
    records: list[PackageRecord] = []
    warnings: list[str] = []
    first_seen: dict[str, int] = {}

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        record = parse_record_line(
            line, line_no, len(records) + 1, path=path, warnings=warnings,
        )
        if record.basename in first_seen:
            raise DuplicateBasenameError(
                record.basename, path, line_no, first_seen[record.basename],
            )
        first_seen[record.basename] = line_no
        records.append(record)

    logger.info("已解析 %d 个源码包: %s", len(records), path)
    return PackageListStore(records, path=path, warnings=warnings)


def parse_package_list(path: str | Path) -> PackageListStore:
    """从文件解析包清单

    异常:
        DocumentNotFoundError: 文件不存在或不可读
        PackageListError 子类: 内容错误（带行号）
    """
    p = Path(path)
    if not p.is_file():
        raise DocumentNotFoundError("清单文件不存在", path=str(p))
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentNotFoundError(f"清单文件不可读 ({e})", path=str(p)) from e
    except UnicodeDecodeError as e:
        raise PackageListError(
            f"清单文件不是有效的 UTF-8 (字节偏移 {e.start})", path=str(p),
        ) from e
    return parse_package_list_text(text, path=str(p))
