"""包清单存储 - 解析结果的只读索引

所有 get_* 查询对未知包名返回 None，不抛异常；
需要强制存在时使用 require()。
"""

from __future__ import annotations

from collections.abc import Iterator

from relpack.core.exceptions import UnknownPackageError
from relpack.core.pkglist.models import PackageRecord


class PackageListStore:
    """按清单顺序保存的包记录集合，并按包名建立索引"""

    def __init__(
        self,
        records: list[PackageRecord],
        path: str = "",
        warnings: list[str] | None = None,
    ) -> None:
        self.path = path
        self.warnings = list(warnings or [])
        self._records = tuple(records)
        self._index = {r.basename: pos for pos, r in enumerate(self._records)}

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[PackageRecord]:
        return iter(self._records)

    def __contains__(self, basename: object) -> bool:
        return basename in self._index

    # ------------------------------------------------------------------
    # 记录查询
    # ------------------------------------------------------------------

    def get(self, basename: str) -> PackageRecord | None:
        pos = self._index.get(basename)
        return None if pos is None else self._records[pos]

    def require(self, basename: str) -> PackageRecord:
        record = self.get(basename)
        if record is None:
            raise UnknownPackageError(basename, self.list_basenames())
        return record

    def list_basenames(self) -> list[str]:
        """按清单顺序返回全部包名"""
        return [r.basename for r in self._records]

    # ------------------------------------------------------------------
    # 字段查询
    # ------------------------------------------------------------------

    def get_version(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.version if record else None

    def get_full_name(self, basename: str) -> str | None:
        """<basename>-<version>"""
        record = self.get(basename)
        return record.full_name if record else None

    def get_filename(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.file if record else None

    def get_url(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.url if record else None

    def get_git_url(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.git_url if record else None

    def get_git_branch(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.git_branch if record else None

    def get_sha1(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.sha1 if record else None

    def get_patches(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.patches if record else None

    def get_src_dir(self, basename: str) -> str | None:
        record = self.get(basename)
        return record.src_dir if record else None

    def list_packages(self) -> list[dict[str, str]]:
        """格式化包列表用于展示"""
        results = []
        for r in self._records:
            info: dict[str, str] = {
                "name": r.basename,
                "version": r.version,
                "file": r.file,
                "source": "git" if r.is_git else "url",
                "location": r.git_url or r.url,
            }
            if r.src_dir != r.full_name:
                info["src_dir"] = r.src_dir
            results.append(info)
        return results
