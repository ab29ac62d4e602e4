"""包存储：SQLite 适配器

四张表: packages / package_files / dependencies / conflicts，
后三者通过外键级联删除。每次命令调用由调用方 open() / close()，
检查类命令以只读模式打开，变更类命令以读写模式打开。
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from lpkg.core.exceptions import AlreadyInstalledError, StoreError
from lpkg.core.models import DependencyRecord, PackageFileRecord, PackageRecord

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS packages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    version TEXT NOT NULL,
    description TEXT,
    license TEXT,
    homepage TEXT,
    repository TEXT,
    authors TEXT,
    archive_path TEXT,
    installed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(name, version)
);
CREATE TABLE IF NOT EXISTS package_files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    package_id INTEGER NOT NULL,
    path TEXT NOT NULL,
    checksum TEXT,
    FOREIGN KEY (package_id) REFERENCES packages(id) ON DELETE CASCADE,
    UNIQUE(package_id, path)
);
CREATE TABLE IF NOT EXISTS dependencies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    package_id INTEGER NOT NULL,
    dependency_name TEXT NOT NULL,
    dependency_version TEXT,
    FOREIGN KEY (package_id) REFERENCES packages(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS conflicts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    package_id INTEGER NOT NULL,
    conflict_name TEXT NOT NULL,
    conflict_version TEXT,
    FOREIGN KEY (package_id) REFERENCES packages(id) ON DELETE CASCADE
);
"""

_PACKAGE_COLUMNS = (
    "id, name, version, description, license, homepage, "
    "repository, authors, archive_path, installed_at"
)


def _row_to_package(row: sqlite3.Row) -> PackageRecord:
    return PackageRecord(
        id=row["id"],
        name=row["name"],
        version=row["version"],
        description=row["description"],
        license=row["license"],
        homepage=row["homepage"],
        repository=row["repository"],
        authors=row["authors"],
        archive_path=row["archive_path"],
        installed_at=str(row["installed_at"] or ""),
    )


class PackageStore:
    """已安装包数据库

    用法:
        with PackageStore(cfg.db_path) as store:
            store.add_package(name="foo", version="1.0.0")
    """

    def __init__(self, db_path: str | Path, *, read_only: bool = False) -> None:
        self.db_path = Path(db_path)
        self.read_only = read_only
        self._conn: sqlite3.Connection | None = None

    # ---- 生命周期 ----

    def open(self) -> PackageStore:
        if self._conn is not None:
            return self
        try:
            if self.read_only:
                if not self.db_path.exists():
                    raise StoreError(
                        f"数据库不存在: {self.db_path}，请先运行 lpkg setup"
                    )
                uri = self.db_path.resolve().as_uri() + "?mode=ro"
                conn = sqlite3.connect(uri, uri=True)
            else:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"无法打开数据库: {self.db_path}") from e
        self._conn = conn
        if not self.read_only:
            self.init_schema()
        logger.debug("数据库已打开: %s (只读=%s)", self.db_path, self.read_only)
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> PackageStore:
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("数据库未打开")
        return self._conn

    @contextmanager
    def _write(self, action: str) -> Iterator[sqlite3.Connection]:
        """写事务：成功提交，失败回滚并包装为 StoreError"""
        if self.read_only:
            raise StoreError(f"{action}失败: 数据库以只读模式打开")
        conn = self.conn
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StoreError(f"{action}失败: {e}") from e

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"查询失败: {e}") from e

    def init_schema(self) -> None:
        try:
            self.conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StoreError(f"初始化数据库结构失败: {e}") from e

    # ---- 写入 ----

    def add_package(
        self, *,
        name: str,
        version: str,
        description: str | None = None,
        license: str | None = None,
        homepage: str | None = None,
        repository: str | None = None,
        authors: list[str] | None = None,
        archive_path: str | None = None,
    ) -> int:
        """登记包记录，(name, version) 冲突抛 AlreadyInstalledError"""
        authors_text = ", ".join(authors) if authors else None
        try:
            with self._write("登记包") as conn:
                cur = conn.execute(
                    "INSERT INTO packages (name, version, description, license, "
                    "homepage, repository, authors, archive_path) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (name, version, description, license, homepage,
                     repository, authors_text, archive_path),
                )
        except StoreError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise AlreadyInstalledError(name, version) from e.__cause__
            raise
        package_id = int(cur.lastrowid)
        logger.debug("包记录已登记: %s-%s (id=%d)", name, version, package_id)
        return package_id

    def add_package_file(
        self, package_id: int, path: str, checksum: str | None = None,
    ) -> None:
        with self._write("登记文件") as conn:
            conn.execute(
                "INSERT INTO package_files (package_id, path, checksum) "
                "VALUES (?, ?, ?)",
                (package_id, path, checksum),
            )

    def add_dependency(
        self, package_id: int, name: str, constraint: str | None = None,
    ) -> None:
        with self._write("登记依赖") as conn:
            conn.execute(
                "INSERT INTO dependencies (package_id, dependency_name, "
                "dependency_version) VALUES (?, ?, ?)",
                (package_id, name, constraint),
            )

    def add_conflict(
        self, package_id: int, name: str, constraint: str | None = None,
    ) -> None:
        with self._write("登记冲突") as conn:
            conn.execute(
                "INSERT INTO conflicts (package_id, conflict_name, "
                "conflict_version) VALUES (?, ?, ?)",
                (package_id, name, constraint),
            )

    def delete_package(self, package_id: int) -> None:
        """删除包记录，级联删除其文件 / 依赖 / 冲突记录；id 不存在时无操作"""
        with self._write("删除包记录") as conn:
            conn.execute("DELETE FROM packages WHERE id = ?", (package_id,))

    def delete_package_file(self, package_id: int, path: str) -> None:
        with self._write("删除文件记录") as conn:
            conn.execute(
                "DELETE FROM package_files WHERE package_id = ? AND path = ?",
                (package_id, path),
            )

    # ---- 查询 ----

    def get_package(self, package_id: int) -> PackageRecord | None:
        rows = self._query(
            f"SELECT {_PACKAGE_COLUMNS} FROM packages WHERE id = ?",
            (package_id,),
        )
        return _row_to_package(rows[0]) if rows else None

    def find_by_name(
        self, name: str, version: str | None = None,
    ) -> list[PackageRecord]:
        if version is None:
            rows = self._query(
                f"SELECT {_PACKAGE_COLUMNS} FROM packages WHERE name = ? ORDER BY id",
                (name,),
            )
        else:
            rows = self._query(
                f"SELECT {_PACKAGE_COLUMNS} FROM packages "
                "WHERE name = ? AND version = ? ORDER BY id",
                (name, version),
            )
        return [_row_to_package(r) for r in rows]

    def installed_versions(self, name: str) -> list[str]:
        rows = self._query(
            "SELECT version FROM packages WHERE name = ? ORDER BY id", (name,),
        )
        return [r["version"] for r in rows]

    def is_installed(self, name: str, version: str) -> bool:
        return bool(self.find_by_name(name, version))

    def list_packages(self) -> list[PackageRecord]:
        rows = self._query(
            f"SELECT {_PACKAGE_COLUMNS} FROM packages ORDER BY name, version",
        )
        return [_row_to_package(r) for r in rows]

    def get_files(self, package_id: int) -> list[PackageFileRecord]:
        rows = self._query(
            "SELECT package_id, path, checksum FROM package_files "
            "WHERE package_id = ? ORDER BY id",
            (package_id,),
        )
        return [PackageFileRecord(r["package_id"], r["path"], r["checksum"]) for r in rows]

    def get_dependencies(self, package_id: int) -> list[DependencyRecord]:
        rows = self._query(
            "SELECT package_id, dependency_name, dependency_version "
            "FROM dependencies WHERE package_id = ? ORDER BY id",
            (package_id,),
        )
        return [
            DependencyRecord(r["package_id"], r["dependency_name"], r["dependency_version"])
            for r in rows
        ]

    def get_conflicts(self, package_id: int) -> list[tuple[str, str | None]]:
        rows = self._query(
            "SELECT conflict_name, conflict_version "
            "FROM conflicts WHERE package_id = ? ORDER BY id",
            (package_id,),
        )
        return [(r["conflict_name"], r["conflict_version"]) for r in rows]

    def count_rows(self, table: str) -> int:
        """统计表行数（诊断与测试使用）"""
        if table not in ("packages", "package_files", "dependencies", "conflicts"):
            raise StoreError(f"未知的表: {table}")
        rows = self._query(f"SELECT COUNT(*) AS n FROM {table}")
        return int(rows[0]["n"])
