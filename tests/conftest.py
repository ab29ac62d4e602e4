"""共享测试夹具：临时目录配置、包数据库、.lpkg 构造器、假命令执行器"""

from __future__ import annotations

import itertools
import os
from pathlib import Path
from typing import Any, Callable

import pytest

from lpkg.core import archive, metadata
from lpkg.core.checksum import digest_tree
from lpkg.core.config import Config
from lpkg.core.metadata import MetaDocument, PackageDescriptor, Scripts
from lpkg.core.store import PackageStore
from lpkg.utils.shell import CommandResult


class FakeExecutor:
    """记录调用的命令执行器；按 argv[0] 返回预设结果"""

    def __init__(self, results: dict[str, CommandResult] | None = None) -> None:
        self.results = results or {}
        self.calls: list[dict[str, Any]] = []

    def execute(
        self, cmd: list[str], *, cwd: str = ".", env: dict[str, str] | None = None,
    ) -> CommandResult:
        self.calls.append({"cmd": list(cmd), "cwd": cwd, "env": env})
        key = Path(cmd[-1]).name if cmd[0] == "sh" else Path(cmd[0]).name
        return self.results.get(key, CommandResult(0, "", ""))


@pytest.fixture()
def cfg(tmp_path: Path) -> Config:
    """所有目录都指向 tmp_path 的配置"""
    c = Config(
        db_path=str(tmp_path / "var" / "lpkg.sqlite"),
        install_base=str(tmp_path / "opt" / "packages"),
        bin_dir=str(tmp_path / "bin"),
        applications_dir=str(tmp_path / "share" / "applications"),
        icons_dir=str(tmp_path / "share" / "icons"),
        ld_conf_dir=str(tmp_path / "ld.so.conf.d"),
        temp_dir=str(tmp_path / "tmp"),
        cache_dir=str(tmp_path / "cache"),
        download_dir=str(tmp_path / "cache" / "downloads"),
        repos_file=str(tmp_path / "etc" / "repos.yml"),
    )
    Path(c.temp_dir).mkdir(parents=True)
    return c


@pytest.fixture()
def store(cfg: Config):
    with PackageStore(cfg.db_path) as s:
        yield s


@pytest.fixture()
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


_seq = itertools.count(1)


def write_tree(root: Path, files: dict[str, bytes | str], executable: tuple[str, ...] = ()) -> None:
    for rel, content in files.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        p.write_bytes(content)
        os.chmod(p, 0o755 if rel in executable else 0o644)


@pytest.fixture()
def make_archive(tmp_path: Path) -> Callable[..., Path]:
    """构造 .lpkg 文件

    make_archive("foo", "1.0.0", {"usr/bin/foo": "..."}, executable=("usr/bin/foo",),
                 dependencies={"bar": ">=1.0.0"},
                 scripts={"post.sh": "exit 1"}, hooks={"post_install": "post.sh"})
    """

    def _make(
        name: str,
        version: str,
        files: dict[str, bytes | str] | None = None,
        *,
        executable: tuple[str, ...] = (),
        dependencies: dict[str, str] | None = None,
        scripts: dict[str, str] | None = None,
        hooks: dict[str, str] | None = None,
        checksum: str | None = None,
    ) -> Path:
        src = tmp_path / "src" / f"{name}-{version}-{next(_seq)}"
        files_dir = src / "files"
        files_dir.mkdir(parents=True)
        write_tree(files_dir, files or {}, executable)
        scripts_dir = None
        if scripts:
            scripts_dir = src / "scripts"
            write_tree(scripts_dir, scripts)
        if checksum is None and files:
            checksum = digest_tree(files_dir)
        doc = MetaDocument(
            package=PackageDescriptor(
                name=name, version=version,
                description=f"{name} test package",
                content_checksum=checksum,
                scripts=Scripts(**hooks) if hooks else None,
            ),
            dependencies=dependencies,
        )
        out = tmp_path / "dist" / f"{name}-{version}-{next(_seq)}.lpkg"
        return archive.pack_to_file(
            files_dir, metadata.serialize(doc), out, scripts_root=scripts_dir,
        )

    return _make
