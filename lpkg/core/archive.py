"""归档编解码：.lpkg 容器的打包与解包

容器格式: gzip 压缩的 tar 流
  meta.toml           元数据文档（总是第一个成员）
  files/<相对路径>     载荷文件
  scripts/<相对路径>   可选的生命周期脚本

打包是确定性的：成员按相对路径排序，头部 mtime/uid/gid 归零，
gzip 时间戳为 0，同样的输入得到字节相同的输出。
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import shutil
import tarfile
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from lpkg.core.exceptions import ArchiveError

logger = logging.getLogger(__name__)

COMPRESS_LEVEL = 6
META_NAME = "meta.toml"
FILES_DIR = "files"
SCRIPTS_DIR = "scripts"


# =========================================================================
# 确定性 tar 头部
# =========================================================================


def normalize_tarinfo(info: tarfile.TarInfo, mode: int = 0o644) -> tarfile.TarInfo:
    """清除可变的头部字段（时间戳、属主），保证输出可复现"""
    info.mtime = 0
    info.uid = 0
    info.gid = 0
    info.uname = ""
    info.gname = ""
    info.mode = mode
    return info


def regular_files(root: str | Path) -> list[tuple[str, Path]]:
    """列出 root 下所有普通文件，按相对 POSIX 路径排序

    符号链接和特殊文件被跳过，目录不单独列出。
    """
    base = Path(root)
    found: list[tuple[str, Path]] = []
    for dirpath, _dirnames, filenames in os.walk(base):
        for fn in filenames:
            p = Path(dirpath) / fn
            if p.is_symlink() or not p.is_file():
                logger.debug("跳过非普通文件: %s", p)
                continue
            found.append((p.relative_to(base).as_posix(), p))
    found.sort(key=lambda item: item[0])
    return found


def _file_mode(path: Path) -> int:
    return 0o755 if os.access(path, os.X_OK) else 0o644


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    info = normalize_tarinfo(tarfile.TarInfo(name))
    info.size = len(data)
    tar.addfile(info, io.BytesIO(data))


def _add_tree(tar: tarfile.TarFile, prefix: str, root: Path) -> int:
    count = 0
    for rel, path in regular_files(root):
        # 手工构造 TarInfo，避免 gettarinfo 把硬链接写成 LNKTYPE
        info = normalize_tarinfo(tarfile.TarInfo(f"{prefix}/{rel}"), _file_mode(path))
        info.size = path.stat().st_size
        with open(path, "rb") as f:
            tar.addfile(info, f)
        count += 1
    return count


# =========================================================================
# 打包
# =========================================================================


def pack(
    files_root: str | Path,
    meta: bytes,
    scripts_root: str | Path | None = None,
) -> bytes:
    """把 files_root 目录与元数据打包成 .lpkg 字节流

    Args:
        files_root: 载荷根目录，其内容写入 files/ 区域
        meta: meta.toml 的原始字节
        scripts_root: 可选的脚本目录，写入 scripts/ 区域

    Raises:
        ArchiveError: 目录不存在或写入失败
    """
    files_root = Path(files_root)
    if not files_root.is_dir():
        raise ArchiveError(f"载荷目录不存在: {files_root}")

    buf = io.BytesIO()
    try:
        with gzip.GzipFile(
            filename="", mode="wb", fileobj=buf,
            compresslevel=COMPRESS_LEVEL, mtime=0,
        ) as gz:
            with tarfile.open(fileobj=gz, mode="w|", format=tarfile.PAX_FORMAT) as tar:
                _add_bytes(tar, META_NAME, meta)
                n_files = _add_tree(tar, FILES_DIR, files_root)
                n_scripts = 0
                if scripts_root is not None and Path(scripts_root).is_dir():
                    n_scripts = _add_tree(tar, SCRIPTS_DIR, Path(scripts_root))
    except (OSError, tarfile.TarError) as e:
        raise ArchiveError(f"打包失败: {files_root}") from e

    logger.info("打包完成: %d 个文件, %d 个脚本", n_files, n_scripts)
    return buf.getvalue()


def pack_to_file(
    files_root: str | Path,
    meta: bytes,
    output: str | Path,
    scripts_root: str | Path | None = None,
) -> Path:
    """打包并写入 output 文件"""
    data = pack(files_root, meta, scripts_root)
    out = Path(output)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(data)
    except OSError as e:
        raise ArchiveError(f"无法写入归档文件: {out}") from e
    return out


# =========================================================================
# 解包
# =========================================================================


def _safe_member_path(name: str) -> PurePosixPath:
    """校验成员名：拒绝绝对路径和 .. 组件"""
    p = PurePosixPath(name)
    if p.is_absolute() or ".." in p.parts:
        raise ArchiveError(f"归档包含不安全的路径: {name}")
    parts = [part for part in p.parts if part not in ("", ".")]
    if not parts:
        raise ArchiveError(f"归档包含空路径成员: {name!r}")
    return PurePosixPath(*parts)


def _extract_stream(fileobj: BinaryIO, destination: Path) -> int:
    count = 0
    with tarfile.open(fileobj=fileobj, mode="r|gz") as tar:
        for member in tar:
            rel = _safe_member_path(member.name)
            target = destination.joinpath(*rel.parts)
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            if not member.isfile():
                logger.debug("跳过非普通成员: %s", member.name)
                continue
            src = tar.extractfile(member)
            if src is None:
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            os.chmod(target, 0o755 if member.mode & 0o111 else 0o644)
            count += 1
    return count


def _unpack_from(fileobj: BinaryIO, destination: str | Path) -> None:
    dest = Path(destination)
    try:
        dest.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveError(f"无法创建解包目录: {dest}") from e
    try:
        count = _extract_stream(fileobj, dest)
    except (OSError, EOFError, tarfile.TarError) as e:
        raise ArchiveError("解压或解析 tar 流失败") from e
    logger.debug("解包完成: %d 个文件 -> %s", count, dest)


def unpack(data: bytes, destination: str | Path) -> None:
    """把 .lpkg 字节流解包到 destination

    Raises:
        ArchiveError: 解压/tar 解析失败、目录无法创建或成员路径不安全
    """
    _unpack_from(io.BytesIO(data), destination)


def unpack_file(path: str | Path, destination: str | Path) -> None:
    """流式解包磁盘上的 .lpkg 文件"""
    try:
        f = open(path, "rb")
    except OSError as e:
        raise ArchiveError(f"无法打开归档文件: {path}") from e
    with f:
        _unpack_from(f, destination)


def read_meta(path: str | Path) -> bytes:
    """只读取归档中的 meta.toml"""
    try:
        with open(path, "rb") as f, tarfile.open(fileobj=f, mode="r|gz") as tar:
            for member in tar:
                if member.isfile() and _safe_member_path(member.name).as_posix() == META_NAME:
                    src = tar.extractfile(member)
                    if src is not None:
                        return src.read()
    except (OSError, EOFError, tarfile.TarError) as e:
        raise ArchiveError(f"读取归档失败: {path}") from e
    raise ArchiveError(f"归档中没有 {META_NAME}: {path}")
