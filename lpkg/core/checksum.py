"""内容寻址：SHA-256 摘要

digest_tree 对目录树做规范化 tar 序列化后求摘要：
路径排序、头部归一化，同一逻辑目录树在任何文件系统上得到相同结果。
tar 流直接写入哈希对象，内存占用与目录大小无关。
"""

from __future__ import annotations

import hashlib
import logging
import tarfile
from pathlib import Path

from lpkg.core.archive import normalize_tarinfo, regular_files
from lpkg.core.exceptions import ChecksumMismatchError, EmptyContentError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536


class _HashWriter:
    """只实现 write 的文件对象，把写入的字节喂给 sha256"""

    def __init__(self) -> None:
        self._hash = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self._hash.update(data)
        return len(data)

    def hexdigest(self) -> str:
        return self._hash.hexdigest()


def digest_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def digest_file(path: str | Path, chunk_size: int = CHUNK_SIZE) -> str:
    """流式计算单个文件的 SHA-256"""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def digest_tree(root: str | Path) -> str:
    """计算目录树的内容摘要

    Raises:
        EmptyContentError: 目录下没有普通文件
    """
    files = regular_files(root)
    if not files:
        raise EmptyContentError(f"目录中没有可计算校验和的文件: {root}")

    writer = _HashWriter()
    with tarfile.open(fileobj=writer, mode="w|", format=tarfile.PAX_FORMAT) as tar:
        for rel, path in files:
            info = normalize_tarinfo(tarfile.TarInfo(rel))
            info.size = path.stat().st_size
            with open(path, "rb") as f:
                tar.addfile(info, f)
    digest = writer.hexdigest()
    logger.debug("目录摘要 %s: %d 个文件 -> %s", root, len(files), digest)
    return digest


def verify_tree(root: str | Path, expected: str) -> str:
    """校验目录树摘要，不匹配时抛 ChecksumMismatchError，返回计算值"""
    calculated = digest_tree(root)
    if calculated != expected.strip().lower():
        raise ChecksumMismatchError(expected, calculated)
    return calculated
