"""打包服务 — 项目目录 -> .lpkg，以及包内容校验

项目目录结构:
    meta.toml
    files/      载荷
    scripts/    可选，生命周期脚本
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

from lpkg.core import archive, metadata
from lpkg.core.checksum import digest_tree, verify_tree
from lpkg.core.exceptions import ArchiveError, MetadataError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class PackResult:
    output: Path
    name: str
    version: str
    content_checksum: str


class PackService:
    """打包与内容校验"""

    def __init__(self, temp_dir: str | None = None) -> None:
        self.temp_dir = temp_dir

    def pack(self, project_dir: str | Path, output: str | Path | None = None) -> PackResult:
        """计算 files/ 摘要写回 meta.toml，再生成 <name>-<version>.lpkg"""
        project = Path(project_dir)
        meta_path = project / archive.META_NAME
        files_dir = project / archive.FILES_DIR
        if not meta_path.is_file():
            raise ValidationError(f"项目目录缺少 {archive.META_NAME}: {project}")
        if not files_dir.is_dir():
            raise ValidationError(f"项目目录缺少 {archive.FILES_DIR}/: {project}")

        doc = metadata.read_meta_file(meta_path)
        checksum = digest_tree(files_dir)
        doc = doc.with_checksum(checksum)
        metadata.write_meta_file(meta_path, doc)
        logger.info("内容校验和: %s", checksum)

        out = Path(output) if output else project / f"{doc.name}-{doc.version}.lpkg"
        scripts_dir = project / archive.SCRIPTS_DIR
        archive.pack_to_file(
            files_dir, metadata.serialize(doc), out,
            scripts_root=scripts_dir if scripts_dir.is_dir() else None,
        )
        logger.info("已生成包: %s", out)
        return PackResult(
            output=out, name=doc.name, version=doc.version, content_checksum=checksum,
        )

    def verify_content(self, archive_path: str | Path) -> str:
        """解包到临时目录，校验 files/ 与 content_checksum 一致，返回校验和

        Raises:
            ChecksumMismatchError: 内容被篡改
        """
        with tempfile.TemporaryDirectory(prefix="lpkg_verify_", dir=self.temp_dir) as tmp:
            work = Path(tmp)
            archive.unpack_file(archive_path, work)
            doc = metadata.read_meta_file(work / archive.META_NAME)
            expected = doc.package.content_checksum
            if not expected:
                raise MetadataError(f"包中没有 content_checksum: {archive_path}")
            files_dir = work / archive.FILES_DIR
            if not files_dir.is_dir():
                raise ArchiveError(f"包中缺少 {archive.FILES_DIR}/ 目录")
            calculated = verify_tree(files_dir, expected)
        logger.info("内容校验通过: %s", archive_path)
        return calculated
