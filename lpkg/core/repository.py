"""仓库索引 — 拉取、缓存、检索与下载

索引 JSON 格式:
    {"packages": {"foo": {"name": "foo", "version": "1.2.0",
                          "download_url": "https://.../foo-1.2.0.lpkg",
                          "signature_url": "https://.../foo-1.2.0.lpkg.sig"}}}

支持 file:// 与 http(s)://；download_url 为相对路径时按索引地址解析。
已配置的仓库列表保存在 repos.yml（名称 -> 索引 URL）。
"""

from __future__ import annotations

import json
import logging
import shutil
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urljoin, urlparse

from lpkg.core.exceptions import PackageNotFoundError, RepositoryError
from lpkg.core.models import IndexEntry
from lpkg.utils.net import file_url_path, validate_url_scheme
from lpkg.utils.yaml_io import atomic_write, load_yaml, save_yaml

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"


@dataclass
class RepositoryIndex:
    packages: dict[str, IndexEntry] = field(default_factory=dict)

    def get(self, name: str) -> IndexEntry | None:
        return self.packages.get(name)

    def to_dict(self) -> dict[str, Any]:
        return {"packages": {k: v.to_dict() for k, v in self.packages.items()}}


def parse_index(data: Any, base_url: str = "") -> RepositoryIndex:
    """解析索引字典；base_url 非空时把相对下载地址解析为绝对地址"""
    if not isinstance(data, dict) or not isinstance(data.get("packages"), dict):
        raise RepositoryError("仓库索引格式无效: 缺少 packages 表")
    packages: dict[str, IndexEntry] = {}
    for name, raw in data["packages"].items():
        if not isinstance(raw, dict):
            raise RepositoryError(f"仓库索引条目 {name} 格式无效")
        try:
            entry = IndexEntry.from_dict(name, raw)
        except (KeyError, TypeError) as e:
            raise RepositoryError(f"仓库索引条目 {name} 格式无效: {e}") from e
        if base_url:
            entry.download_url = _resolve(base_url, entry.download_url)
            if entry.signature_url:
                entry.signature_url = _resolve(base_url, entry.signature_url)
        packages[name] = entry
    return RepositoryIndex(packages=packages)


def _resolve(base_url: str, url: str) -> str:
    return url if urlparse(url).scheme else urljoin(base_url, url)


# =========================================================================
# 传输
# =========================================================================


def fetch_bytes(url: str) -> bytes:
    """读取 file:// 或 http(s):// 资源"""
    validate_url_scheme(url, context="仓库")
    try:
        if urlparse(url).scheme == "file":
            return Path(file_url_path(url)).read_bytes()
        with urllib.request.urlopen(url) as resp:  # nosec B310
            return resp.read()
    except (urllib.error.HTTPError, urllib.error.URLError, OSError) as e:
        raise RepositoryError(f"获取失败: {url}") from e


def fetch_index(url: str) -> RepositoryIndex:
    logger.info("拉取仓库索引: %s", url)
    raw = fetch_bytes(url)
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RepositoryError(f"仓库索引不是有效的 JSON: {url}") from e
    return parse_index(data, base_url=url)


def save_index(index: RepositoryIndex, cache_path: str | Path) -> Path:
    p = Path(cache_path)
    try:
        atomic_write(p, json.dumps(index.to_dict(), ensure_ascii=False, indent=2))
    except OSError as e:
        raise RepositoryError(f"无法写入索引缓存: {p}") from e
    logger.info("仓库索引已缓存: %s", p)
    return p


def load_cached_index(cache_path: str | Path) -> RepositoryIndex | None:
    """读取缓存索引，缓存不存在返回 None"""
    p = Path(cache_path)
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise RepositoryError(f"索引缓存损坏: {p}") from e
    return parse_index(data)


def search(index: RepositoryIndex, name: str) -> IndexEntry | None:
    return index.get(name)


def require(index: RepositoryIndex, name: str) -> IndexEntry:
    entry = index.get(name)
    if entry is None:
        raise PackageNotFoundError(f"仓库中没有包: {name}")
    return entry


def download_url(url: str, destination: str | Path) -> Path:
    """把 url 指向的文件保存到 destination"""
    dest = Path(destination)
    dest.parent.mkdir(parents=True, exist_ok=True)
    validate_url_scheme(url, context="下载")
    try:
        if urlparse(url).scheme == "file":
            shutil.copyfile(file_url_path(url), dest)
        else:
            urllib.request.urlretrieve(url, str(dest))  # nosec B310
    except (urllib.error.HTTPError, urllib.error.URLError, OSError) as e:
        dest.unlink(missing_ok=True)
        raise RepositoryError(f"下载失败: {url}") from e
    return dest


def _check_component(value: str, field_name: str) -> None:
    """索引中的名称 / 版本会拼进本地文件名，不允许路径分隔符与 .."""
    if not value or "/" in value or "\\" in value or "\0" in value or ".." in value:
        raise RepositoryError(f"仓库索引中的 {field_name} 不能用作文件名: {value!r}")


def download(entry: IndexEntry, dest_dir: str | Path) -> Path:
    """下载包到 dest_dir/<name>-<version>.lpkg

    Raises:
        RepositoryError: 名称或版本含路径成分，或下载失败
    """
    _check_component(entry.name, "name")
    _check_component(entry.version, "version")
    dest = Path(dest_dir) / f"{entry.name}-{entry.version}.lpkg"
    logger.info("下载 %s-%s: %s -> %s", entry.name, entry.version, entry.download_url, dest)
    return download_url(entry.download_url, dest)


# =========================================================================
# 仓库列表 (repos.yml)
# =========================================================================


def load_repos(repos_file: str | Path) -> dict[str, str]:
    data = load_yaml(repos_file)
    repos = data.get("repositories") or {}
    return {str(k): str(v) for k, v in repos.items()}


def add_repo(repos_file: str | Path, name: str, url: str) -> None:
    validate_url_scheme(url, context="仓库")
    data = load_yaml(repos_file)
    repos = data.get("repositories") or {}
    repos[name] = url
    data["repositories"] = repos
    save_yaml(repos_file, data)
    logger.info("仓库已登记: %s -> %s", name, url)


def cache_path(cache_dir: str | Path, repo_name: str) -> Path:
    return Path(cache_dir) / "repos" / f"{repo_name}.json"
