"""仓库服务 — 已配置仓库的登记、索引缓存与检索

repos.yml:
    repositories:
      default: file:///srv/lpkg/index.json
      mirror: https://example.org/lpkg/index.json
"""

from __future__ import annotations

import logging
from pathlib import Path

from lpkg.core import repository
from lpkg.core.exceptions import RepositoryError
from lpkg.core.models import IndexEntry
from lpkg.core.repository import RepositoryIndex

logger = logging.getLogger(__name__)


class RepoService:
    """仓库列表与索引缓存管理"""

    def __init__(self, repos_file: str, cache_dir: str, default_repo: str = "default") -> None:
        self.repos_file = repos_file
        self.cache_dir = cache_dir
        self.default_repo = default_repo

    def list_repos(self) -> dict[str, str]:
        return repository.load_repos(self.repos_file)

    def url_of(self, name: str) -> str:
        repos = self.list_repos()
        if name not in repos:
            raise RepositoryError(f"仓库未登记: {name} (使用 lpkg repo add 登记)")
        return repos[name]

    def add(self, url: str, name: str) -> RepositoryIndex:
        """拉取索引并缓存，成功后登记到 repos.yml"""
        index = repository.fetch_index(url)
        repository.save_index(index, repository.cache_path(self.cache_dir, name))
        repository.add_repo(self.repos_file, name, url)
        logger.info("仓库 %s 已添加: %d 个包", name, len(index.packages))
        return index

    def refresh(self, name: str | None = None) -> RepositoryIndex:
        repo = name or self.default_repo
        index = repository.fetch_index(self.url_of(repo))
        repository.save_index(index, repository.cache_path(self.cache_dir, repo))
        return index

    def load_index(self, name: str | None = None, *, refresh: bool = False) -> RepositoryIndex:
        """读取索引：优先缓存，缓存缺失或 refresh=True 时重新拉取"""
        repo = name or self.default_repo
        if not refresh:
            cached = repository.load_cached_index(repository.cache_path(self.cache_dir, repo))
            if cached is not None:
                return cached
        return self.refresh(repo)

    def search(self, package: str, repo: str | None = None) -> IndexEntry | None:
        return repository.search(self.load_index(repo), package)

    def download(self, package: str, dest_dir: str | Path, repo: str | None = None) -> tuple[IndexEntry, Path]:
        index = self.load_index(repo)
        entry = repository.require(index, package)
        return entry, repository.download(entry, dest_dir)
