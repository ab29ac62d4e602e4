"""ServiceContainer 单元测试"""

from __future__ import annotations

import pytest

import lpkg.core.config as cfgmod
from lpkg.services.builders import CargoBuilder
from lpkg.services.container import (
    ServiceContainer,
    get_container,
    reset_container,
)
from lpkg.services.lifecycle import Installer, Remover, Updater


@pytest.fixture(autouse=True)
def _setup_config(cfg, monkeypatch: pytest.MonkeyPatch):
    """确保测试有独立的配置和数据目录"""
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield
    reset_container()


class TestServiceContainer:
    def test_lazy_loading(self) -> None:
        c = ServiceContainer()
        assert len(c._instances) == 0
        _ = c.repository
        assert "repository" in c._instances

    def test_shared_instances(self) -> None:
        c = ServiceContainer()
        assert c.pack is c.pack
        assert c.packages is c.packages

    def test_uses_global_config(self, cfg) -> None:
        assert ServiceContainer().config is cfg

    def test_open_store_returns_new_handles(self, cfg) -> None:
        c = ServiceContainer()
        s1, s2 = c.open_store(), c.open_store(read_only=True)
        assert s1 is not s2
        assert s2.read_only

    def test_lifecycle_factories(self, store, fake_executor) -> None:
        c = ServiceContainer(executor=fake_executor)
        installer = c.installer(store)
        assert isinstance(installer, Installer)
        assert installer.executor is fake_executor
        assert isinstance(c.remover(store), Remover)
        updater = c.updater(store)
        assert isinstance(updater, Updater)
        assert updater.installer.store is store

    def test_builder_factory(self, tmp_path) -> None:
        (tmp_path / "Cargo.toml").write_text('[package]\nname="a"\nversion="1"\n', encoding="utf-8")
        assert isinstance(ServiceContainer().builder(tmp_path), CargoBuilder)


class TestGlobalContainer:
    def test_singleton(self) -> None:
        assert get_container() is get_container()

    def test_reset(self) -> None:
        c1 = get_container()
        reset_container()
        assert get_container() is not c1
