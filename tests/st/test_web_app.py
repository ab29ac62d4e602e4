"""Web API 端点测试"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import lpkg.core.config as cfgmod
from lpkg.core.store import PackageStore
from lpkg.services.container import reset_container
from lpkg.services.lifecycle import Installer
from lpkg.web.app import create_app


@pytest.fixture()
def client(cfg, monkeypatch: pytest.MonkeyPatch):
    """创建 Flask 测试客户端，临时数据目录"""
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    app = create_app()
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
    reset_container()


@pytest.fixture()
def installed(cfg, make_archive):
    path = make_archive("foo", "1.0.0", {"usr/bin/foo": "#!/bin/sh\n", "README": "r"},
                        executable=("usr/bin/foo",), dependencies={})
    with PackageStore(cfg.db_path) as store:
        return Installer(store, cfg).install(path)


class TestGlobalErrorHandlers:
    def test_404_returns_json(self, client) -> None:
        resp = client.get("/api/nonexistent")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_405_returns_json(self, client) -> None:
        resp = client.delete("/api/packages")
        assert resp.status_code == 405
        assert "error" in resp.get_json()

    def test_missing_database_is_500(self, client) -> None:
        resp = client.get("/api/packages")
        assert resp.status_code == 500
        assert resp.get_json()["code"] == "STORE_ERROR"


class TestPackagesApi:
    def test_list(self, client, installed) -> None:
        resp = client.get("/api/packages")
        assert resp.status_code == 200
        packages = resp.get_json()["packages"]
        assert [(p["name"], p["version"]) for p in packages] == [("foo", "1.0.0")]

    def test_detail(self, client, installed) -> None:
        data = client.get("/api/packages/foo").get_json()
        assert data["versions"][0]["file_count"] == 3
        assert data["versions"][0]["dependencies"] == []

    def test_files(self, client, installed) -> None:
        files = client.get("/api/packages/foo/files").get_json()["files"]
        paths = {f["path"] for f in files}
        assert str(Path(installed.install_root) / "README") in paths

    def test_unknown_package(self, client, installed) -> None:
        resp = client.get("/api/packages/ghost")
        assert resp.status_code == 404
        data = resp.get_json()
        assert data["code"] == "PACKAGE_NOT_FOUND"
        assert "ghost" in data["error"]


class TestStaticRepo:
    @pytest.fixture()
    def serve_dir(self, cfg, tmp_path: Path) -> Path:
        d = tmp_path / "serve"
        (d / "files").mkdir(parents=True)
        (d / "index.json").write_text(json.dumps({"packages": {}}), encoding="utf-8")
        (d / "files" / "foo-1.0.0.lpkg").write_bytes(b"pkg-bytes")
        (d / "secret.txt").write_text("no", encoding="utf-8")
        cfg.repo_serve_dir = str(d)
        return d

    def test_not_configured(self, client) -> None:
        resp = client.get("/repo/index.json")
        assert resp.status_code == 404
        assert "repo_serve_dir" in resp.get_json()["error"]

    def test_index(self, client, serve_dir) -> None:
        resp = client.get("/repo/index.json")
        assert resp.status_code == 200
        assert resp.get_json() == {"packages": {}}

    def test_package_file(self, client, serve_dir) -> None:
        resp = client.get("/repo/files/foo-1.0.0.lpkg")
        assert resp.status_code == 200
        assert resp.data == b"pkg-bytes"

    def test_traversal_rejected(self, client, serve_dir) -> None:
        resp = client.get("/repo/files/..%2Fsecret.txt")
        assert resp.status_code == 404

    def test_missing_file(self, client, serve_dir) -> None:
        assert client.get("/repo/files/nope.lpkg").status_code == 404
