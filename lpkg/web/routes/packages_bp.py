"""已安装包 API Blueprint（只读）"""

from __future__ import annotations

from flask import Blueprint, Response

from lpkg.web.responses import ok

packages_bp = Blueprint("packages", __name__, url_prefix="/api/packages")


def _pkg_svc():  # type: ignore[no-untyped-def]
    from lpkg.services.container import get_container
    return get_container().packages


@packages_bp.route("", methods=["GET"])
def list_all() -> tuple[Response, int] | Response:
    records = _pkg_svc().list_packages()
    return ok({"packages": [r.to_dict() for r in records]})


@packages_bp.route("/<name>", methods=["GET"])
def get(name: str) -> tuple[Response, int] | Response:
    return ok({"name": name, "versions": _pkg_svc().info(name)})


@packages_bp.route("/<name>/files", methods=["GET"])
def files(name: str) -> tuple[Response, int] | Response:
    return ok({"name": name, "files": _pkg_svc().files(name)})
