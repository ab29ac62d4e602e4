"""静态仓库 Blueprint

把 repo_serve_dir 暴露为 lpkg 仓库:
    GET /repo/index.json
    GET /repo/files/<filename>   .lpkg 与 .sig
"""

from __future__ import annotations

from pathlib import Path

from flask import Blueprint, Response, abort, send_from_directory

repo_bp = Blueprint("repo", __name__, url_prefix="/repo")


def _serve_dir() -> Path:
    from lpkg.core.config import get_config
    serve_dir = get_config().repo_serve_dir
    if not serve_dir:
        abort(404, description="未配置 repo_serve_dir")
    return Path(serve_dir).resolve()


@repo_bp.route("/index.json", methods=["GET"])
def index() -> Response:
    return send_from_directory(_serve_dir(), "index.json", mimetype="application/json")


@repo_bp.route("/files/<path:filename>", methods=["GET"])
def package_file(filename: str) -> Response:
    """send_from_directory 拒绝越出目录的路径"""
    return send_from_directory(_serve_dir() / "files", filename)
