"""轻量级 Web 看板（基于 Flask）

提供：已安装包列表、包详情与文件清单（只读），以及静态仓库服务。

启动方式: lpkg dashboard --port 8888
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from lpkg.core.exceptions import LpkgError, PackageNotFoundError, StoreError
from lpkg.web.responses import lpkg_error

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    app = Flask(__name__)

    from lpkg.web.routes import packages_bp, repo_bp
    app.register_blueprint(packages_bp)
    app.register_blueprint(repo_bp)

    # =====================================================================
    # 全局 JSON 错误处理
    # =====================================================================

    @app.errorhandler(PackageNotFoundError)
    def handle_not_found(exc):
        return lpkg_error(exc, 404)

    @app.errorhandler(StoreError)
    def handle_store_error(exc):
        logger.error("存储错误: %s", exc)
        return lpkg_error(exc, 500)

    @app.errorhandler(LpkgError)
    def handle_lpkg_error(exc):
        return lpkg_error(exc, 400)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        """将所有 HTTP 异常统一返回 JSON"""
        return jsonify(error=exc.description), exc.code

    @app.errorhandler(Exception)
    def handle_generic_exception(exc):  # noqa: ARG001
        """捕获未处理异常，返回 500 JSON"""
        logger.exception("未处理的异常")
        return jsonify(error="服务器内部错误"), 500

    @app.route("/")
    def index():
        return jsonify(service="lpkg", endpoints=[
            "/api/packages", "/api/packages/<name>", "/api/packages/<name>/files",
            "/repo/index.json", "/repo/files/<filename>",
        ])

    return app


def run_server(port: int = 8888, debug: bool = False, host: str = "127.0.0.1") -> None:
    app = create_app()
    logger.info("lpkg 看板已启动: http://%s:%d", host, port)
    app.run(host=host, port=port, debug=debug)
