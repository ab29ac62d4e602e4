"""Web 层统一响应辅助函数"""

from __future__ import annotations

from flask import Response, jsonify

from lpkg.core.exceptions import LpkgError


def ok(data: dict, status: int = 200) -> tuple[Response, int] | Response:
    """成功响应"""
    if status == 200:
        return jsonify(data)
    return jsonify(data), status


def not_found(resource: str) -> tuple[Response, int]:
    """资源不存在"""
    return jsonify(error=f"{resource}不存在"), 404


def lpkg_error(exc: LpkgError, status: int) -> tuple[Response, int]:
    """领域异常 -> {"error", "code"}"""
    return jsonify(error=str(exc), code=exc.code), status
