"""Web 路由模块 - Blueprint 集合

- packages_bp.py: 已安装包查询 (3 routes)
- repo_bp.py: 静态仓库 (2 routes)
"""

from lpkg.web.routes.packages_bp import packages_bp
from lpkg.web.routes.repo_bp import repo_bp

__all__ = ["packages_bp", "repo_bp"]
