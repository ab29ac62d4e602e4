"""依赖门禁：安装前检查直接依赖

只核对元数据声明的直接依赖与已安装包，不做传递解析。
版本号按语义化版本解析（semver），约束写法与 Cargo 一致:
    ""  / "*"           无约束
    "1.2.3" / "^1.2.3"  >=1.2.3,<2.0.0  (0.x 时按次版本 / 修订号收紧)
    "~1.2.3"            >=1.2.3,<1.3.0
    "=1.2.3"            精确匹配
    "1.2.*"             >=1.2.0,<1.3.0
    ">=1.0, <2.0"       逗号组合，各项同时满足
省略的次版本 / 修订号按 Cargo 规则展开，例如 "=1.2" 即 >=1.2.0,<1.3.0，">1.2" 即 >=1.3.0。

预发布版本只有在某个比较项自身带预发布号、且 major.minor.patch 相同时才参与匹配，
所以 ">=1.0.0" 不接受 "2.0.0-alpha"。
"""

from __future__ import annotations

import logging
import operator
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from semver import Version

from lpkg.core.exceptions import UnmetDependencyError, VersionConstraintError
from lpkg.core.protocols import PackageStoreProtocol

logger = logging.getLogger(__name__)

_COMPARE: dict[str, Callable[[Version, Version], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
}

_CLAUSE_RE = re.compile(r"^(==|!=|>=|<=|>|<|=|\^|~)?\s*(\S+)$")
_WILDCARDS = ("*", "x", "X")


def parse_version(value: str) -> Version:
    """解析版本号；省略的次版本 / 修订号补 0"""
    try:
        return Version.parse(value.strip(), optional_minor_and_patch=True)
    except (TypeError, ValueError) as e:
        raise VersionConstraintError(f"无法解析的版本号: {value!r}") from e


@dataclass(frozen=True)
class Comparator:
    op: str
    version: Version

    def matches(self, version: Version) -> bool:
        return _COMPARE[self.op](version, self.version)

    def __str__(self) -> str:
        return f"{self.op}{self.version}"


@dataclass(frozen=True)
class VersionReq:
    """展开后的版本约束：所有比较项同时满足"""

    comparators: tuple[Comparator, ...]

    def matches(self, version: Version) -> bool:
        if not all(c.matches(version) for c in self.comparators):
            return False
        if not version.prerelease:
            return True
        core = (version.major, version.minor, version.patch)
        return any(
            c.version.prerelease
            and (c.version.major, c.version.minor, c.version.patch) == core
            for c in self.comparators
        )

    def __contains__(self, version: str) -> bool:
        return self.matches(parse_version(version))

    def __str__(self) -> str:
        return ",".join(str(c) for c in self.comparators)


def _partial(clause: str, raw: str) -> tuple[Version, int, bool]:
    """约束中的版本 -> (补 0 后的版本, 给出的分量数, 是否带通配符)"""
    cut = next((i for i, ch in enumerate(raw) if ch in "-+"), len(raw))
    core, suffix = raw[:cut], raw[cut:]
    parts = core.split(".")
    wildcard = False
    while parts and parts[-1] in _WILDCARDS:
        parts.pop()
        wildcard = True
    if not parts or len(parts) > 3 or (suffix and len(parts) < 3):
        raise VersionConstraintError(f"无法解析的版本约束: {clause!r}")
    try:
        version = Version.parse(".".join(parts) + suffix, optional_minor_and_patch=True)
    except ValueError as e:
        raise VersionConstraintError(f"无法解析的版本约束: {clause!r}") from e
    return version, len(parts), wildcard


def _expand(clause: str, op: str, v: Version, given: int) -> list[Comparator]:
    next_major = Version(v.major + 1)
    next_minor = Version(v.major, v.minor + 1)
    if op == "^":
        if v.major > 0 or given == 1:
            upper = next_major
        elif v.minor > 0 or given == 2:
            upper = next_minor
        else:
            upper = Version(0, 0, v.patch + 1)
        return [Comparator(">=", v), Comparator("<", upper)]
    if op == "~":
        return [Comparator(">=", v), Comparator("<", next_major if given == 1 else next_minor)]
    if op == "=":
        op = "=="
    if given == 3:
        return [Comparator(op, v)]

    upper = next_major if given == 1 else next_minor
    if op == "==":
        return [Comparator(">=", v), Comparator("<", upper)]
    if op == ">":
        return [Comparator(">=", upper)]
    if op == ">=":
        return [Comparator(">=", v)]
    if op == "<":
        return [Comparator("<", v)]
    if op == "<=":
        return [Comparator("<", upper)]
    raise VersionConstraintError(f"{op} 需要完整版本号: {clause!r}")


def _parse_clause(clause: str) -> list[Comparator]:
    m = _CLAUSE_RE.match(clause)
    if m is None:
        raise VersionConstraintError(f"无法解析的版本约束: {clause!r}")
    op, raw = m.group(1), m.group(2)
    version, given, wildcard = _partial(clause, raw)
    if op is None:
        # 裸版本号即 ^；"1.2.*" 这类通配写法按对应前缀精确匹配
        op = "=" if wildcard else "^"
    return _expand(clause, op, version, given)


def normalize_constraint(constraint: str | None) -> VersionReq | None:
    """约束字符串 -> VersionReq，无约束返回 None

    Raises:
        VersionConstraintError: 约束无法解析
    """
    if constraint is None:
        return None
    text = constraint.strip()
    if text in ("", "*"):
        return None
    clauses = [c.strip() for c in text.split(",")]
    if not all(clauses):
        raise VersionConstraintError(f"无法解析的版本约束: {constraint!r}")
    comparators: list[Comparator] = []
    for clause in clauses:
        comparators.extend(_parse_clause(clause))
    return VersionReq(tuple(comparators))


def is_satisfied(installed_version: str | None, constraint: str | None) -> bool:
    """已安装版本是否满足约束

    未安装返回 False；已安装且无约束返回 True（仅检查存在）。
    """
    if installed_version is None:
        return False
    req = normalize_constraint(constraint)
    if req is None:
        return True
    return req.matches(parse_version(installed_version))


def check_all(
    deps: Mapping[str, str] | Iterable[tuple[str, str]] | None,
    store: PackageStoreProtocol,
) -> None:
    """逐条检查依赖声明，第一个不满足的依赖即失败

    同名包安装了多个版本时，任一版本满足即可。

    Raises:
        UnmetDependencyError: 依赖未安装或版本不满足
        VersionConstraintError: 约束或已安装版本无法解析
    """
    if not deps:
        return
    items = deps.items() if isinstance(deps, Mapping) else deps
    for name, constraint in items:
        versions = store.installed_versions(name)
        if not versions or not any(is_satisfied(v, constraint) for v in versions):
            logger.info("依赖未满足: %s %s (已安装: %s)", name, constraint, versions or "无")
            raise UnmetDependencyError(name, constraint)
        logger.debug("依赖满足: %s %s", name, constraint)


def is_newer(candidate: str, current: str) -> bool:
    """candidate 是否比 current 新（按 semver 优先级，忽略构建元数据）"""
    return parse_version(candidate) > parse_version(current)


def highest(versions: Iterable[str]) -> str | None:
    """返回最高版本，空集合返回 None"""
    ordered = sorted(versions, key=parse_version)
    return ordered[-1] if ordered else None
