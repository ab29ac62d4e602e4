"""统一异常体系

所有业务异常继承 LpkgError，替代散落的 ValueError / OSError。
CLI 层据此输出完整因果链并以非零状态退出，Web 层据此映射 HTTP 状态码。
"""

from __future__ import annotations


class LpkgError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(LpkgError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(LpkgError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


# =========================================================================
# 归档 / 元数据
# =========================================================================


class ArchiveError(LpkgError):
    """归档损坏、解压或 tar 解析失败"""

    code = "ARCHIVE_ERROR"


class MetadataError(LpkgError):
    """元数据解析或校验失败"""

    code = "METADATA_ERROR"


class MalformedMetadataError(MetadataError):
    """meta.toml 语法错误或字段类型不对"""

    code = "METADATA_MALFORMED"


class MissingFieldError(MetadataError):
    """必填字段缺失或为空"""

    code = "METADATA_MISSING_FIELD"

    def __init__(self, field: str) -> None:
        super().__init__(f"元数据缺少必填字段: {field}")
        self.field = field


# =========================================================================
# 依赖 / 安装状态
# =========================================================================


class DependencyError(LpkgError):
    """依赖检查失败"""

    code = "DEPENDENCY_ERROR"


class UnmetDependencyError(DependencyError):
    """声明的依赖未安装或版本不满足约束"""

    code = "DEPENDENCY_UNMET"

    def __init__(self, name: str, constraint: str | None) -> None:
        shown = f" {constraint}" if constraint else ""
        super().__init__(f"依赖未满足: {name}{shown}")
        self.name = name
        self.constraint = constraint


class VersionConstraintError(DependencyError):
    """版本号或版本约束无法解析"""

    code = "DEPENDENCY_INVALID_CONSTRAINT"


class AlreadyInstalledError(LpkgError):
    """同名同版本的包已安装"""

    code = "ALREADY_INSTALLED"

    def __init__(self, name: str, version: str) -> None:
        super().__init__(f"包 '{name}' 版本 '{version}' 已安装")
        self.name = name
        self.version = version


class PackageNotFoundError(LpkgError):
    """指定的包未安装或不在仓库索引中"""

    code = "PACKAGE_NOT_FOUND"


# =========================================================================
# 集成 / 外部进程
# =========================================================================


class IntegrationError(LpkgError):
    """桌面集成或 bin 链接失败"""

    code = "INTEGRATION_ERROR"


class TargetIsDirectoryError(IntegrationError):
    """目标路径是已存在的目录，拒绝替换"""

    code = "TARGET_IS_DIRECTORY"

    def __init__(self, path: str) -> None:
        super().__init__(f"无法创建链接: {path} 是已存在的目录")
        self.path = path


class ExternalProcessError(LpkgError):
    """构建工具或生命周期脚本以非零状态退出"""

    code = "EXTERNAL_PROCESS_ERROR"

    def __init__(self, label: str, returncode: int, stderr: str = "") -> None:
        detail = f": {stderr.strip()[:500]}" if stderr.strip() else ""
        super().__init__(f"{label}失败 (rc={returncode}){detail}")
        self.label = label
        self.returncode = returncode
        self.stderr = stderr


# =========================================================================
# 完整性 / 签名
# =========================================================================


class SignatureError(LpkgError):
    """签名操作失败"""

    code = "SIGNATURE_ERROR"


class InvalidSignatureError(SignatureError):
    """签名与数据或公钥不匹配"""

    code = "SIGNATURE_INVALID"


class BadKeyLengthError(SignatureError):
    """Ed25519 密钥长度不是 32 字节"""

    code = "SIGNATURE_BAD_KEY_LENGTH"

    def __init__(self, which: str, length: int) -> None:
        super().__init__(f"{which}长度无效: Ed25519 密钥必须为 32 字节，实际 {length} 字节")
        self.which = which
        self.length = length


class ChecksumMismatchError(LpkgError):
    """内容校验和不匹配"""

    code = "CHECKSUM_MISMATCH"

    def __init__(self, expected: str, calculated: str) -> None:
        super().__init__(
            f"内容校验和不匹配. Expected: {expected}, Calculated: {calculated}"
        )
        self.expected = expected
        self.calculated = calculated


class EmptyContentError(LpkgError):
    """目录中没有可计算校验和的普通文件"""

    code = "EMPTY_CONTENT"


# =========================================================================
# 存储 / 仓库
# =========================================================================


class StoreError(LpkgError):
    """包数据库读写失败"""

    code = "STORE_ERROR"


class RepositoryError(LpkgError):
    """仓库索引拉取、解析或包下载失败"""

    code = "REPOSITORY_ERROR"


def format_error_chain(exc: BaseException) -> str:
    """将异常及其 __cause__ / __context__ 展开为多行因果链"""
    lines = [str(exc) or type(exc).__name__]
    seen = {id(exc)}
    cur = exc.__cause__ or exc.__context__
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        lines.append(f"  原因: {type(cur).__name__}: {cur}")
        cur = cur.__cause__ or cur.__context__
    return "\n".join(lines)
