"""签名模块：Ed25519 分离签名

签名覆盖整个归档字节流，与 content_checksum（只覆盖 files/ 区域）相互独立。
密钥文件保存原始 32 字节：私钥为种子，公钥为原始公钥字节。
签名写入 <archive>.sig，可选注释写入 <archive>.sig.comment。
"""

from __future__ import annotations

import logging
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from lpkg.core.exceptions import (
    BadKeyLengthError,
    InvalidSignatureError,
    SignatureError,
)
from lpkg.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
SIGNATURE_LENGTH = 64
SIG_SUFFIX = ".sig"
COMMENT_SUFFIX = ".comment"


def _check_key(key: bytes, which: str) -> None:
    if len(key) != KEY_LENGTH:
        raise BadKeyLengthError(which, len(key))


def sign(data: bytes, private_key_seed: bytes) -> bytes:
    """用 32 字节种子对数据签名，返回 64 字节签名（确定性）"""
    _check_key(private_key_seed, "私钥")
    key = Ed25519PrivateKey.from_private_bytes(private_key_seed)
    return key.sign(data)


def verify(data: bytes, signature: bytes, public_key: bytes) -> None:
    """校验签名

    Raises:
        BadKeyLengthError: 公钥不是 32 字节
        InvalidSignatureError: 签名不匹配或格式错误
    """
    _check_key(public_key, "公钥")
    if len(signature) != SIGNATURE_LENGTH:
        raise InvalidSignatureError(
            f"签名校验失败: 签名长度应为 {SIGNATURE_LENGTH} 字节，实际 {len(signature)} 字节"
        )
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, data)
    except InvalidSignature as e:
        raise InvalidSignatureError("签名校验失败: 签名与数据或公钥不匹配") from e
    except ValueError as e:
        raise InvalidSignatureError(f"签名校验失败: 公钥无效 ({e})") from e


def public_key_from_seed(seed: bytes) -> bytes:
    _check_key(seed, "私钥")
    return Ed25519PrivateKey.from_private_bytes(seed).public_key().public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw,
    )


def generate_keypair() -> tuple[bytes, bytes]:
    """生成新的密钥对，返回 (32 字节种子, 32 字节公钥)"""
    key = Ed25519PrivateKey.generate()
    seed = key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )
    return seed, public_key_from_seed(seed)


# =========================================================================
# 文件辅助
# =========================================================================


def signature_path(archive: str | Path) -> Path:
    p = Path(archive)
    return p.with_name(p.name + SIG_SUFFIX)


def _read(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise SignatureError(f"无法读取{what}: {path}") from e


def sign_file(
    archive: str | Path, key_path: str | Path, comment: str | None = None,
) -> Path:
    """对归档文件签名，写出 .sig（和可选的 .sig.comment），返回签名路径"""
    archive = Path(archive)
    if not archive.is_file():
        raise SignatureError(f"包文件不存在: {archive}")
    seed = _read(Path(key_path), "私钥文件")
    sig = sign(_read(archive, "包文件"), seed)

    sig_path = signature_path(archive)
    atomic_write(sig_path, sig)
    if comment is not None:
        atomic_write(sig_path.with_name(sig_path.name + COMMENT_SUFFIX), comment)
    logger.info("签名已生成: %s", sig_path)
    return sig_path


def verify_file(
    archive: str | Path,
    key_path: str | Path,
    sig_path: str | Path | None = None,
) -> None:
    """用公钥文件校验归档的分离签名"""
    archive = Path(archive)
    sig_file = Path(sig_path) if sig_path else signature_path(archive)
    if not archive.is_file():
        raise SignatureError(f"包文件不存在: {archive}")
    if not sig_file.is_file():
        raise SignatureError(f"签名文件不存在: {sig_file}")
    verify(
        _read(archive, "包文件"),
        _read(sig_file, "签名文件"),
        _read(Path(key_path), "公钥文件"),
    )
    logger.info("签名校验通过: %s", archive)


def write_keypair(outdir: str | Path, name: str = "lpkg") -> tuple[Path, Path]:
    """生成密钥对并写入 <outdir>/<name>.key 与 <name>.pub"""
    out = Path(outdir)
    seed, public = generate_keypair()
    secret_path = out / f"{name}.key"
    public_path = out / f"{name}.pub"
    atomic_write(secret_path, seed)
    secret_path.chmod(0o600)
    atomic_write(public_path, public)
    public_path.chmod(0o644)
    logger.info("密钥对已生成: %s, %s", secret_path, public_path)
    return secret_path, public_path
