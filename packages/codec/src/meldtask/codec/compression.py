"""通用压缩阶段 -- raw DEFLATE + 无填充 URL 安全 base64

令牌只包含 A-Z a-z 0-9 - _，可直接作为 URL 查询参数值。
"""

import base64
import binascii
import re
import zlib

from .exceptions import DecompressionError, MalformedTokenError

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# raw DEFLATE（无 zlib 头与校验尾）
_WBITS = -15

# 解压结果上限，超过即视为恶意或损坏的令牌
MAX_TEXT_BYTES = 4 * 1024 * 1024


def compress(text: str) -> str:
    """文本 -> URL 安全令牌"""
    compressor = zlib.compressobj(9, zlib.DEFLATED, _WBITS)
    raw = compressor.compress(text.encode("utf-8")) + compressor.flush()
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def token_bytes(token: str) -> bytes:
    """令牌 -> 压缩字节

    Raises:
        MalformedTokenError: 空令牌、非法字符或长度不合法
    """
    if not token or not _TOKEN_RE.match(token):
        raise MalformedTokenError("令牌为空或含 URL 安全字母表以外的字符")
    if len(token) % 4 == 1:
        raise MalformedTokenError(f"令牌长度不合法: {len(token)}")
    try:
        return base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
    except binascii.Error as e:
        raise MalformedTokenError(f"base64 解码失败: {e}") from e


def decompress(token: str) -> str:
    """URL 安全令牌 -> 文本

    Raises:
        MalformedTokenError: 令牌格式不合法
        DecompressionError: 数据不完整、含多余字节、超过大小上限或不是 UTF-8
    """
    raw = token_bytes(token)
    decompressor = zlib.decompressobj(_WBITS)
    try:
        data = decompressor.decompress(raw, MAX_TEXT_BYTES + 1)
        if len(data) <= MAX_TEXT_BYTES and not decompressor.unconsumed_tail:
            data += decompressor.flush()
    except zlib.error as e:
        raise DecompressionError(f"解压失败: {e}") from e
    if len(data) > MAX_TEXT_BYTES or decompressor.unconsumed_tail:
        raise DecompressionError(f"解压结果超过 {MAX_TEXT_BYTES} 字节上限")
    if not decompressor.eof:
        raise DecompressionError("压缩数据被截断")
    if decompressor.unused_data:
        raise DecompressionError("压缩数据之后存在多余字节")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecompressionError(f"解压结果不是合法 UTF-8: {e}") from e
