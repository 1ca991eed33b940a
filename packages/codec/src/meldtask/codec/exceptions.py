"""Codec 异常体系

MappingDefinitionError 为注册期的致命错误（编程错误），
CodecDecodeError 及其子类为解码各阶段的内部错误，
由 decode_token 统一转换为 DecodeFailure，不会抛给调用方。
"""

from meldtask.core.exceptions import MeldTaskError

from .models import DecodeFailureReason


class CodecError(MeldTaskError):
    """Codec 基础异常"""


class MappingDefinitionError(CodecError):
    """映射组定义不合法（长度超限/长度不一致/字符重复/主副集合相交）"""

    def __init__(self, group_name: str, detail: str) -> None:
        super().__init__(
            f"映射组 {group_name!r} 定义不合法: {detail}",
            recoverable=False,
        )
        self.group_name = group_name
        self.detail = detail


class CodecDecodeError(CodecError):
    """解码失败基类"""

    reason = DecodeFailureReason.PARSE_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message, recoverable=True)


class MalformedTokenError(CodecDecodeError):
    """令牌含非法字符或长度不合法"""

    reason = DecodeFailureReason.MALFORMED_TOKEN


class DecompressionError(CodecDecodeError):
    """解压失败或解压结果不是合法 UTF-8"""

    reason = DecodeFailureReason.DECOMPRESSION_FAILED


class MalformedHeaderError(CodecDecodeError):
    """数字头缺失或含非法数字"""

    reason = DecodeFailureReason.MALFORMED_HEADER


class UnknownVersionError(CodecDecodeError):
    """未知的格式版本"""

    reason = DecodeFailureReason.UNKNOWN_VERSION

    def __init__(self, version: int) -> None:
        super().__init__(f"未知的格式版本: {version}")
        self.version = version


class UnknownMappingGroupError(CodecDecodeError):
    """未知的映射组 ID"""

    reason = DecodeFailureReason.UNKNOWN_MAPPING_GROUP

    def __init__(self, version: int, group_id: int) -> None:
        super().__init__(f"版本 {version} 中不存在映射组 {group_id}")
        self.version = version
        self.group_id = group_id


class TextFormParseError(CodecDecodeError):
    """规范文本形式解析失败"""

    reason = DecodeFailureReason.PARSE_FAILED
