"""Codec 结果模型

解码失败是预期内的结果（用户看到"无法恢复数据"），以 DecodeResult 返回。
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from meldtask.core.models import ProjectDocument


class DecodeFailureReason(StrEnum):
    """解码失败原因"""

    MALFORMED_TOKEN = "MALFORMED_TOKEN"
    DECOMPRESSION_FAILED = "DECOMPRESSION_FAILED"
    MALFORMED_HEADER = "MALFORMED_HEADER"
    UNKNOWN_VERSION = "UNKNOWN_VERSION"
    UNKNOWN_MAPPING_GROUP = "UNKNOWN_MAPPING_GROUP"
    PARSE_FAILED = "PARSE_FAILED"


class DecodeFailure(BaseModel):
    """类型化的解码失败"""

    reason: DecodeFailureReason
    message: str = ""


class DecodeResult(BaseModel):
    """decode_token 的返回值：document 与 failure 恰有一个非空"""

    document: ProjectDocument | None = None
    failure: DecodeFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class TokenDescription(BaseModel):
    """令牌各阶段的诊断信息"""

    token_length: int = Field(description="令牌字符数")
    compressed_bytes: int | None = Field(default=None, description="解压前字节数")
    header_version: int | None = None
    group_id: int | None = None
    group_name: str | None = None
    payload_chars: int | None = Field(default=None, description="置换后载荷字符数")
    payload_utf8_bytes: int | None = Field(default=None, description="置换后载荷 UTF-8 字节数")
    text_utf8_bytes: int | None = Field(default=None, description="规范文本 UTF-8 字节数")
    task_count: int | None = None
    failure: DecodeFailure | None = None
