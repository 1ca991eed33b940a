"""meldtask Codec -- 项目文档 <-> URL 安全令牌

三个阶段（规范文本、映射组置换 + 数字头、通用压缩）均可单独使用。
"""

from .compression import compress, decompress
from .exceptions import (
    CodecDecodeError,
    CodecError,
    DecompressionError,
    MalformedHeaderError,
    MalformedTokenError,
    MappingDefinitionError,
    TextFormParseError,
    UnknownMappingGroupError,
    UnknownVersionError,
)
from .mapping import (
    CURRENT_VERSION,
    DEFAULT_REGISTRY,
    MAX_MAPPING_SIZE,
    MappingGroup,
    MappingRegistry,
    select_group,
    swap,
    validate_mapping_group,
)
from .models import DecodeFailure, DecodeFailureReason, DecodeResult, TokenDescription
from .numeral import from185, to185
from .pipeline import decode_text, decode_token, describe_token, encode_document, encode_text
from .text_form import dump_document, load_document

__all__ = [
    # 管线
    "encode_document",
    "decode_token",
    "describe_token",
    "encode_text",
    "decode_text",
    # 阶段
    "dump_document",
    "load_document",
    "MappingGroup",
    "MappingRegistry",
    "DEFAULT_REGISTRY",
    "CURRENT_VERSION",
    "MAX_MAPPING_SIZE",
    "select_group",
    "swap",
    "validate_mapping_group",
    "to185",
    "from185",
    "compress",
    "decompress",
    # 结果
    "DecodeResult",
    "DecodeFailure",
    "DecodeFailureReason",
    "TokenDescription",
    # 异常
    "CodecError",
    "CodecDecodeError",
    "MappingDefinitionError",
    "MalformedTokenError",
    "DecompressionError",
    "MalformedHeaderError",
    "UnknownVersionError",
    "UnknownMappingGroupError",
    "TextFormParseError",
]
