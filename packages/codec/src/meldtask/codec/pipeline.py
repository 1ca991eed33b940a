"""编解码管线

encode: 规范文本 -> 选择映射组并置换 -> 加 185 进制数字头 -> 压缩
decode: 逆序执行；任何阶段失败都返回 DecodeFailure，不抛出异常。
"""

import structlog

from meldtask.core.models import ProjectDocument

from .compression import compress, decompress, token_bytes
from .exceptions import CodecDecodeError, MalformedHeaderError
from .mapping import CURRENT_VERSION, DEFAULT_REGISTRY, MappingGroup, MappingRegistry, select_group
from .models import DecodeFailure, DecodeResult, TokenDescription
from .numeral import from185, to185
from .text_form import dump_document, load_document

log = structlog.get_logger()

HEADER_DELIMITER = ","


def pack_header(version: int, group_id: int, payload: str) -> str:
    """拼接数字头与置换后载荷"""
    return HEADER_DELIMITER.join([to185(version), to185(group_id), payload])


def split_header(text: str) -> tuple[int, int, str]:
    """按分隔符的首次出现拆出版本、组 ID 与载荷

    Raises:
        MalformedHeaderError: 缺少分隔符或数字非法
    """
    parts = text.split(HEADER_DELIMITER, 2)
    if len(parts) != 3:
        raise MalformedHeaderError("缺少数字头分隔符")
    try:
        return from185(parts[0]), from185(parts[1]), parts[2]
    except ValueError as e:
        raise MalformedHeaderError(f"数字头不合法: {e}") from e


def encode_text(
    text: str,
    registry: MappingRegistry = DEFAULT_REGISTRY,
    version: int = CURRENT_VERSION,
) -> tuple[str, MappingGroup]:
    """规范文本 -> 令牌，同时返回选中的映射组"""
    group = select_group(text, registry.groups(version))
    token = compress(pack_header(version, group.id, group.swap(text)))
    return token, group


def decode_text(token: str, registry: MappingRegistry = DEFAULT_REGISTRY) -> str:
    """令牌 -> 规范文本

    Raises:
        CodecDecodeError: 任一阶段失败
    """
    version, group_id, payload = split_header(decompress(token))
    group = registry.get(version, group_id)
    return group.swap(payload)


def encode_document(
    document: ProjectDocument,
    registry: MappingRegistry = DEFAULT_REGISTRY,
    version: int = CURRENT_VERSION,
) -> str:
    """ProjectDocument -> URL 安全令牌"""
    token, group = encode_text(dump_document(document), registry, version)
    log.debug(
        "document_encoded",
        project_id=document.id,
        group=group.name,
        token_length=len(token),
    )
    return token


def decode_token(token: str, registry: MappingRegistry = DEFAULT_REGISTRY) -> DecodeResult:
    """URL 令牌 -> DecodeResult（失败时带类型化原因）"""
    try:
        document = load_document(decode_text(token, registry))
    except CodecDecodeError as e:
        log.warning(
            "token_decode_failed",
            reason=e.reason.value,
            error=str(e),
            token_length=len(token),
        )
        return DecodeResult(failure=DecodeFailure(reason=e.reason, message=str(e)))
    return DecodeResult(document=document)


def describe_token(token: str, registry: MappingRegistry = DEFAULT_REGISTRY) -> TokenDescription:
    """逐阶段解析令牌，返回诊断信息；失败时保留已得到的部分"""
    info: dict = {"token_length": len(token)}
    try:
        info["compressed_bytes"] = len(token_bytes(token))
        version, group_id, payload = split_header(decompress(token))
        info.update(
            header_version=version,
            group_id=group_id,
            payload_chars=len(payload),
            payload_utf8_bytes=len(payload.encode("utf-8")),
        )
        group = registry.get(version, group_id)
        info["group_name"] = group.name
        text = group.swap(payload)
        info["text_utf8_bytes"] = len(text.encode("utf-8"))
        info["task_count"] = len(load_document(text).tasks)
    except CodecDecodeError as e:
        info["failure"] = DecodeFailure(reason=e.reason, message=str(e))
    return TokenDescription(**info)
