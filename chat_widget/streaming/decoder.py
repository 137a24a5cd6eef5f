"""流式响应的行解码器。

线上格式：以换行分隔的记录，每行可选带 "data:" 前缀，正文是一个 JSON 对象：

    data: {"type": "text", "content": "Hel"}

约定：
- 片段边界不保证与记录边界对齐，未以换行结束的尾部由调用方保存，
  下一次与新片段拼接后再切分。
- 单行解析失败只产出 UNKNOWN 记录，绝不中断整个流。
- 流结束时剩余的尾部按同样规则做一次尽力解码。
"""

import logging
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from chat_widget.domain.models import ProtocolRecord, RecordKind
from chat_widget.infrastructure.logging.logger import logger


DATA_PREFIX = "data:"

_CONTENT_KINDS = {RecordKind.TEXT, RecordKind.TOOL_CALLS}


class _WireRecord(BaseModel):
    """线上 JSON 对象的显式校验模型，不认识的字段忽略。"""

    model_config = ConfigDict(extra="ignore", strict=True)

    type: Literal["start", "text", "tool_calls", "end"]
    content: Optional[str] = None


def decode_line(line: str) -> Optional[ProtocolRecord]:
    """解码单行。空行返回 None，其余情况总是返回一条记录。"""

    text = line.strip()
    if not text:
        return None
    if text.startswith(DATA_PREFIX):
        text = text[len(DATA_PREFIX):].strip()
        if not text:
            return None
    try:
        wire = _WireRecord.model_validate_json(text)
    except PydanticValidationError:
        logger.log(logging.DEBUG, "Dropped malformed record", extra={"extra": {"line": text[:120]}})
        return ProtocolRecord(kind=RecordKind.UNKNOWN)

    kind = RecordKind(wire.type)
    if kind in _CONTENT_KINDS:
        return ProtocolRecord(kind=kind, content=wire.content)
    return ProtocolRecord(kind=kind)


def decode_chunk(fragment: str, buffer: str = "") -> Tuple[List[ProtocolRecord], str]:
    """把 buffer + fragment 切分为完整的行并逐行解码。

    Returns:
        (records, leftover)：leftover 为尚未以换行结束的尾部，需要调用方带到下一次。
    """

    data = buffer + fragment
    *lines, leftover = data.split("\n")
    records: List[ProtocolRecord] = []
    for line in lines:
        record = decode_line(line)
        if record is not None:
            records.append(record)
    return records, leftover


def flush_buffer(buffer: str) -> List[ProtocolRecord]:
    """流结束时对残留尾部做最后一次解码。"""

    record = decode_line(buffer)
    return [record] if record is not None else []
