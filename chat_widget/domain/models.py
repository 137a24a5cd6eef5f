"""聊天挂件的统一数据模型。

本模块定义了流式聚合链路上共享的标准数据结构：

- ProtocolRecord: 从传输流中解码出的一条协议记录（start/text/tool_calls/end/unknown）。
- Message: 会话中的一条消息（user/assistant），助手消息在流式过程中被整体替换。
- StreamOutcome: 一次 HTTP 交换的终止结果。

解码层（streaming.decoder）只产出 ProtocolRecord，聚合层（streaming.aggregator）
只产出 Message 快照，会话层（domain.conversation）只消费 Message 快照。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional


# 消息角色（与后端 /chat 接口的 role 字段对应）
Role = Literal["user", "assistant"]

# 固定的用户可见错误文案，后端不可用时替换助手消息内容
REJECTED_MESSAGE = "Error: Unable to get response from assistant."
FAILURE_MESSAGE = "Error: Failed to connect to the assistant."


class MessageKind(str, Enum):
    """消息类型。只允许 TEXT -> TOOL_CALLS 的单向升级。"""

    TEXT = "text"
    TOOL_CALLS = "tool_calls"


class RecordKind(str, Enum):
    """协议记录类型，是线上 JSON 中 type 字段的封闭集合。"""

    START = "start"
    TEXT = "text"
    TOOL_CALLS = "tool_calls"
    END = "end"
    UNKNOWN = "unknown"


class StreamOutcome(str, Enum):
    """一次交换的终止方式。"""

    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProtocolRecord:
    """解码出的一条记录，不可变，只被消费一次。

    - kind: 记录类型。
    - content: 文本片段；start/end/unknown 恒为 None。
    """

    kind: RecordKind
    content: Optional[str] = None

    @property
    def carries_content(self) -> bool:
        return bool(self.content)


@dataclass(frozen=True)
class Message:
    """会话中的一条消息。

    - role: 创建时固定。
    - kind: TEXT 或 TOOL_CALLS；助手消息在流式过程中可能升级一次。
    - content: 纯文本内容，complete=False 时只追加不回退。
    - complete: 是否已经到达终态。终态后不再有任何变化。
    """

    role: Role
    kind: MessageKind = MessageKind.TEXT
    content: str = ""
    complete: bool = True

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", kind=MessageKind.TEXT, content=content, complete=True)

    @classmethod
    def placeholder(cls) -> "Message":
        """流式响应开始前占位的空助手消息。"""

        return cls(role="assistant", kind=MessageKind.TEXT, content="", complete=False)

    def to_payload(self) -> Dict[str, Any]:
        """序列化为 /chat 请求体中的元素：{type, content, role}。"""

        return {"type": self.kind.value, "content": self.content, "role": self.role}
