"""后端传输抽象接口。

会话层 ConversationStore 不直接依赖 httpx，而是依赖此协议：

- chat_url(): 本次交换的目标地址，用于日志。
- stream_chat(messages): 返回一个尚未进入的异步上下文，进入时发出请求并得到响应，
  退出时释放连接。响应对象需要提供 status_code 与 aiter_text()。

默认实现是 ChatBackendClient；测试或嵌入场景可以换成任意满足协议的对象。
"""

from typing import Any, AsyncContextManager, AsyncIterator, Protocol, Sequence

from chat_widget.domain.models import Message


class StreamingResponse(Protocol):
    status_code: int

    def aiter_text(self) -> AsyncIterator[str]:
        ...


class ChatTransport(Protocol):
    """聊天后端传输协议。"""

    def chat_url(self) -> str:
        ...

    def stream_chat(self, messages: Sequence[Message]) -> AsyncContextManager[Any]:
        """打开一次流式交换。"""

        ...
