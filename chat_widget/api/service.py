"""对外 API 服务模块。

渲染层只需要和 ChatWidgetSession 打交道：读取消息与 loading 状态、
提交问题、提交反馈、关闭挂件。每个挂件实例持有自己的会话，不存在全局单例。
"""

from typing import Any, Dict, Optional, Tuple

import httpx

from chat_widget.config.settings import settings
from chat_widget.domain.conversation import ChangeListener, ConversationStore
from chat_widget.domain.exceptions import ValidationError
from chat_widget.domain.models import Message
from chat_widget.infrastructure.logging.logger import logger
from chat_widget.providers.chat_client import ChatBackendClient
from chat_widget.providers.feedback_client import FeedbackClient


SAMPLE_QUESTIONS: Tuple[str, ...] = (
    "How do I submit RS7 Return?",
    "Fresh Booking Rule ECE",
    "How to process refund payments?",
)


class ChatWidgetSession:
    """一个挂件实例的完整生命周期：打开、若干次问答、关闭。"""

    def __init__(self, cfg=settings, client: Optional[httpx.AsyncClient] = None):
        self._settings = cfg
        self._backend = ChatBackendClient(cfg, client=client)
        self.store = ConversationStore(self._backend)
        self.feedback = FeedbackClient(self._backend, cfg)
        self._closed = False

    async def __aenter__(self) -> "ChatWidgetSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ---- 状态 ----

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self.store.messages

    @property
    def loading(self) -> bool:
        return self.store.loading

    @property
    def is_typing(self) -> bool:
        """正在等待回答且占位消息还没有任何内容，此时 UI 显示输入中指示。"""

        index = self.store.in_flight_index
        if not self.loading or index is None:
            return False
        return self.store.messages[index].content == ""

    @property
    def closed(self) -> bool:
        return self._closed

    def sample_questions(self) -> Tuple[str, ...]:
        """空会话时展示的示例问题。"""

        return SAMPLE_QUESTIONS if not self.store.messages else ()

    def subscribe(self, listener: ChangeListener):
        return self.store.subscribe(listener)

    # ---- 问答 ----

    def send(self, content: str):
        self._ensure_open()
        return self.store.submit(content)

    def ask_sample(self, position: int):
        questions = self.sample_questions()
        if not 0 <= position < len(questions):
            raise ValidationError(code="INVALID_SAMPLE_QUESTION", message=f"No sample question at {position}")
        return self.send(questions[position])

    # ---- 反馈 ----

    async def rate(self, rating: str) -> bool:
        """满意度调查。"""

        return await self.feedback.submit_rating(rating)

    async def mark_relevance(self, message_index: int, is_relevant: bool) -> bool:
        """对某条已完成的助手回答标记是否切题。"""

        msgs = self.store.messages
        if not 0 <= message_index < len(msgs):
            raise ValidationError(
                code="INVALID_MESSAGE_INDEX",
                message=f"No message at index {message_index}",
                message_index=message_index,
            )
        target = msgs[message_index]
        if target.role != "assistant" or not target.complete:
            raise ValidationError(
                code="INVALID_MESSAGE_INDEX",
                message="Relevance feedback only applies to completed assistant messages",
                message_index=message_index,
            )
        return await self.feedback.submit_relevance(message_index, is_relevant, content=target.content)

    def describe(self) -> Dict[str, Any]:
        """便于日志/调试的会话摘要。"""

        return {
            "base_url": self._backend.base_url,
            "message_count": len(self.store.messages),
            "loading": self.loading,
            "closed": self._closed,
        }

    # ---- 关闭 ----

    async def close(self) -> None:
        """关闭挂件：放弃进行中的交换并释放 HTTP 客户端。可重复调用。"""

        if self._closed:
            return
        self._closed = True
        self.store.cancel()
        await self._backend.aclose()
        logger.info("Chat widget closed", extra={"extra": self.describe()})

    def _ensure_open(self) -> None:
        if self._closed:
            raise ValidationError(code="SESSION_CLOSED", message="Chat widget session is closed")


def create_session(cfg=None, client: Optional[httpx.AsyncClient] = None) -> ChatWidgetSession:
    """按配置创建一个新的挂件会话。"""

    return ChatWidgetSession(cfg or settings, client=client)
