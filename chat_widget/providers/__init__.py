"""后端 HTTP 集成层。

该包下的模块负责：
- 打开 /chat 流式交换 (chat_client)。
- 提交满意度与相关性反馈 (feedback_client)。
"""

from typing import Optional

from chat_widget.config.settings import settings
from chat_widget.providers.chat_client import ChatBackendClient
from chat_widget.providers.feedback_client import FeedbackClient


def create_backend(base_url: Optional[str] = None) -> ChatBackendClient:
    """根据配置创建后端客户端；显式传入 base_url 时覆盖配置。"""

    cfg = settings
    if base_url:
        cfg = settings.model_copy(update={"base_url": base_url.rstrip("/")})
    return ChatBackendClient(cfg)


__all__ = ["ChatBackendClient", "FeedbackClient", "create_backend"]
