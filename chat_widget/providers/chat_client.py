"""聊天后端 HTTP 适配器。

- URL: {base_url}/chat
- 请求体: {"messages": [{"type", "content", "role"}, ...]}
- 响应: 200 + 按行分隔的流式记录（见 streaming.decoder）

本模块只负责打开交换；状态码判断与响应体消费由 StreamAggregator 完成。
"""

from typing import Any, AsyncContextManager, Dict, Optional, Sequence

import httpx

from chat_widget.config.settings import settings
from chat_widget.domain.models import Message


class ChatBackendClient:
    """聊天后端客户端，持有一个可复用的 httpx.AsyncClient。"""

    name = "chat-backend"

    def __init__(self, cfg=settings, client: Optional[httpx.AsyncClient] = None):
        self._settings = cfg
        self._client = client
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return self._settings.base_url.rstrip("/")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False)
        return self._client

    async def aclose(self) -> None:
        """关闭自己创建的 HTTP 客户端；外部注入的客户端由调用方负责。"""

        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ---- /chat ----

    def chat_url(self) -> str:
        return f"{self.base_url}/chat"

    def stream_chat(self, messages: Sequence[Message]) -> AsyncContextManager[httpx.Response]:
        """返回一个尚未进入的流式响应上下文，进入时才真正发出请求。"""

        return self._get_client().stream(
            "POST",
            self.chat_url(),
            json=self.build_payload(messages),
            headers={"Content-Type": "application/json", "Accept": "text/event-stream"},
        )

    @staticmethod
    def build_payload(messages: Sequence[Message]) -> Dict[str, Any]:
        return {"messages": [m.to_payload() for m in messages]}

    # ---- 通用 JSON POST（反馈接口复用） ----

    async def post_json(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        resp = await self._get_client().post(
            f"{self.base_url}/{path.lstrip('/')}",
            json=payload,
            headers={"Content-Type": "application/json"},
        )
        resp.raise_for_status()
        return resp
