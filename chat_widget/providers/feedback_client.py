"""满意度调查与回答相关性反馈。

两个接口都是 "发出即忘"：提交失败只记日志，不影响会话状态，也不向 UI 抛异常。

- POST {base_url}/feedback                      {"rating", "timestamp"}
- POST {base_url}/feedback/response-relevance   {"message_index", "is_relevant", "content", "timestamp"}
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Set

import httpx

from chat_widget.config.settings import settings
from chat_widget.domain.exceptions import ValidationError
from chat_widget.infrastructure.logging.logger import logger
from chat_widget.providers.chat_client import ChatBackendClient


Rating = Literal["satisfied", "neutral", "unsatisfied"]
RATINGS = ("satisfied", "neutral", "unsatisfied")

FEEDBACK_PATH = "feedback"
RELEVANCE_PATH = "feedback/response-relevance"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class FeedbackClient:
    """反馈提交客户端，与聊天请求共用同一个 ChatBackendClient。"""

    def __init__(self, backend: ChatBackendClient, cfg=settings):
        self._backend = backend
        self._settings = cfg
        self._relevance_given: Set[int] = set()

    @property
    def enabled(self) -> bool:
        return bool(getattr(self._settings, "feedback_enabled", True))

    def has_relevance_feedback(self, message_index: int) -> bool:
        return message_index in self._relevance_given

    async def submit_rating(self, rating: Rating) -> bool:
        """提交满意度评分，返回是否成功送达。"""

        if rating not in RATINGS:
            raise ValidationError(code="INVALID_RATING", message=f"Unknown rating: {rating}", rating=rating)
        return await self._post(FEEDBACK_PATH, {"rating": rating, "timestamp": _utcnow()})

    async def submit_relevance(self, message_index: int, is_relevant: bool, content: str = "") -> bool:
        """提交某条助手回答是否切题。

        同一条消息只会成功提交一次；发送失败（或反馈被关闭）时不记账，之后可以重试。
        """

        if message_index in self._relevance_given:
            return False
        payload = {
            "message_index": message_index,
            "is_relevant": bool(is_relevant),
            "content": content,
            "timestamp": _utcnow(),
        }
        delivered = await self._post(RELEVANCE_PATH, payload)
        if delivered:
            self._relevance_given.add(message_index)
        return delivered

    async def _post(self, path: str, payload: Dict[str, Any]) -> bool:
        if not self.enabled:
            return False
        try:
            await self._backend.post_json(path, payload)
        except httpx.HTTPError as exc:
            logger.log(
                logging.WARNING,
                "Feedback submission failed",
                extra={"extra": {"path": path, "error_type": type(exc).__name__, "error": str(exc)}},
            )
            return False
        logger.info("Feedback submitted", extra={"extra": {"path": path}})
        return True
