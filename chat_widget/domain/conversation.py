"""会话状态：消息列表与 loading 标记的唯一持有者。

ConversationStore 是一个显式传递的聚合对象（不是全局单例），渲染层只通过
只读属性和订阅回调观察它。一次 submit 对应一次 HTTP 交换：

    submit("Hi")
      -> 追加 user 消息与空的 assistant 占位消息
      -> 启动 StreamAggregator，快照按占位下标原地替换
      -> 终态快照到达后 loading = False

同一时刻只有一条未完成的消息。交换进行中再次 submit 时，旧交换被放弃：
停止读取、丢弃其后续快照，并把旧占位以已收到的内容冻结为完成态。
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Tuple

from chat_widget.domain.exceptions import ValidationError
from chat_widget.domain.models import FAILURE_MESSAGE, Message, MessageKind, StreamOutcome
from chat_widget.infrastructure.logging.logger import logger
from chat_widget.providers.base import ChatTransport
from chat_widget.streaming.aggregator import StreamAggregator


ChangeListener = Callable[[int, Message], None]


@dataclass
class _Exchange:
    """一次进行中的交换与它绑定的消息下标。"""

    index: int
    aggregator: StreamAggregator
    task: Optional["asyncio.Task[StreamOutcome]"] = None
    armed: bool = True


class ConversationStore:
    def __init__(self, client: ChatTransport):
        self._client = client
        self._messages: List[Message] = []
        self._loading = False
        self._active: Optional[_Exchange] = None
        self._listeners: List[ChangeListener] = []

    # ---- 只读视图 ----

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def in_flight_index(self) -> Optional[int]:
        return self._active.index if self._active else None

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """注册变更回调 (index, message)，返回取消订阅函数。"""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- 操作 ----

    def submit(self, content: str) -> "asyncio.Task[StreamOutcome]":
        """提交一条用户消息并开始流式获取回答。

        必须在运行中的事件循环里调用。返回驱动本次交换的 Task，
        调用方可以 await 它，也可以忽略它。
        """

        if not content or not content.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="Message content is empty")

        if self._active is not None:
            self._abandon(self._active, reason="superseded")

        self._append(Message.user(content))
        history = list(self._messages)
        index = self._append(Message.placeholder())

        exchange = _Exchange(index=index, aggregator=StreamAggregator(log_ctx={"message_index": index}))
        self._active = exchange
        self._loading = True
        exchange.task = asyncio.create_task(self._run(exchange, history))
        return exchange.task

    def cancel(self) -> None:
        """放弃当前交换（例如挂件被关闭）。没有进行中的交换时什么也不做。"""

        if self._active is not None:
            self._abandon(self._active, reason="cancelled")

    async def wait(self) -> Optional[StreamOutcome]:
        """等待当前交换结束。"""

        exchange = self._active
        if exchange is None or exchange.task is None:
            return None
        return await exchange.task

    # ---- 内部 ----

    async def _run(self, exchange: _Exchange, history: List[Message]) -> StreamOutcome:
        self._log(
            logging.INFO,
            "Assistant exchange started",
            message_index=exchange.index,
            message_count=len(history),
            url=self._client.chat_url(),
        )
        try:
            return await exchange.aggregator.run(
                self._client.stream_chat(history),
                lambda snapshot: self._apply_snapshot(exchange, snapshot),
            )
        except asyncio.CancelledError:
            if exchange.armed:
                self._abandon(exchange, reason="task cancelled")
                raise
            return StreamOutcome.CANCELLED
        except Exception as exc:
            # 兜底：任何未预期的错误也要落到一个终态消息上
            self._log(
                logging.ERROR,
                "Assistant exchange crashed",
                message_index=exchange.index,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            self._apply_snapshot(
                exchange,
                Message(role="assistant", kind=MessageKind.TEXT, content=FAILURE_MESSAGE, complete=True),
            )
            return StreamOutcome.FAILED

    def _apply_snapshot(self, exchange: _Exchange, snapshot: Message) -> None:
        if not exchange.armed:
            return
        current = self._messages[exchange.index]
        if current.complete:
            return
        self._replace(exchange.index, replace(snapshot, role=current.role))
        if snapshot.complete:
            self._finish(exchange)

    def _abandon(self, exchange: _Exchange, reason: str) -> None:
        exchange.aggregator.cancel()
        self._finish(exchange)
        task = exchange.task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        current = self._messages[exchange.index]
        if not current.complete:
            self._replace(exchange.index, replace(current, complete=True))
        self._log(logging.INFO, "Assistant exchange abandoned", message_index=exchange.index, reason=reason)

    def _finish(self, exchange: _Exchange) -> None:
        exchange.armed = False
        if self._active is exchange:
            self._active = None
            self._loading = False

    def _append(self, message: Message) -> int:
        self._messages.append(message)
        index = len(self._messages) - 1
        self._notify(index, message)
        return index

    def _replace(self, index: int, message: Message) -> None:
        self._messages[index] = message
        self._notify(index, message)

    def _notify(self, index: int, message: Message) -> None:
        # 渲染层回调出错不能影响会话状态（loading、占位绑定）
        for listener in list(self._listeners):
            try:
                listener(index, message)
            except Exception as exc:
                self._log(
                    logging.ERROR,
                    "Change listener failed",
                    message_index=index,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        logger.log(level, message, extra={"extra": fields})
