"""流式响应聚合器。

一次 HTTP 交换对应一个 StreamAggregator：逐片读取响应体，经 decoder 解码后
按到达顺序累加内容，并通过回调向会话层推送助手消息快照。

快照规则：
- 每条带非空 content 的 text/tool_calls 记录触发一次非终态快照。
- 传输耗尽时恰好触发一次终态快照。
- 非 2xx 状态不读响应体，直接给出固定错误文案的终态快照。
- 读取过程中的传输错误给出另一条固定错误文案的终态快照。
- 被取消后不再读取，也不再推送任何快照。
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Callable, Dict, Iterable

import httpx

from chat_widget.domain.models import (
    FAILURE_MESSAGE,
    REJECTED_MESSAGE,
    Message,
    MessageKind,
    ProtocolRecord,
    RecordKind,
    StreamOutcome,
)
from chat_widget.infrastructure.logging.logger import logger
from chat_widget.providers.base import StreamingResponse
from chat_widget.streaming.decoder import decode_chunk, flush_buffer


SnapshotCallback = Callable[[Message], None]

# 读取阶段被视为 "连接失败" 的异常；单行格式错误不在此列，由 decoder 吞掉
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.StreamError, UnicodeDecodeError)


@dataclass
class StreamState:
    """单次交换的内部状态，交换结束即丢弃。"""

    buffer: str = ""
    accumulated_content: str = ""
    current_kind: MessageKind = MessageKind.TEXT
    saw_tool_calls: bool = False
    cancelled: bool = False
    terminated: bool = False

    def snapshot(self, complete: bool) -> Message:
        return Message(
            role="assistant",
            kind=self.current_kind,
            content=self.accumulated_content,
            complete=complete,
        )


class StreamAggregator:
    """把一个响应流聚合为一条增量更新的助手消息。"""

    def __init__(self, log_ctx: Dict[str, Any] | None = None):
        self.state = StreamState()
        self._log_ctx = dict(log_ctx or {})

    @property
    def cancelled(self) -> bool:
        return self.state.cancelled

    def cancel(self) -> None:
        """放弃本次交换。之后的读取循环会停止，回调不会再被调用。"""

        self.state.cancelled = True

    async def run(
        self,
        exchange: AsyncContextManager[StreamingResponse],
        on_snapshot: SnapshotCallback,
    ) -> StreamOutcome:
        """驱动一次交换直到终止。

        Args:
            exchange: 尚未进入的流式响应上下文（例如 ``client.stream(...)`` 的返回值），
                进入时等待响应头，退出时关闭连接。
            on_snapshot: 快照回调，会话层据此原地替换占位消息。
        """

        state = self.state
        try:
            async with exchange as response:
                if self.cancelled:
                    return self._abandoned()
                if not 200 <= response.status_code < 300:
                    self._log(logging.WARNING, "Assistant rejected request", status=response.status_code)
                    self._terminate(on_snapshot, REJECTED_MESSAGE)
                    return StreamOutcome.REJECTED

                async for fragment in response.aiter_text():
                    if self.cancelled:
                        return self._abandoned()
                    records, state.buffer = decode_chunk(fragment, state.buffer)
                    self._process(records, on_snapshot)

                if self.cancelled:
                    return self._abandoned()
                tail, state.buffer = state.buffer, ""
                self._process(flush_buffer(tail), on_snapshot)
        except TRANSPORT_ERRORS as exc:
            if self.cancelled:
                return self._abandoned()
            self._log(logging.ERROR, "Assistant stream failed", error_type=type(exc).__name__, error=str(exc))
            self._terminate(on_snapshot, FAILURE_MESSAGE)
            return StreamOutcome.FAILED

        if self.cancelled:
            return self._abandoned()
        self._emit(on_snapshot, state.snapshot(complete=True))
        state.terminated = True
        self._log(
            logging.INFO,
            "Assistant stream completed",
            kind=state.current_kind.value,
            content_length=len(state.accumulated_content),
        )
        return StreamOutcome.COMPLETED

    # ---- 辅助方法 ----

    def _process(self, records: Iterable[ProtocolRecord], on_snapshot: SnapshotCallback) -> None:
        state = self.state
        for record in records:
            if self.cancelled:
                return
            if record.kind == RecordKind.TOOL_CALLS and not state.saw_tool_calls:
                state.saw_tool_calls = True
                state.current_kind = MessageKind.TOOL_CALLS
            if record.kind not in (RecordKind.TEXT, RecordKind.TOOL_CALLS) or not record.carries_content:
                continue
            state.accumulated_content += record.content
            self._emit(on_snapshot, state.snapshot(complete=False))

    def _terminate(self, on_snapshot: SnapshotCallback, error_text: str) -> None:
        # 错误替换整条消息内容，类型回落为 TEXT
        self._emit(on_snapshot, Message(role="assistant", kind=MessageKind.TEXT, content=error_text, complete=True))
        self.state.terminated = True

    def _emit(self, on_snapshot: SnapshotCallback, message: Message) -> None:
        if self.cancelled or self.state.terminated:
            return
        on_snapshot(message)

    def _abandoned(self) -> StreamOutcome:
        self._log(logging.INFO, "Assistant stream abandoned", content_length=len(self.state.accumulated_content))
        return StreamOutcome.CANCELLED

    def _log(self, level: int, message: str, **fields: Any) -> None:
        payload = dict(self._log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
