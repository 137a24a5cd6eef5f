"""流式响应处理层。

- decoder: 把原始片段切分为行并解码为 ProtocolRecord。
- aggregator: 驱动一次交换，累加内容并推送消息快照。
"""

from chat_widget.streaming.aggregator import SnapshotCallback, StreamAggregator, StreamState
from chat_widget.streaming.decoder import decode_chunk, decode_line, flush_buffer

__all__ = [
    "SnapshotCallback",
    "StreamAggregator",
    "StreamState",
    "decode_chunk",
    "decode_line",
    "flush_buffer",
]
