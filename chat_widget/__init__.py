"""Chat Widget 顶层包。

该包提供聊天挂件的核心实现：按行分隔的流式响应解码、
助手消息的增量聚合、会话状态管理，以及反馈提交。
渲染层通过 ChatWidgetSession 使用这些能力。
"""

from chat_widget.api.service import ChatWidgetSession, create_session

__all__ = ["ChatWidgetSession", "create_session"]
