"""领域层模型与会话状态。

包含：
- models: Message / ProtocolRecord / StreamOutcome 等统一模型。
- conversation: 会话消息列表的唯一持有者 ConversationStore。
- exceptions: 业务异常类型定义。
"""
