"""领域层模型与协议。

包含：
- conversation: 会话与消息模型、存储事件以及 PersistenceLayer 协议。
- exceptions: 业务异常类型定义。
"""
