"""领域层模型与协议。

包含：
- models: Message / RetrieveResult / ChatRequest 以及各类增量模型。
- conversation: 消息列表存储及 MessageStore 抽象。
- exceptions: 业务异常类型定义。
"""
