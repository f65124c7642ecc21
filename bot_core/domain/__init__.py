"""领域层模型与协议。

包含：
- models: IncomingRequest / OutgoingResult / Intent 等统一数据结构。
- session: 用户会话模型及 SessionStore 抽象。
- platforms: 平台标识与能力注册表。
- exceptions: 业务异常类型定义。
"""
