"""领域层模型与异常。

包含：
- models: 对话 API 的 LLMMessage / ChatRequest / ChatResult 等传输模型。
- qimen: 排盘输入、归一化结果与报告。
- conversation: 会话与消息。
- profile: 用户本人与已保存的命盘档案。
- exceptions: 业务异常类型定义。
"""
