"""Chat Core 顶层包。

该包实现聊天客户端的流式摄取核心：
从后端读取事件流字节、边界安全解码、按行分帧、解析 data: 事件、
对负载分类、提取正文里的 <think>/<tool> 标签，并把这些增量收敛为
带协作式取消的消息状态机，向 UI 发布不可变的消息列表快照。
"""

from chat_core.api.service import create_chat_controller
from chat_core.conversation import ChatController

__all__ = ["ChatController", "create_chat_controller"]
