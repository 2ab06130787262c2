"""Transport 抽象接口。

状态机与控制器不直接依赖 HTTP 库，而是依赖此协议：

- create_session(): 创建会话，返回后端分配的不透明会话 ID。
- stream_chat(req): 异步上下文管理器，产出原始字节块的异步迭代器。
- list_messages(session_id): 拉取会话历史（后端原始 JSON 行）。

这样测试中可以用内存里的假传输替换真实的 HTTP 客户端。
"""

from typing import Any, AsyncContextManager, AsyncIterator, Dict, List, Protocol

from chat_core.domain.models import ChatRequest


class ChatTransport(Protocol):
    name: str

    async def create_session(self) -> str:
        ...

    def stream_chat(self, req: ChatRequest) -> AsyncContextManager[AsyncIterator[bytes]]:
        """打开一次流式聊天，进入上下文后得到字节块迭代器。"""

        ...

    async def list_messages(self, session_id: str) -> List[Dict[str, Any]]:
        ...
