"""聊天后端集成层。

该包下的模块负责：
- 定义传输抽象接口 (base)。
- 维护后端接口路径配置 (registry)。
- 提供基于 httpx 的具体实现 (http_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.transport.base import ChatTransport
from chat_core.transport.http_client import HttpChatTransport
from chat_core.transport.registry import get_backend_config


def create_transport(backend: Optional[str] = None, cfg=None) -> ChatTransport:
    """根据后端版本名创建传输实例，默认 chat-v1。"""

    return HttpChatTransport(cfg or settings, get_backend_config(backend or "chat-v1"))
