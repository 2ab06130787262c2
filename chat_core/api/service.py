"""对外 API 服务模块。

提供简化的工厂函数供上层 UI 调用。每次调用都创建独立的控制器与事件总线，
不在模块级缓存实例：一个聊天窗口对应一个控制器。
"""

from typing import Callable, Optional

from chat_core.config.settings import settings
from chat_core.conversation.controller import ChatController
from chat_core.infrastructure.events.bus import EventBus
from chat_core.transport import create_transport
from chat_core.transport.base import ChatTransport


def create_chat_controller(
    session_id: Optional[str] = None,
    *,
    transport: Optional[ChatTransport] = None,
    bus: Optional[EventBus] = None,
    on_session_created: Optional[Callable[[str], None]] = None,
    cfg=None,
) -> ChatController:
    """创建一个聊天控制器。

    Args:
        session_id: 已有会话ID（可选，不提供则首次发送时创建新会话）
        transport: 自定义传输实现（可选，默认使用配置中的 HTTP 后端）
        bus: 共享的事件总线（可选，多个组件需要监听同一控制器时传入）
        on_session_created: 新会话创建后的回调（可选）
        cfg: 配置对象（可选，默认全局 settings）

    Returns:
        ChatController 实例
    """
    cfg = cfg or settings
    return ChatController(
        transport or create_transport(cfg=cfg),
        session_id=session_id,
        bus=bus or EventBus(),
        on_session_created=on_session_created,
        cfg=cfg,
    )
