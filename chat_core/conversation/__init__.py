"""会话层：消息状态机与面向 UI 的控制器。"""

from chat_core.conversation.controller import ChatController
from chat_core.conversation.state_machine import ConversationStateMachine, StreamSession

__all__ = ["ChatController", "ConversationStateMachine", "StreamSession"]
