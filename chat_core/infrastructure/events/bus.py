"""进程内发布/订阅事件总线。

每个 ChatController 持有（或被注入）自己的 EventBus 实例，
不使用模块级单例，这样生命周期清晰，测试之间互不干扰。

目前使用的主题：
- MESSAGES: 消息列表快照（tuple[Message, ...]）。
- NOTIFICATION: 面向用户的提示（Notification）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal

from chat_core.infrastructure.logging.logger import logger


MESSAGES = "messages"
NOTIFICATION = "notification"

Callback = Callable[[Any], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class Notification:
    level: Literal["info", "warning", "error"]
    text: str


class EventBus:
    def __init__(self) -> None:
        self._callbacks: Dict[str, List[Callback]] = {}

    def subscribe(self, topic: str, callback: Callback) -> Unsubscribe:
        """注册回调，返回取消订阅函数（重复调用无副作用）。"""

        self._callbacks.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._callbacks.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def publish(self, topic: str, payload: Any) -> None:
        # 遍历副本：回调内部可以安全地取消订阅
        for callback in list(self._callbacks.get(topic, [])):
            try:
                callback(payload)
            except Exception:
                # 单个订阅者出错不影响其他订阅者，也不打断流式处理
                logger.log(
                    logging.ERROR,
                    "Event callback failed",
                    exc_info=True,
                    extra={"extra": {"topic": topic}},
                )
