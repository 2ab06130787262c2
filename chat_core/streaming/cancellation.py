"""协作式取消。

CancellationToken 与一个正在运行的流（即读取该流的 asyncio 任务）一一绑定：
cancel() 置位并取消该任务，任务在当前挂起点（等待下一个数据块）收到
CancelledError，由 guard() 转换为可区分的 StreamCancelled。
已在同步处理中的数据块不会被打断，取消只在下一个挂起点生效。
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Iterator, Optional
from uuid import uuid4

from chat_core.domain.exceptions import StreamCancelled


class CancellationToken:
    def __init__(self, session_id: str = ""):
        self.id = f"ct-{uuid4().hex[:12]}"
        self.session_id = session_id
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    def bind(self, task: Optional[asyncio.Task] = None) -> None:
        """绑定读取流的任务，默认取当前任务。"""

        self._task = task or asyncio.current_task()

    def cancel(self) -> bool:
        """请求取消。已取消或已结束时为空操作，返回是否真正发出了取消。"""

        if self._cancelled or self._finished:
            return False
        self._cancelled = True
        # 在流自身的任务里（例如订阅回调中）取消时只置位，下一次 read() 会检查标志；
        # 否则挂起的取消请求会泄漏到调用方的下一个 await
        if self._task is not None and not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()
        return True

    def finish(self) -> None:
        self._finished = True
        self._task = None

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise StreamCancelled(self.session_id)

    @contextlib.contextmanager
    def guard(self) -> Iterator[None]:
        """把由本 token 触发的 CancelledError 转换为 StreamCancelled。

        外部（例如事件循环关闭）触发的取消不属于本 token，原样抛出。
        """

        try:
            yield
        except asyncio.CancelledError:
            if not self._cancelled:
                raise
            task = asyncio.current_task()
            if task is not None:
                # 吞掉自己发起的取消请求，避免影响外层的 timeout / TaskGroup
                task.uncancel()
            raise StreamCancelled(self.session_id) from None


class CancellationController:
    """管理当前在途流的取消令牌。

    同一会话只允许一个在途流：start() 会先取消同一 session_id 上仍在运行的旧流。
    """

    def __init__(self) -> None:
        self._tokens: dict[str, CancellationToken] = {}
        self._current: Optional[CancellationToken] = None

    @property
    def in_flight(self) -> bool:
        return self._current is not None and not self._current.finished

    def start(self, session_id: str) -> CancellationToken:
        previous = self._tokens.get(session_id)
        if previous is not None:
            previous.cancel()
        token = CancellationToken(session_id)
        token.bind()
        self._tokens[session_id] = token
        self._current = token
        return token

    def cancel(self) -> bool:
        """取消当前在途流；没有在途流时为空操作。可重复调用。"""

        if self._current is None:
            return False
        return self._current.cancel()

    def finish(self, token: CancellationToken) -> None:
        token.finish()
        if self._tokens.get(token.session_id) is token:
            del self._tokens[token.session_id]
        if self._current is token:
            self._current = None
