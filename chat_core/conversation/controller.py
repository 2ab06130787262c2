"""面向 UI 的聊天控制器。

UI 只需要：
- subscribe(callback): 订阅消息列表快照；
- on_notification(callback): 订阅用户提示（失败原因等）；
- await submit(...): 发送一条消息并等待流结束；
- cancel(): 取消当前在途的流。

同一会话只允许一个在途流：再次 submit() 时先自动取消上一条仍在输出的流，
上一条助手消息以 success 结束并保留已输出的内容。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.conversation.state_machine import ConversationStateMachine, StreamSession
from chat_core.domain.conversation import MessageList, MessageStore, Snapshot
from chat_core.domain.exceptions import BusinessError, SessionCreationError, ValidationError
from chat_core.domain.models import (
    ChatRequest,
    KnowledgeBase,
    Message,
    MessageStatus,
    ModelSelection,
    RetrieveResult,
    SearchMode,
)
from chat_core.infrastructure.events.bus import MESSAGES, NOTIFICATION, EventBus, Notification, Unsubscribe
from chat_core.infrastructure.logging.logger import logger
from chat_core.streaming.cancellation import CancellationController
from chat_core.streaming.tags import EmbeddedTagExtractor
from chat_core.transport.base import ChatTransport


class ChatController:
    def __init__(
        self,
        transport: ChatTransport,
        *,
        session_id: Optional[str] = None,
        bus: Optional[EventBus] = None,
        store: Optional[MessageStore] = None,
        on_session_created: Optional[Callable[[str], None]] = None,
        cfg=settings,
    ):
        self._transport = transport
        self._session_id = session_id
        self._bus = bus or EventBus()
        self._store = store or MessageList()
        self._on_session_created = on_session_created
        self._settings = cfg
        self._extractor = EmbeddedTagExtractor()
        self._machine = ConversationStateMachine(self._store, self._bus, extractor=self._extractor, cfg=cfg)
        self._cancellation = CancellationController()
        # 首次提交并发时只创建一个会话
        self._session_lock = asyncio.Lock()

    # ---- 状态 ----

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def sending(self) -> bool:
        return self._cancellation.in_flight

    @property
    def bus(self) -> EventBus:
        return self._bus

    def snapshot(self) -> Snapshot:
        return self._store.snapshot()

    def subscribe(self, callback: Callable[[Snapshot], None]) -> Unsubscribe:
        return self._bus.subscribe(MESSAGES, callback)

    def on_notification(self, callback: Callable[[Notification], None]) -> Unsubscribe:
        return self._bus.subscribe(NOTIFICATION, callback)

    # ---- 对外操作 ----

    async def submit(
        self,
        message: str,
        model_selection: Optional[ModelSelection] = None,
        search_mode: SearchMode = None,
        knowledge_base: Optional[KnowledgeBase] = None,
    ) -> Snapshot:
        """发送一条消息并消费整条流，返回流结束后的消息列表快照。

        Raises:
            ValidationError: message 为空。其余失败都转换为消息状态与用户提示，不向上抛出。
        """

        if not message or not message.strip():
            raise ValidationError(code="EMPTY_PROMPT", message="message must not be empty")

        log_ctx: Dict[str, Any] = {"session_id": self._session_id}
        try:
            session_id = await self._ensure_session()
        except SessionCreationError as e:
            self._log(logging.ERROR, "Session creation failed", log_ctx, error=e.message)
            self._notify("error", f"创建会话失败: {e.message}")
            return self.snapshot()

        token = self._cancellation.start(session_id)
        model_name = model_selection.model_name if model_selection else None
        _, assistant_id = self._machine.begin(message, model_name=model_name)
        session = StreamSession(session_id=session_id, message_id=assistant_id, token=token)
        request = ChatRequest.build(
            session_id=session_id,
            prompt=message,
            model=model_selection,
            search_mode=search_mode,
            knowledge_base=knowledge_base,
        )
        self._log(
            logging.INFO,
            "Submitting message",
            session.log_ctx,
            search_mode=search_mode,
            model_name=model_name,
            kb_id=request.kb_id,
        )
        try:
            await self._machine.consume(session, self._transport, request)
        except Exception as e:
            reason = e.message if isinstance(e, BusinessError) else (str(e) or type(e).__name__)
            self._notify("error", f"消息发送失败: {reason}")
        finally:
            self._cancellation.finish(token)
        return self.snapshot()

    def cancel(self) -> bool:
        """取消当前在途流；没有在途流或已结束时为空操作。"""

        cancelled = self._cancellation.cancel()
        if cancelled:
            self._log(logging.INFO, "Cancel requested", {"session_id": self._session_id})
        return cancelled

    async def load_history(self, session_id: str) -> Snapshot:
        """切换到已有会话并加载其历史消息。"""

        self._cancellation.cancel()
        rows = await self._transport.list_messages(session_id)
        messages = [self._history_row_to_message(row) for row in rows]
        self._session_id = session_id
        self._store.replace_all(messages)
        self._log(logging.INFO, "History loaded", {"session_id": session_id}, count=len(messages))
        return self._machine.publish()

    # ---- 辅助方法 ----

    async def _ensure_session(self) -> str:
        async with self._session_lock:
            if self._session_id:
                return self._session_id
            try:
                session_id = await self._transport.create_session()
            except BusinessError as e:
                raise SessionCreationError(code="SESSION_CREATE_FAILED", message=e.message, cause=e.code) from e
            self._session_id = session_id
        self._log(logging.INFO, "Created new session", {"session_id": session_id})
        if self._on_session_created:
            self._on_session_created(session_id)
        return session_id

    def _history_row_to_message(self, row: Dict[str, Any]) -> Message:
        role = "user" if str(row.get("messageType", "")).upper() == "USER" else "assistant"
        message_id = f"h-{row['id']}" if row.get("id") is not None else f"h-{uuid4().hex}"
        content = str(row.get("message") or "")
        retrieves = tuple(
            RetrieveResult.from_payload(item) for item in (row.get("retrieves") or []) if isinstance(item, dict)
        )
        if role == "user":
            return Message(
                id=message_id,
                role="user",
                content=content,
                display_content=content,
                status=MessageStatus.SUCCESS,
            )
        extracted = self._extractor.extract(content)
        return Message(
            id=message_id,
            role="assistant",
            content=content,
            display_content=extracted.display_content,
            thinking=extracted.thinking or None,
            tool_names=extracted.tool_names,
            retrieve_mode=bool(row.get("kbName") or retrieves),
            kb_name=row.get("kbName"),
            retrieves=retrieves,
            status=MessageStatus.SUCCESS,
        )

    def _notify(self, level: str, text: str) -> None:
        self._bus.publish(NOTIFICATION, Notification(level=level, text=text))

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})

