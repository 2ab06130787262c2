"""会话状态机。

负责消息生命周期、把增量应用到消息、并向订阅者发布快照：

    pending -> streaming -> success | error | cancelled   （终态不可再迁移）

- begin(): 追加一条已完成的用户消息和一条 pending 的助手占位消息。
- 首个增量: pending -> streaming，清除 loading。
- 正常结束: -> success。
- 协作式取消: -> success，保留已累积的正文/思考/工具名（取消不算失败）。
- 其他读取/传输失败: -> error，正文替换为固定的致歉文案，已累积内容丢弃。

快照按数据块批量发布：同一数据块解码出的所有行最多产生一次发布。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

from chat_core.config.settings import DEFAULT_ERROR_MESSAGE, settings
from chat_core.domain.conversation import MessageStore, Snapshot
from chat_core.domain.exceptions import StreamCancelled
from chat_core.domain.models import (
    ChatRequest,
    ContentDelta,
    Delta,
    Message,
    MessageStatus,
    RetrievalEvent,
    ThinkingDelta,
)
from chat_core.infrastructure.events.bus import MESSAGES, EventBus
from chat_core.infrastructure.logging.logger import logger
from chat_core.streaming.cancellation import CancellationToken
from chat_core.streaming.events import EventParser, PayloadClassifier
from chat_core.streaming.framing import LineFramer
from chat_core.streaming.reader import StreamReader
from chat_core.streaming.tags import EmbeddedTagExtractor
from chat_core.transport.base import ChatTransport


@dataclass
class StreamSession:
    """一次 submit() 对应的临时流状态，流结束、出错或取消后即丢弃。"""

    session_id: str
    message_id: str
    token: CancellationToken
    trace_id: str = field(default_factory=lambda: f"tr-{uuid4().hex}")
    framer: LineFramer = field(default_factory=LineFramer)
    parser: EventParser = field(default_factory=EventParser)
    reader: Optional[StreamReader] = None
    # 通过 thinking 字段下发的思考增量，与正文里 <think> 标签提取的内容分开累积
    thinking: str = ""
    deltas_applied: int = 0

    @property
    def log_ctx(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "session_id": self.session_id,
            "message_id": self.message_id,
        }


class ConversationStateMachine:
    def __init__(
        self,
        store: MessageStore,
        bus: EventBus,
        extractor: Optional[EmbeddedTagExtractor] = None,
        classifier: Optional[PayloadClassifier] = None,
        cfg=settings,
    ):
        self._store = store
        self._bus = bus
        self._extractor = extractor or EmbeddedTagExtractor()
        self._classifier = classifier or PayloadClassifier()
        self._settings = cfg

    # ---- 生命周期 ----

    def begin(self, prompt: str, model_name: Optional[str] = None) -> Tuple[str, str]:
        """追加用户消息与助手占位消息，返回 (用户消息ID, 助手消息ID)。"""

        user_msg = Message(
            id=f"m-{uuid4().hex}",
            role="user",
            content=prompt,
            display_content=prompt,
            status=MessageStatus.SUCCESS,
        )
        assistant_msg = Message(
            id=f"m-{uuid4().hex}",
            role="assistant",
            status=MessageStatus.PENDING,
            is_loading=True,
            model_name=model_name,
        )
        self._store.append(user_msg, assistant_msg)
        self.publish()
        return user_msg.id, assistant_msg.id

    async def consume(
        self,
        session: StreamSession,
        transport: ChatTransport,
        request: ChatRequest,
    ) -> Optional[Message]:
        """读取整个流并把结果落到 session.message_id 对应的消息上。

        取消时返回终态消息；传输失败时先把消息置为 error，再把异常抛给调用方。
        """

        token = session.token
        self._log(logging.INFO, "Stream opening", session.log_ctx)
        try:
            with token.guard():
                async with transport.stream_chat(request) as chunks:
                    reader = StreamReader(chunks, token, getattr(self._settings, "stream_encoding", "utf-8"))
                    session.reader = reader
                    while True:
                        result = await reader.read()
                        lines = session.framer.feed(result.text)
                        if result.done:
                            lines.extend(session.framer.flush())
                        self.process_lines(session, lines)
                        if result.done:
                            break
        except StreamCancelled:
            self._log(
                logging.INFO,
                "Stream cancelled",
                session.log_ctx,
                deltas=session.deltas_applied,
            )
            return self.mark_cancelled(session.message_id)
        except asyncio.CancelledError:
            # 非本 token 发起的取消（例如事件循环关闭）：保留已收到的内容后继续向上传播
            self.mark_cancelled(session.message_id)
            raise
        except Exception as exc:
            self._log(
                logging.ERROR,
                "Stream failed",
                session.log_ctx,
                error=str(exc),
                error_type=type(exc).__name__,
                deltas=session.deltas_applied,
            )
            self.mark_failed(session.message_id)
            raise

        self._log(
            logging.INFO,
            "Stream completed",
            session.log_ctx,
            deltas=session.deltas_applied,
            bytes=reader.bytes_read,
            chunks=reader.chunks_read,
            done_seen=session.parser.done_seen,
        )
        return self.mark_completed(session.message_id)

    # ---- 增量处理 ----

    def process_lines(self, session: StreamSession, lines: Iterable[str]) -> bool:
        """处理一个数据块解码出的所有行，有增量时发布一次快照。"""

        payloads = session.parser.parse_lines(lines)
        deltas = self._classifier.classify_all(payloads)
        if not deltas:
            return False
        before = self._store.get(session.message_id) if session.message_id in self._store else None
        updated = self._update(session.message_id, lambda m: self._apply(m, session, deltas))
        if updated is None or updated is before:
            return False
        session.deltas_applied += len(deltas)
        self.publish()
        return True

    def _apply(self, message: Message, session: StreamSession, deltas: List[Delta]) -> Message:
        if message.status.is_terminal:
            return message
        content = message.content
        changes: Dict[str, Any] = {}
        for delta in deltas:
            if isinstance(delta, ContentDelta):
                content += delta.text
            elif isinstance(delta, ThinkingDelta):
                session.thinking += delta.text
            elif isinstance(delta, RetrievalEvent):
                changes.update(
                    retrieve_mode=True,
                    kb_name=delta.kb_name,
                    retrieves=delta.retrieves,
                )
        extracted = self._extractor.extract(content)
        return replace(
            message,
            content=content,
            display_content=extracted.display_content,
            thinking=(session.thinking + extracted.thinking) or None,
            tool_names=extracted.tool_names,
            status=MessageStatus.STREAMING,
            is_loading=False,
            **changes,
        )

    # ---- 终态迁移 ----

    def mark_completed(self, message_id: str) -> Optional[Message]:
        return self._finish(message_id, MessageStatus.SUCCESS)

    def mark_cancelled(self, message_id: str) -> Optional[Message]:
        # 取消不是失败：保留部分内容，只结束 loading
        return self._finish(message_id, MessageStatus.SUCCESS)

    def mark_failed(self, message_id: str) -> Optional[Message]:
        apology = getattr(self._settings, "error_message", None) or DEFAULT_ERROR_MESSAGE
        return self._finish(
            message_id,
            MessageStatus.ERROR,
            content=apology,
            display_content=apology,
            thinking=None,
            tool_names=(),
        )

    def _finish(self, message_id: str, status: MessageStatus, **changes: Any) -> Optional[Message]:
        def transition(m: Message) -> Message:
            if m.status.is_terminal:
                self._log(
                    logging.WARNING,
                    "Ignored transition from terminal state",
                    {"message_id": m.id},
                    current=m.status.value,
                    requested=status.value,
                )
                return m
            return replace(m, status=status, is_loading=False, **changes)

        before = self._store.get(message_id) if message_id in self._store else None
        updated = self._update(message_id, transition)
        if updated is not None and updated is not before:
            self.publish()
        return updated

    # ---- 发布 ----

    def snapshot(self) -> Snapshot:
        return self._store.snapshot()

    def publish(self) -> Snapshot:
        snap = self._store.snapshot()
        self._bus.publish(MESSAGES, snap)
        return snap

    def _update(self, message_id: str, fn) -> Optional[Message]:
        if message_id not in self._store:
            # 历史被整体替换（切换会话）后，旧流的更新直接丢弃
            self._log(logging.DEBUG, "Dropped update for unknown message", {"message_id": message_id})
            return None
        return self._store.update(message_id, fn)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
