"""事件行解析与负载分类。

EventParser 只认 "data:" 开头的行，其余行（注释、心跳、event:/id: 等）直接丢弃；
结束标记 [DONE] 只表示逻辑完成，不产生任何增量。

PayloadClassifier 按固定优先级把负载归为三类增量之一：
检索结果 > 正文 > 思考；JSON 解析失败时把原始负载当作正文透传，
不合规的负载永远不会被丢弃。
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional

from chat_core.domain.models import ContentDelta, Delta, RetrievalEvent, RetrieveResult, ThinkingDelta
from chat_core.infrastructure.logging.logger import logger


EVENT_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class EventParser:
    def __init__(self, prefix: str = EVENT_PREFIX, sentinel: str = DONE_SENTINEL):
        self._prefix = prefix
        self._sentinel = sentinel
        self.done_seen = False

    def parse_line(self, line: str) -> Optional[str]:
        """返回事件负载；非事件行、空负载与结束标记返回 None。"""

        if not line.startswith(self._prefix):
            return None
        payload = line[len(self._prefix):].strip()
        if not payload:
            return None
        if payload == self._sentinel:
            self.done_seen = True
            return None
        return payload

    def parse_lines(self, lines: Iterable[str]) -> List[str]:
        payloads = []
        for line in lines:
            payload = self.parse_line(line)
            if payload is not None:
                payloads.append(payload)
        return payloads


class PayloadClassifier:
    def classify(self, payload: str) -> Optional[Delta]:
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.log(
                logging.DEBUG,
                "Non-JSON payload treated as content",
                extra={"extra": {"payload_len": len(payload)}},
            )
            return ContentDelta(payload)
        if not isinstance(data, dict):
            return None
        return self._classify_object(data)

    @staticmethod
    def _classify_object(data: dict[str, Any]) -> Optional[Delta]:
        if data.get("retrieveMode") is True:
            retrieves = tuple(
                RetrieveResult.from_payload(item)
                for item in (data.get("retrieves") or [])
                if isinstance(item, dict)
            )
            return RetrievalEvent(kb_name=data.get("kbName"), retrieves=retrieves)
        content = data.get("content")
        if content:
            return ContentDelta(str(content))
        thinking = data.get("thinking")
        if thinking:
            return ThinkingDelta(str(thinking))
        return None

    def classify_all(self, payloads: Iterable[str]) -> List[Delta]:
        deltas = []
        for payload in payloads:
            delta = self.classify(payload)
            if delta is not None:
                deltas.append(delta)
        return deltas
