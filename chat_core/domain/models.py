"""统一的消息与流式事件数据模型。

本模块定义了流式管线在各层之间传递的标准数据结构：

- Message / RetrieveResult: UI 渲染用的消息快照，均为不可变 dataclass，
  状态机每次更新都整体替换，订阅者拿到的快照不会被后续增量改写。
- ContentDelta / ThinkingDelta / RetrievalEvent: PayloadClassifier 的输出。
- ChatRequest 及 ModelSelection / KnowledgeBase: 发给后端的请求参数。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple, Union


# 消息角色（与后端 messageType USER / ASSISTANT 对应）
Role = Literal["user", "assistant"]

# 检索模式：联网搜索 / 知识库 / 深度思考 / 普通对话
SearchMode = Optional[Literal["web", "kb", "think"]]


class MessageStatus(str, Enum):
    PENDING = "pending"
    STREAMING = "streaming"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (MessageStatus.SUCCESS, MessageStatus.ERROR, MessageStatus.CANCELLED)


@dataclass(frozen=True)
class RetrieveResult:
    """知识库检索命中的一篇文档及其分片下标。"""

    doc_id: str
    title: str
    kb_id: Optional[int]
    chunk_indexes: Tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "RetrieveResult":
        # 后端字段名为 chunkIndexs（原样保留拼写）
        raw_indexes = data.get("chunkIndexs") or data.get("chunkIndexes") or []
        return cls(
            doc_id=str(data.get("docId") or ""),
            title=str(data.get("title") or ""),
            kb_id=data.get("kbId"),
            chunk_indexes=tuple(str(i) for i in raw_indexes),
        )


@dataclass(frozen=True)
class Message:
    """一条对话消息的不可变快照。

    - content: 原始累积文本（含 <think>/<tool> 标签）。
    - display_content: 去掉标签后的展示文本。
    - thinking: 深度思考文本，没有时为 None。
    - tool_names: 去重后的工具名，保持首次出现的顺序。
    - is_loading: 占位消息等待首个增量时为 True。
    """

    id: str
    role: Role
    content: str = ""
    display_content: str = ""
    thinking: Optional[str] = None
    tool_names: Tuple[str, ...] = ()
    retrieve_mode: bool = False
    kb_name: Optional[str] = None
    retrieves: Tuple[RetrieveResult, ...] = ()
    status: MessageStatus = MessageStatus.PENDING
    is_loading: bool = False
    model_name: Optional[str] = None


@dataclass(frozen=True)
class ContentDelta:
    text: str


@dataclass(frozen=True)
class ThinkingDelta:
    text: str


@dataclass(frozen=True)
class RetrievalEvent:
    kb_name: Optional[str]
    retrieves: Tuple[RetrieveResult, ...] = ()


Delta = Union[ContentDelta, ThinkingDelta, RetrievalEvent]


@dataclass(frozen=True)
class ModelSelection:
    """UI 选中的模型；两个字段都可能为空（使用后端默认模型）。"""

    provider_id: Optional[str] = None
    model_name: Optional[str] = None


@dataclass(frozen=True)
class KnowledgeBase:
    id: int
    name: str = ""


@dataclass
class ChatRequest:
    """一次流式聊天请求。

    to_payload() 负责转换为后端约定的 camelCase JSON，未设置的可选字段不下发。
    """

    session_id: str
    prompt: str
    provider_id: Optional[str] = None
    model_name: Optional[str] = None
    search_enabled: bool = False
    rag_enabled: bool = False
    thinking_enabled: bool = False
    kb_id: Optional[int] = None

    @classmethod
    def build(
        cls,
        session_id: str,
        prompt: str,
        model: Optional[ModelSelection] = None,
        search_mode: SearchMode = None,
        knowledge_base: Optional[KnowledgeBase] = None,
    ) -> "ChatRequest":
        return cls(
            session_id=session_id,
            prompt=prompt,
            provider_id=model.provider_id if model else None,
            model_name=model.model_name if model else None,
            search_enabled=search_mode == "web",
            rag_enabled=search_mode == "kb",
            thinking_enabled=search_mode == "think",
            kb_id=knowledge_base.id if (search_mode == "kb" and knowledge_base) else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sessionId": self.session_id,
            "prompt": self.prompt,
            "searchEnabled": self.search_enabled,
            "ragEnabled": self.rag_enabled,
        }
        if self.provider_id:
            payload["providerId"] = self.provider_id
        if self.model_name:
            payload["modelName"] = self.model_name
        if self.thinking_enabled:
            payload["thinkingEnabled"] = True
        if self.kb_id is not None:
            payload["kbId"] = self.kb_id
        return payload
