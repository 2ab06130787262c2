from typing import Callable, Dict, List, Optional, Protocol, Tuple

from .models import Message


Snapshot = Tuple[Message, ...]


class MessageStore(Protocol):
    def append(self, *messages: Message) -> None:
        ...

    def get(self, message_id: str) -> Message:
        ...

    def update(self, message_id: str, fn: Callable[[Message], Message]) -> Message:
        ...

    def replace_all(self, messages: List[Message]) -> None:
        ...

    def snapshot(self) -> Snapshot:
        ...

    def __contains__(self, message_id: object) -> bool:
        ...


class MessageList(MessageStore):
    """内存中的有序消息列表。

    消息本身不可变，update() 以“按 id 替换”的方式写入，
    每条消息只有一个写入方（对应的流），因此不同消息可以交错更新。
    """

    def __init__(self, messages: Optional[List[Message]] = None):
        self._messages: List[Message] = list(messages or [])
        self._index: Dict[str, int] = {m.id: i for i, m in enumerate(self._messages)}

    def append(self, *messages: Message) -> None:
        for m in messages:
            if m.id in self._index:
                raise KeyError(f"Duplicate message id: {m.id!r}")
            self._index[m.id] = len(self._messages)
            self._messages.append(m)

    def get(self, message_id: str) -> Message:
        return self._messages[self._index[message_id]]

    def update(self, message_id: str, fn: Callable[[Message], Message]) -> Message:
        pos = self._index[message_id]
        updated = fn(self._messages[pos])
        self._messages[pos] = updated
        return updated

    def replace_all(self, messages: List[Message]) -> None:
        self._messages = []
        self._index = {}
        self.append(*messages)

    def snapshot(self) -> Snapshot:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._index
