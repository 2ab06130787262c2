from __future__ import annotations

from typing import List


class LineFramer:
    """把任意切分的文本片段重新拼装成按换行分隔的行。

    未以换行结束的尾部保留到下一次 feed()；流结束时由 flush() 作为最后一行输出，
    这样没有结尾换行的最后一个事件也不会丢失。
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, text: str) -> List[str]:
        if not text:
            return []
        self._buffer += text
        cut = self._buffer.rfind("\n")
        if cut == -1:
            return []
        complete, self._buffer = self._buffer[:cut], self._buffer[cut + 1:]
        return [line.rstrip("\r") for line in complete.split("\n")]

    def flush(self) -> List[str]:
        rest, self._buffer = self._buffer, ""
        rest = rest.rstrip("\r")
        return [rest] if rest else []
