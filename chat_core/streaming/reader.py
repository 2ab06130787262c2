"""从传输层读取原始字节并做边界安全的文本解码。"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from chat_core.streaming.cancellation import CancellationToken


@dataclass(frozen=True)
class ReadResult:
    done: bool
    text: str = ""


class StreamReader:
    """逐块读取字节流并增量解码。

    多字节字符被拆到两个数据块时，前一块末尾的不完整字节由增量解码器保留，
    与下一块拼接后再解码，不会出现乱码或丢字。非法字节按 U+FFFD 替换。

    读取是唯一的挂起点：取消令牌触发时在这里抛出 StreamCancelled，
    传输层异常原样向上传播。
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        token: Optional[CancellationToken] = None,
        encoding: str = "utf-8",
    ):
        self._chunks = chunks.__aiter__()
        self._token = token or CancellationToken()
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._done = False
        self.bytes_read = 0
        self.chunks_read = 0

    @property
    def done(self) -> bool:
        return self._done

    async def read(self) -> ReadResult:
        if self._done:
            return ReadResult(done=True)
        self._token.raise_if_cancelled()
        with self._token.guard():
            try:
                raw = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._done = True
                # 流结束时冲刷解码器中残留的不完整字节序列
                return ReadResult(done=True, text=self._decoder.decode(b"", final=True))
        self.bytes_read += len(raw)
        self.chunks_read += 1
        return ReadResult(done=False, text=self._decoder.decode(raw))

    def __aiter__(self) -> "StreamReader":
        return self

    async def __anext__(self) -> ReadResult:
        if self._done:
            raise StopAsyncIteration
        return await self.read()
