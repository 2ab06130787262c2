import asyncio
import contextlib

import pytest


class FakeTransport:
    """内存中的 ChatTransport。

    chunks 中的元素按顺序处理：
    - bytes: 作为一个数据块产出；
    - asyncio.Event: 等待该事件（用于把流挂起在读取点）；
    - BaseException 实例: 在读取时抛出。
    """

    name = "fake"

    def __init__(self, chunks=(), *, session_id="s-1", session_error=None, history=None):
        self.chunks = list(chunks)
        self.session_id = session_id
        self.session_error = session_error
        self.history = list(history or [])
        self.requests = []
        self.session_calls = 0
        self.streams_opened = 0
        self.streams_closed = 0

    async def create_session(self):
        self.session_calls += 1
        if self.session_error is not None:
            raise self.session_error
        return self.session_id

    @contextlib.asynccontextmanager
    async def stream_chat(self, req):
        self.requests.append(req)
        self.streams_opened += 1
        try:
            yield self._iter_chunks()
        finally:
            self.streams_closed += 1

    async def _iter_chunks(self):
        for item in self.chunks:
            if isinstance(item, asyncio.Event):
                await item.wait()
                continue
            if isinstance(item, BaseException):
                raise item
            yield item

    async def list_messages(self, session_id):
        return list(self.history)


@pytest.fixture
def make_transport():
    def factory(chunks=(), **kwargs):
        return FakeTransport(chunks, **kwargs)

    return factory


def split_bytes(data: bytes, *offsets: int):
    """按给定偏移把字节串切成多个数据块。"""

    chunks = []
    start = 0
    for offset in sorted(offsets):
        chunks.append(data[start:offset])
        start = offset
    chunks.append(data[start:])
    return [c for c in chunks if c]


@pytest.fixture
def splitter():
    return split_bytes
