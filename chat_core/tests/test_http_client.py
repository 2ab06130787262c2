import httpx
import pytest

from chat_core.domain.exceptions import ApiError, AuthError, NetworkError, RateLimitError
from chat_core.domain.models import ChatRequest
from chat_core.transport import create_transport
from chat_core.transport.http_client import HttpChatTransport
from chat_core.transport.registry import CHAT_V1, get_backend_config


class SettingsStub:
    api_base_url = "http://backend/api"
    auth_token = "tok"
    auth_header = "Authorization"
    http_timeout = 1.0
    connect_timeout = 1.0


class Resp:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def _fake_client(calls, response):
    class Client:
        def __init__(self, *a, **kw):
            calls.append(("init", kw))

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def request(self, method, url, **kw):
            calls.append((method, url, kw))
            return response

    return Client


@pytest.mark.asyncio
async def test_create_session_unwraps_envelope(monkeypatch):
    calls = []
    resp = Resp(body={"code": "SUCCESS", "msg": "ok", "success": True, "data": "s-42"})
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(calls, resp))
    transport = HttpChatTransport(SettingsStub())
    assert await transport.create_session() == "s-42"
    method, url, kw = calls[1]
    assert method == "POST"
    assert url == "http://backend/api/chat/v1/session/create"
    assert kw["headers"]["Authorization"] == "Bearer tok"
    assert calls[0][1]["trust_env"] is False


@pytest.mark.asyncio
async def test_custom_auth_header_carries_raw_token(monkeypatch):
    class Cfg(SettingsStub):
        auth_header = "Auth-Token"

    calls = []
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(calls, Resp(body={"success": True, "data": []})))
    await HttpChatTransport(Cfg()).list_messages("s-1")
    headers = calls[1][2]["headers"]
    assert headers["Auth-Token"] == "tok"
    assert "Authorization" not in headers


@pytest.mark.asyncio
async def test_business_failure_raises_api_error(monkeypatch):
    resp = Resp(body={"code": "SESSION_LIMIT", "msg": "too many sessions", "success": False, "data": None})
    monkeypatch.setattr("httpx.AsyncClient", _fake_client([], resp))
    with pytest.raises(ApiError) as ei:
        await HttpChatTransport(SettingsStub()).create_session()
    assert ei.value.code == "SESSION_LIMIT"
    assert ei.value.message == "too many sessions"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, exc_type",
    [(401, AuthError), (429, RateLimitError), (500, ApiError)],
)
async def test_http_status_mapping(monkeypatch, status, exc_type):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client([], Resp(status_code=status, text="boom")))
    with pytest.raises(exc_type) as ei:
        await HttpChatTransport(SettingsStub()).create_session()
    assert ei.value.http_status == status


@pytest.mark.asyncio
async def test_list_messages_returns_rows(monkeypatch):
    rows = [{"id": 1, "message": "a", "messageType": "USER"}, "junk"]
    calls = []
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(calls, Resp(body={"success": True, "data": rows})))
    result = await HttpChatTransport(SettingsStub()).list_messages("s-9")
    assert result == [rows[0]]
    assert calls[1][0] == "GET"
    assert calls[1][1] == "http://backend/api/chat/v1/messages/s-9"


@pytest.mark.asyncio
async def test_request_error_becomes_network_error(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def request(self, method, url, **kw):
            raise httpx.ConnectError("refused")

    monkeypatch.setattr("httpx.AsyncClient", Client)
    with pytest.raises(NetworkError):
        await HttpChatTransport(SettingsStub()).create_session()


class StreamResponse:
    def __init__(self, status_code=200, chunks=(), error=None, body=b""):
        self.status_code = status_code
        self._chunks = list(chunks)
        self._error = error
        self._body = body

    async def aiter_bytes(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    async def aread(self):
        return self._body


def _fake_stream_client(calls, response):
    class StreamContext:
        async def __aenter__(self):
            return response

        async def __aexit__(self, *a):
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        def stream(self, method, url, **kw):
            calls.append((method, url, kw))
            return StreamContext()

    return Client


@pytest.mark.asyncio
async def test_stream_chat_yields_raw_bytes(monkeypatch):
    calls = []
    resp = StreamResponse(chunks=[b'data: {"content":"a"}\n', b"", b"data: [DONE]\n"])
    monkeypatch.setattr("httpx.AsyncClient", _fake_stream_client(calls, resp))
    req = ChatRequest(session_id="s-1", prompt="hi")
    async with HttpChatTransport(SettingsStub()).stream_chat(req) as chunks:
        received = [chunk async for chunk in chunks]
    assert received == [b'data: {"content":"a"}\n', b"data: [DONE]\n"]
    method, url, kw = calls[0]
    assert (method, url) == ("POST", "http://backend/api/chat/v1/chat")
    assert kw["json"] == req.to_payload()
    assert kw["headers"]["Accept"] == "text/event-stream"


@pytest.mark.asyncio
async def test_stream_chat_error_status(monkeypatch):
    resp = StreamResponse(status_code=503, body=b"unavailable")
    monkeypatch.setattr("httpx.AsyncClient", _fake_stream_client([], resp))
    with pytest.raises(ApiError) as ei:
        async with HttpChatTransport(SettingsStub()).stream_chat(ChatRequest(session_id="s", prompt="p")):
            pass
    assert ei.value.http_status == 503
    assert ei.value.message == "unavailable"


@pytest.mark.asyncio
async def test_stream_chat_read_error_becomes_network_error(monkeypatch):
    resp = StreamResponse(chunks=[b"data: x\n"], error=httpx.ReadError("reset"))
    monkeypatch.setattr("httpx.AsyncClient", _fake_stream_client([], resp))
    received = []
    with pytest.raises(NetworkError):
        async with HttpChatTransport(SettingsStub()).stream_chat(ChatRequest(session_id="s", prompt="p")) as chunks:
            async for chunk in chunks:
                received.append(chunk)
    assert received == [b"data: x\n"]


def test_backend_registry_urls():
    assert get_backend_config("CHAT-V1") is CHAT_V1
    assert CHAT_V1.url("http://h/api/", "messages", session_id="abc") == "http://h/api/chat/v1/messages/abc"
    with pytest.raises(KeyError):
        get_backend_config("chat-v9")


def test_create_transport_uses_given_settings():
    transport = create_transport(cfg=SettingsStub())
    assert isinstance(transport, HttpChatTransport)
    assert transport.name == "http"
