"""聊天后端的 HTTP 适配器。

接口约定：
- 创建会话: POST {base_url}/chat/v1/session/create，返回统一业务包 {code, msg, success, data}。
- 流式聊天: POST {base_url}/chat/v1/chat，响应体为 text/event-stream 字节流。
- 会话历史: GET  {base_url}/chat/v1/messages/{session_id}。
- 认证: 默认 Authorization: Bearer <token>；auth_header 配成其他名字（如 Auth-Token）时直接携带令牌。

本模块只负责 HTTP 与异常翻译，字节流的解码/分帧/分类全部交给 streaming 包。
"""

import contextlib
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import ApiError, AuthError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import ChatRequest
from chat_core.transport.registry import CHAT_V1, BackendConfig


class HttpChatTransport:
    """基于 httpx.AsyncClient 的 ChatTransport 实现。"""

    name = "http"

    def __init__(self, cfg=settings, backend: BackendConfig = CHAT_V1):
        self._settings = cfg
        self._backend = backend

    # ---- 普通请求 ----

    async def create_session(self) -> str:
        data = await self._request_json("create_session")
        if not data:
            raise ApiError(code="EMPTY_SESSION_ID", message="后端未返回会话ID")
        return str(data)

    async def list_messages(self, session_id: str) -> List[Dict[str, Any]]:
        if not session_id:
            raise ValidationError(code="MISSING_SESSION_ID", message="session_id is required")
        data = await self._request_json("messages", session_id=session_id)
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    # ---- 流式 ----

    @contextlib.asynccontextmanager
    async def stream_chat(self, req: ChatRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        url = self._backend.url(self._base_url, "chat")
        try:
            async with httpx.AsyncClient(timeout=self._timeout(), trust_env=False) as client:
                async with client.stream(
                    "POST",
                    url,
                    json=req.to_payload(),
                    headers=self._headers(accept="text/event-stream"),
                ) as resp:
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        self._raise_for_status(resp.status_code, body.decode("utf-8", errors="replace"))
                    yield self._iter_bytes(resp, url)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), url=url) from e

    # ---- 辅助方法 ----

    @property
    def _base_url(self) -> str:
        return getattr(self._settings, "api_base_url", None) or "http://localhost:3000/api"

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            self._settings.http_timeout,
            connect=getattr(self._settings, "connect_timeout", None) or self._settings.http_timeout,
        )

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": accept}
        token: Optional[str] = getattr(self._settings, "auth_token", None)
        if token:
            header = getattr(self._settings, "auth_header", None) or "Authorization"
            headers[header] = f"Bearer {token}" if header.lower() == "authorization" else token
        return headers

    async def _request_json(self, endpoint: str, **params: str) -> Any:
        cfg = self._backend.endpoints[endpoint]
        url = self._backend.url(self._base_url, endpoint, **params)
        try:
            async with httpx.AsyncClient(timeout=self._timeout(), trust_env=False) as client:
                resp = await client.request(cfg.method, url, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), url=url) from e
        if resp.status_code >= 400:
            self._raise_for_status(resp.status_code, resp.text)
        try:
            body = resp.json()
        except ValueError as e:
            raise ApiError(code="BAD_RESPONSE", message=f"Invalid JSON from {endpoint}: {e}") from e
        return self._unwrap(body)

    @staticmethod
    def _unwrap(body: Any) -> Any:
        """拆开统一业务包；不含标准字段的响应原样返回。"""

        if not isinstance(body, dict):
            return body
        if not ({"code", "success", "data"} & body.keys()):
            return body
        code = body.get("code")
        if body.get("success") is False or (code and code != "SUCCESS"):
            raise ApiError(code=str(code or "API_ERROR"), message=body.get("msg") or "请求失败")
        return body.get("data")

    @staticmethod
    def _raise_for_status(status: int, text: str) -> None:
        if status == 401:
            raise AuthError(code="UNAUTHORIZED", message="401 未授权，请先登录", http_status=401)
        if status == 429:
            raise RateLimitError(code="RATE_LIMIT", message="请求过于频繁", http_status=429)
        raise ApiError(code="API_ERROR", message=text or f"HTTP error! status: {status}", http_status=status)

    @staticmethod
    async def _iter_bytes(resp: httpx.Response, url: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in resp.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), url=url) from e
