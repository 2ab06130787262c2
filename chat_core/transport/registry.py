"""后端接口路径配置。

把“逻辑接口名”与具体 URL 路径解耦，后端升级版本号时只需改这里。
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping


@dataclass
class EndpointConfig:
    """单个接口的配置。"""

    name: str
    method: str
    path: str


@dataclass
class BackendConfig:
    """某个后端版本的整体接口配置。"""

    name: str
    endpoints: Dict[str, EndpointConfig] = field(default_factory=dict)

    def url(self, base_url: str, endpoint: str, **params: str) -> str:
        cfg = self.endpoints[endpoint]
        return f"{base_url.rstrip('/')}{cfg.path.format(**params)}"


CHAT_V1 = BackendConfig(
    name="chat-v1",
    endpoints={
        "create_session": EndpointConfig(
            name="create_session",
            method="POST",
            path="/chat/v1/session/create",
        ),
        "chat": EndpointConfig(
            name="chat",
            method="POST",
            path="/chat/v1/chat",
        ),
        "messages": EndpointConfig(
            name="messages",
            method="GET",
            path="/chat/v1/messages/{session_id}",
        ),
    },
)


BACKEND_REGISTRY: Mapping[str, BackendConfig] = {
    "chat-v1": CHAT_V1,
}


def get_backend_config(name: str) -> BackendConfig:
    """根据名称获取 BackendConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in BACKEND_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown backend: {name!r}")
