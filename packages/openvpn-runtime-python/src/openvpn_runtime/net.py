"""
Remote endpoint（address + port）与默认 endpoint 解析器。

说明：
- `RemoteAddr` 为不可变值对象，顺序由调用方决定（OpenVPN 按顺序做 fallback）；
- `EndpointResolver` 为可注入能力：`OpenVpnCommand` 只依赖该协议，不关心具体解析策略；
- 默认实现 `to_remote_addrs` 只做语法解析，不做 DNS 查询。

支持的规格形式：
- `RemoteAddr`
- `(host, port)` 二元组
- `"host:port"` / `"[ipv6]:port"` 字符串
- 以上任意形式组成的有序可迭代对象（list/tuple/generator 等）
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Protocol, Sequence, Tuple, Union

from openvpn_runtime.core.errors import ResolutionError

_MAX_PORT = 65535


@dataclass(frozen=True)
class RemoteAddr:
    """
    一个已解析的 OpenVPN remote。

    字段：
    - address：主机名或 IP 文本（IPv6 不带方括号）
    - port：端口（0..65535）
    """

    address: str
    port: int

    def __post_init__(self) -> None:
        """校验字段；非法时抛出 `ResolutionError`。"""

        if not isinstance(self.address, str) or not self.address:
            raise ResolutionError("Remote address must be a non-empty string.", spec=self.address)
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ResolutionError("Remote port must be an integer.", spec=self.port)
        if not 0 <= self.port <= _MAX_PORT:
            raise ResolutionError(
                "Remote port is out of range.",
                spec=self.port,
                details={"min": 0, "max": _MAX_PORT},
            )

    def __str__(self) -> str:
        """返回 `host:port` 文本；IPv6 地址加方括号。"""

        if ":" in self.address:
            return f"[{self.address}]:{self.port}"
        return f"{self.address}:{self.port}"


RemoteSpec = Union[RemoteAddr, str, Tuple[str, int], Iterable[Any]]


class EndpointResolver(Protocol):
    """
    Endpoint 解析能力（协议）。

    约束：
    - 返回有序序列，顺序与输入一致；
    - 任意一项非法时整体失败（抛出 `ResolutionError`），不得返回部分结果。
    """

    def __call__(self, spec: RemoteSpec) -> Sequence[RemoteAddr]:
        """把 remote 规格解析为有序的 `RemoteAddr` 序列。"""

        ...


def _parse_port(text: str, *, spec: str) -> int:
    """解析十进制端口文本（只接受 ASCII 数字）。"""

    if not text or not text.isascii() or not text.isdigit():
        raise ResolutionError("Remote port must be a decimal number.", spec=spec)
    port = int(text)
    if port > _MAX_PORT:
        raise ResolutionError("Remote port is out of range.", spec=spec, details={"min": 0, "max": _MAX_PORT})
    return port


def parse_remote_addr(spec: str) -> RemoteAddr:
    """
    解析单个 `host:port` 字符串。

    规则：
    - `[v6addr]:port`：方括号内为 IPv6 地址；
    - `host:port`：按最后一个冒号切分；host 内再出现冒号视为未加方括号的 IPv6，因歧义拒绝；
    - 首尾空白会被忽略。
    """

    text = spec.strip()
    if text.startswith("["):
        close = text.find("]")
        if close < 0 or text[close + 1 : close + 2] != ":":
            raise ResolutionError("Bracketed remote must look like [address]:port.", spec=spec)
        host = text[1:close]
        port_text = text[close + 2 :]
    else:
        host, sep, port_text = text.rpartition(":")
        if not sep:
            raise ResolutionError("Remote must look like host:port.", spec=spec)
        if ":" in host:
            raise ResolutionError("IPv6 remotes must be written as [address]:port.", spec=spec)
    if not host:
        raise ResolutionError("Remote host must not be empty.", spec=spec)
    return RemoteAddr(address=host, port=_parse_port(port_text, spec=spec))


def _resolve_one(item: Any) -> RemoteAddr:
    """解析单项规格（不接受嵌套集合）。"""

    if isinstance(item, RemoteAddr):
        return item
    if isinstance(item, str):
        return parse_remote_addr(item)
    if isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], str):
        return RemoteAddr(address=item[0], port=item[1])
    raise ResolutionError("Unsupported remote specification.", spec=item, details={"type": type(item).__name__})


def to_remote_addrs(spec: RemoteSpec) -> List[RemoteAddr]:
    """
    默认 endpoint 解析器。

    参数：
    - spec：单个规格或有序规格集合（见模块说明）

    返回：
    - list[RemoteAddr]：与输入同序，不去重

    异常：
    - ResolutionError：任意一项非法（整体失败）
    """

    if isinstance(spec, (RemoteAddr, str)):
        return [_resolve_one(spec)]
    if isinstance(spec, tuple) and len(spec) == 2 and isinstance(spec[0], str) and isinstance(spec[1], int):
        return [_resolve_one(spec)]
    if isinstance(spec, (bytes, bytearray)):
        raise ResolutionError("Remote specification must be text, not bytes.", spec=spec)
    try:
        items = list(spec)
    except TypeError:
        raise ResolutionError(
            "Unsupported remote specification.", spec=spec, details={"type": type(spec).__name__}
        ) from None
    return [_resolve_one(item) for item in items]
