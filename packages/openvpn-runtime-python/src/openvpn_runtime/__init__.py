"""
openvpn-runtime（Python）。

说明：
- 把“如何启动 OpenVPN 客户端”的声明式描述转为确定性的 argv、单行诊断文本与可共享的子进程句柄；
- 当前已包含：
  - 错误分类（ResolutionError / SpawnError）
  - Remote endpoint 值对象与默认解析器
  - OpenVpnCommand（argv 序列化 + 展示格式化 + spawn）
  - SharedChild（多持有者共享同一 OS 进程）
  - 配置加载器（YAML overlay + pydantic 校验）
  - CLI（args/show/spawn，JSON 输出）
"""

from __future__ import annotations

from openvpn_runtime.core.errors import ResolutionError, SpawnError
from openvpn_runtime.net import EndpointResolver, RemoteAddr, to_remote_addrs
from openvpn_runtime.process.handle import SharedChild
from openvpn_runtime.process.openvpn import ChildSpawner, OpenVpnCommand, format_command

__all__ = [
    "ChildSpawner",
    "EndpointResolver",
    "OpenVpnCommand",
    "RemoteAddr",
    "ResolutionError",
    "SharedChild",
    "SpawnError",
    "format_command",
    "to_remote_addrs",
    "__version__",
]

__version__ = "0.3.0"
