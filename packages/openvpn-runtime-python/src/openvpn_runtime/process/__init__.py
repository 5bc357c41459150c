"""
OpenVPN 进程启动（构建器 + 可共享句柄）。

- `OpenVpnCommand`：声明式描述 → argv / 诊断文本 / 子进程
- `SharedChild`：可复制的进程句柄（多持有者共享同一 OS 进程）
"""

from __future__ import annotations

from openvpn_runtime.process.handle import SharedChild
from openvpn_runtime.process.openvpn import ChildSpawner, OpenVpnCommand, format_command, to_text_lossy

__all__ = ["ChildSpawner", "OpenVpnCommand", "SharedChild", "format_command", "to_text_lossy"]
