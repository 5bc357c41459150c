"""
OpenVPN 进程构建器（OpenVpnCommand）。

职责：
- 保存“如何启动 OpenVPN”的声明式描述（配置文件、remotes、plugin、输出捕获策略）；
- 把状态序列化为确定性的 argv（`get_arguments()`）；
- 渲染单行诊断文本（`format_command()` / `str(command)`），对非 UTF-8 数据做有损替换，永不失败；
- 启动子进程并返回可共享句柄（`spawn()` → `SharedChild`）。

命令行语法（顺序固定，未设置的字段整体省略）：

    [--config <path>] [--remote <addr> <port>]* [--plugin <path> <arg>*]

不做的事：
- 不校验配置文件是否存在、plugin 是否可执行；
- 不解释 exit code、不重试失败的 spawn（属于调用方或外部 monitor 的策略）。
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Any, List, Optional, Protocol, Sequence, Tuple, Union

from openvpn_runtime.core.errors import SpawnError
from openvpn_runtime.net import EndpointResolver, RemoteAddr, RemoteSpec, to_remote_addrs
from openvpn_runtime.process.handle import SharedChild

logger = logging.getLogger(__name__)

StrOrBytesPath = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]


def _to_os_text(value: StrOrBytesPath) -> str:
    """
    把路径类参数转为 str，字节级无损。

    说明：
    - bytes 中的非法 UTF-8 会以 surrogateescape 形式保留，`os.fsencode()` 可还原原始字节；
    - 这样 argv 传给 OS 时不会被静默改写。
    """

    return os.fsdecode(value)


def _is_unencodable_surrogate(ch: str) -> bool:
    """surrogateescape 只能还原 U+DC80..U+DCFF；其它孤立代理项无法编码为字节。"""

    return "\ud800" <= ch <= "\udfff" and not "\udc80" <= ch <= "\udcff"


def to_text_lossy(value: StrOrBytesPath) -> str:
    """转为展示用文本；非法字节与无法编码的代理项替换为 U+FFFD（有损，但不会抛异常）。"""

    raw = os.fspath(value)
    if isinstance(raw, str):
        raw = "".join("\ufffd" if _is_unencodable_surrogate(ch) else ch for ch in raw)
    return os.fsencode(raw).decode("utf-8", errors="replace")


def _write_argument(parts: List[str], arg: str) -> None:
    """追加一个参数：前导空格；含空白字符时加双引号（不做内部转义）。"""

    parts.append(" ")
    if any(ch.isspace() for ch in arg):
        parts.append(f'"{arg}"')
    else:
        parts.append(arg)


def format_command(binary: StrOrBytesPath, args: Sequence[StrOrBytesPath]) -> str:
    """
    渲染单行诊断文本：`<binary> [ <arg>|"<arg with space>" ]*`。

    注意：
    - 仅用于日志/诊断，不可用于重新解析或安全执行；
    - 对任意输入都不会失败。
    """

    parts: List[str] = [to_text_lossy(binary)]
    for arg in args:
        _write_argument(parts, to_text_lossy(arg))
    return "".join(parts)


class ChildSpawner(Protocol):
    """外部进程 monitor 依赖的 spawn 能力（协议）。"""

    def spawn(self) -> SharedChild:
        """启动一个新进程并返回可共享句柄。"""

        ...


class OpenVpnCommand:
    """
    OpenVPN 进程构建器。

    说明：
    - setter 修改自身并返回 self，便于链式调用；
    - `binary` 在构造后不可变；
    - 可以多次 `get_arguments()` / `spawn()`，包括在中途继续修改之后；
    - 不是线程安全的：同一时刻应只有一个持有者修改它。
    """

    def __init__(self, binary: StrOrBytesPath, *, resolver: Optional[EndpointResolver] = None) -> None:
        """
        创建构建器。

        参数：
        - binary：OpenVPN 可执行文件路径或名称（按 PATH 查找）
        - resolver：endpoint 解析器（默认 `to_remote_addrs`）
        """

        self._binary = _to_os_text(binary)
        self._resolver: EndpointResolver = resolver if resolver is not None else to_remote_addrs
        self._config: Optional[str] = None
        self._remotes: Tuple[RemoteAddr, ...] = ()
        self._plugin: Optional[Tuple[str, Tuple[str, ...]]] = None
        self._capture_output = True

    @property
    def binary(self) -> str:
        """可执行文件（构造时给定）。"""

        return self._binary

    @property
    def config(self) -> Optional[str]:
        """OpenVPN 配置文件路径；未设置为 None。"""

        return self._config

    @property
    def remotes(self) -> Tuple[RemoteAddr, ...]:
        """有序 remotes（只读快照）。"""

        return self._remotes

    @property
    def plugin(self) -> Optional[Tuple[str, Tuple[str, ...]]]:
        """`(plugin_path, plugin_args)`；未设置为 None。"""

        return self._plugin

    @property
    def capture_output(self) -> bool:
        """是否把子进程 stdout/stderr 接到管道（False 时接到 null 设备）。"""

        return self._capture_output

    def set_config(self, path: StrOrBytesPath) -> "OpenVpnCommand":
        """设置传给 OpenVPN 的配置文件（不校验存在性）。"""

        self._config = _to_os_text(path)
        return self

    def set_remotes(self, spec: RemoteSpec) -> "OpenVpnCommand":
        """
        设置 OpenVPN 要连接的 remotes（整体替换，不追加）。

        参数：
        - spec：单个 remote 规格或有序规格集合（由 resolver 负责遍历）

        异常：
        - ResolutionError：任意一项非法；此时 remotes 保持原值
        """

        resolved = tuple(self._resolver(spec))
        self._remotes = resolved
        return self

    def set_plugin(self, path: StrOrBytesPath, args: Sequence[str]) -> "OpenVpnCommand":
        """设置 plugin 及其参数（参数顺序原样保留）。"""

        self._plugin = (_to_os_text(path), tuple(str(a) for a in args))
        return self

    def set_output_capture(self, capture_output: bool) -> "OpenVpnCommand":
        """设置是否捕获 stdout/stderr（默认捕获）。"""

        self._capture_output = bool(capture_output)
        return self

    def get_arguments(self) -> List[str]:
        """返回子进程将使用的全部参数（不含可执行文件本身）；每次返回新 list。"""

        args: List[str] = []
        if self._config is not None:
            args.extend(["--config", self._config])
        for remote in self._remotes:
            args.extend(["--remote", remote.address, str(remote.port)])
        if self._plugin is not None:
            path, plugin_args = self._plugin
            args.extend(["--plugin", path])
            args.extend(plugin_args)
        return args

    def clone(self) -> "OpenVpnCommand":
        """复制构建器（状态相同，之后互不影响）。"""

        other = OpenVpnCommand(self._binary, resolver=self._resolver)
        other._config = self._config
        other._remotes = self._remotes
        other._plugin = self._plugin
        other._capture_output = self._capture_output
        return other

    def spawn(self) -> SharedChild:
        """
        以子进程方式启动 OpenVPN，返回可共享句柄。

        标准流：
        - stdin：始终接到 null 设备
        - stdout/stderr：`capture_output=True` 时为管道，否则接到 null 设备

        异常：
        - SpawnError：无法创建进程（OS 失败，或 argv 含 NUL/无法编码的字符；携带底层异常；不重试）
        """

        args = self.get_arguments()
        output = subprocess.PIPE if self._capture_output else subprocess.DEVNULL
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Spawning OpenVPN: %s", format_command(self._binary, args))
        try:
            proc = subprocess.Popen(  # noqa: S603
                [self._binary, *args],
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=output,
            )
        except (OSError, ValueError) as exc:
            # ValueError：argv 含 NUL 或无法编码的字符（UnicodeEncodeError）。
            logger.warning("Failed to spawn OpenVPN binary %r: %s", to_text_lossy(self._binary), exc)
            raise SpawnError(binary=to_text_lossy(self._binary), cause=exc) from exc
        logger.info("OpenVPN process started (pid=%d)", proc.pid)
        return SharedChild(proc)

    def _state(self) -> Tuple[Any, ...]:
        """用于相等性比较的状态元组（resolver 不参与比较）。"""

        return (self._binary, self._config, self._remotes, self._plugin, self._capture_output)

    def __eq__(self, other: object) -> bool:
        """两个构建器状态相同即相等。"""

        if not isinstance(other, OpenVpnCommand):
            return NotImplemented
        return self._state() == other._state()

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        """单行诊断文本（见 `format_command`）。"""

        return format_command(self._binary, self.get_arguments())

    def __repr__(self) -> str:
        """调试表示。"""

        return f"OpenVpnCommand({self._binary!r}, config={self._config!r}, remotes={len(self._remotes)})"
