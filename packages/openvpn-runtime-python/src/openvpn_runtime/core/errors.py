"""
openvpn-runtime 错误分类（异常类型）。

说明：
- 核心只向调用方暴露两类失败：endpoint 解析失败（`ResolutionError`）与进程创建失败（`SpawnError`）；
- 参数序列化与展示格式化是全函数，不会抛出异常；
- 结构化字段（`code/message/details`）统一使用英文，便于日志检索与 CLI JSON 输出。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class OpenVpnRuntimeError(Exception):
    """openvpn-runtime 错误基类（不建议直接抛出）。"""


@dataclass(frozen=True)
class FrameworkIssue:
    """结构化问题对象（CLI 输出 `issues[]` 使用）。"""

    code: str
    message: str
    details: Dict[str, Any]


class FrameworkError(OpenVpnRuntimeError):
    """结构化错误（英文 `code/message/details`）。"""

    def __init__(self, *, code: str, message: str, details: Dict[str, Any] | None = None) -> None:
        """创建结构化错误。

        参数：
        - `code`：稳定错误码（英文大写下划线）
        - `message`：英文错误消息
        - `details`：结构化上下文信息
        """

        super().__init__(message)
        self.code = code
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def __str__(self) -> str:
        """返回用于日志的字符串表示。"""

        return f"{self.code}: {self.message}"

    def to_issue(self) -> FrameworkIssue:
        """把异常转换为可序列化问题对象。"""

        return FrameworkIssue(code=self.code, message=self.message, details=dict(self.details))


class UserError(FrameworkError):
    """调用方输入/配置导致的错误。"""

    def __init__(self, message: str, *, code: str = "USER_ERROR", details: Dict[str, Any] | None = None) -> None:
        """创建 `UserError`（`code` 默认 `USER_ERROR`）。"""

        super().__init__(code=code, message=message, details=details or {})


class ResolutionError(UserError, ValueError):
    """
    endpoint 解析失败（remote 规格非法）。

    说明：
    - 同时继承 `ValueError`，便于只关心“输入非法”的调用方直接捕获；
    - `details` 至少包含 `spec`（出错的那一项，已转为 repr 文本）。
    """

    def __init__(self, message: str, *, spec: Any = None, details: Dict[str, Any] | None = None) -> None:
        """创建解析错误；`spec` 会以 repr 形式写入 details。"""

        merged: Dict[str, Any] = {"spec": repr(spec)}
        if details:
            merged.update(details)
        super().__init__(message, code="REMOTE_ADDR_INVALID", details=merged)


class SpawnError(FrameworkError):
    """
    OpenVPN 进程创建失败（可执行文件不存在、权限不足、argv 含 NUL 或无法编码的字符等）。

    字段：
    - `cause`：底层异常（`OSError` 或 `ValueError`；同时作为 `__cause__` 链接）
    - `os_error`：`cause` 为 `OSError` 时等于它，否则为 None
    - `errno` / `strerror`：从 `OSError` 透传，便于调用方按错误码分支；非 OS 失败时为 None
    """

    def __init__(self, *, binary: str, cause: BaseException) -> None:
        """基于底层异常创建 spawn 错误。"""

        errno: Optional[int] = getattr(cause, "errno", None)
        strerror: Optional[str] = getattr(cause, "strerror", None)
        super().__init__(
            code="OPENVPN_SPAWN_FAILED",
            message=f"Failed to spawn OpenVPN process: {strerror or cause}",
            details={"binary": binary, "errno": errno, "strerror": strerror, "cause": type(cause).__name__},
        )
        self.cause = cause
        self.os_error: Optional[OSError] = cause if isinstance(cause, OSError) else None
        self.errno = errno
        self.strerror = strerror
