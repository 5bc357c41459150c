"""
可共享的子进程句柄（SharedChild）。

设计目标：
- 一次 spawn 只对应一个 OS 进程；`clone()` 只复制“引用”，绝不复制进程；
- 多个持有者（例如 monitor 线程与 shutdown 协调路径）可并发查询状态或发送信号，彼此无需知情；
- 进程只会被 reap 一次，所有持有者看到同一个 exit status。

说明：
- reap/wait 的并发安全由 `subprocess.Popen` 自身的 waitpid 锁保证；本模块的锁只保护
  “句柄计数”与“管道移交”这类共享状态，且在 `wait()` 期间不持有。
- 对已 reap 的进程发送信号是 no-op（`Popen.send_signal` 会先 poll），避免 PID 复用误杀。
- 本模块不做超时策略：`wait(timeout)` 只是透传，是否有界等待由外部 monitor 决定。
"""

from __future__ import annotations

import signal
import subprocess
import threading
from dataclasses import dataclass, field
from typing import IO, Any, Optional


@dataclass
class _SharedState:
    """所有 clone 共享的状态记录。"""

    proc: subprocess.Popen[bytes]
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 1


class SharedChild:
    """
    对同一 OS 进程的可复制句柄。

    用法：
    - `handle.clone()`：返回新的句柄，指向同一进程；
    - `try_wait()/wait()/kill()/terminate()/send_signal()`：作用于共享的底层进程；
    - `take_stdout()/take_stderr()`：捕获的管道在所有 clone 之间只会被交出一次。
    """

    def __init__(self, proc: subprocess.Popen[bytes], *, _state: Optional[_SharedState] = None) -> None:
        """
        包装一个已启动的 `Popen`。

        参数：
        - proc：已启动的子进程
        - _state：内部参数（`clone()` 使用）；外部调用方不应传入
        """

        self._state = _state if _state is not None else _SharedState(proc=proc)
        self._closed = False

    @property
    def pid(self) -> int:
        """OS 进程 id（所有 clone 相同）。"""

        return int(self._state.proc.pid)

    @property
    def returncode(self) -> Optional[int]:
        """已 reap 时返回 exit status，否则为 None（不主动 poll）。"""

        return self._state.proc.returncode

    @property
    def holders(self) -> int:
        """当前仍持有该进程的句柄数量（诊断用途）。"""

        with self._state.lock:
            return self._state.holders

    def clone(self) -> "SharedChild":
        """返回指向同一进程的新句柄（廉价操作）。"""

        with self._state.lock:
            self._state.holders += 1
        return SharedChild(self._state.proc, _state=self._state)

    def same_process(self, other: "SharedChild") -> bool:
        """判断两个句柄是否指向同一进程。"""

        return self._state is other._state

    def try_wait(self) -> Optional[int]:
        """非阻塞查询：进程仍在运行返回 None，否则返回 exit status。"""

        return self._state.proc.poll()

    def is_running(self) -> bool:
        """进程是否仍在运行。"""

        return self.try_wait() is None

    def wait(self, timeout: Optional[float] = None) -> int:
        """
        阻塞等待进程退出并返回 exit status。

        异常：
        - subprocess.TimeoutExpired：设置了 timeout 且到期时进程仍在运行
        """

        return self._state.proc.wait(timeout=timeout)

    def send_signal(self, sig: int) -> None:
        """向进程发送信号；进程已退出时为 no-op。"""

        proc = self._state.proc
        if proc.poll() is not None:
            return
        try:
            proc.send_signal(sig)
        except ProcessLookupError:
            # 进程在 poll 之后、信号送达之前退出。
            return

    def terminate(self) -> None:
        """请求进程退出（POSIX 下为 SIGTERM）。"""

        self.send_signal(signal.SIGTERM)

    def kill(self) -> None:
        """强制结束进程（POSIX 下为 SIGKILL；Windows 下为 TerminateProcess）。"""

        proc = self._state.proc
        if proc.poll() is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return

    def take_stdout(self) -> Optional[IO[bytes]]:
        """
        取走子进程 stdout 管道。

        返回：
        - 首次调用（跨所有 clone）返回管道对象；未捕获输出或已被取走时返回 None
        """

        with self._state.lock:
            stream, self._state.proc.stdout = self._state.proc.stdout, None
        return stream

    def take_stderr(self) -> Optional[IO[bytes]]:
        """取走子进程 stderr 管道（语义同 `take_stdout`）。"""

        with self._state.lock:
            stream, self._state.proc.stderr = self._state.proc.stderr, None
        return stream

    def close(self) -> None:
        """
        释放当前句柄（幂等）。

        说明：
        - 只减少持有计数，不会结束进程；
        - 最后一个句柄释放时关闭尚未被取走的管道，避免 fd 泄露。
        """

        if self._closed:
            return
        self._closed = True
        with self._state.lock:
            self._state.holders -= 1
            last = self._state.holders == 0
            proc = self._state.proc
            streams = [s for s in (proc.stdout, proc.stderr) if s is not None]
            if last:
                proc.stdout = None
                proc.stderr = None
        if last:
            for stream in streams:
                stream.close()

    def __enter__(self) -> "SharedChild":
        """上下文管理：返回自身。"""

        return self

    def __exit__(self, *exc: Any) -> None:
        """上下文管理：退出时释放当前句柄。"""

        self.close()

    def __repr__(self) -> str:
        """调试表示。"""

        return f"SharedChild(pid={self.pid}, returncode={self.returncode!r})"
