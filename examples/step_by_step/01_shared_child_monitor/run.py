"""
SharedChild 多持有者示例（离线，可回归）。

演示：
- 用 `OpenVpnCommand` 构建 argv 并打印诊断文本；
- spawn 一个“假 OpenVPN”（sh 脚本，打印参数后长时间 sleep）；
- monitor 线程持有一个 clone 阻塞等待；shutdown 路径用另一个 clone 发送 SIGTERM；
- 两边观察到同一个 pid 与同一个 exit status。
"""

from __future__ import annotations

import argparse
import signal
import stat
import threading
from pathlib import Path

from openvpn_runtime import OpenVpnCommand, SharedChild


def _write_fake_openvpn(workspace_root: Path) -> Path:
    """写入假 OpenVPN 脚本：逐行打印参数，然后 sleep。"""

    script = workspace_root / "fake-openvpn"
    script.write_text('#!/bin/sh\nfor a in "$@"; do echo "$a"; done\nexec sleep 30\n', encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


def main() -> int:
    """脚本入口：spawn → monitor clone wait → shutdown clone terminate。"""

    parser = argparse.ArgumentParser(description="01_shared_child_monitor")
    parser.add_argument("--workspace-root", default=".", help="Workspace root path")
    args = parser.parse_args()

    workspace_root = Path(args.workspace_root).resolve()
    workspace_root.mkdir(parents=True, exist_ok=True)

    command = (
        OpenVpnCommand(_write_fake_openvpn(workspace_root))
        .set_config(workspace_root / "client config.ovpn")
        .set_remotes(["10.0.0.1:1194", "[2001:db8::1]:443"])
        .set_plugin("/usr/lib/openvpn/plugin.so", ["ipc", "/tmp/openvpn.sock"])
    )
    print(f"[example] display: {command}")

    child = command.spawn()
    stdout = child.take_stdout()
    assert stdout is not None
    first = stdout.readline().decode("utf-8").strip()
    assert first == "--config", first

    observed: dict[str, int] = {}

    def _monitor(handle: SharedChild) -> None:
        """monitor：阻塞等待进程退出。"""

        with handle:
            observed["monitor_pid"] = handle.pid
            observed["monitor_exit"] = handle.wait()

    monitor = threading.Thread(target=_monitor, args=(child.clone(),))
    monitor.start()

    with child.clone() as shutdown:
        shutdown.terminate()

    monitor.join(timeout=10)
    stdout.close()
    exit_code = child.wait(timeout=10)
    child.close()

    assert observed["monitor_pid"] == child.pid
    assert observed["monitor_exit"] == exit_code == -signal.SIGTERM
    print(f"[example] pid={child.pid} exit={exit_code}")
    print("EXAMPLE_OK: step_by_step_01")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
