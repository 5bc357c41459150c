"""
openvpn-runtime CLI（args/show/spawn）。

约束：
- 使用 argparse（不引入第三方 CLI 依赖）
- stdout 输出机器可读 JSON；失败时也输出 JSON（`ok=false` + `issues[]`）
- 日志写 stderr（`--log-level`），不污染 stdout

exit code：
- 0：成功
- 2：参数错误（argparse）
- 11：配置/remote 解析错误
- 12：进程创建失败
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Sequence, Tuple

import yaml
from pydantic import ValidationError

from openvpn_runtime.config.defaults import load_default_config_dict
from openvpn_runtime.config.loader import build_command, load_config_dicts, load_yaml_mapping
from openvpn_runtime.core.errors import FrameworkIssue, ResolutionError, SpawnError
from openvpn_runtime.process.openvpn import OpenVpnCommand, to_text_lossy

EXIT_OK = 0
EXIT_CONFIG_ERROR = 11
EXIT_SPAWN_ERROR = 12


def _dump_json_to_stdout(obj: Dict[str, Any], *, pretty: bool) -> None:
    """
    将 dict 输出为 JSON 到 stdout（末尾包含换行）。

    参数：
    - obj：待输出对象（必须可 JSON dumps）
    - pretty：是否启用 pretty-print（indent=2）
    """

    if pretty:
        text = json.dumps(obj, ensure_ascii=False, indent=2)
    else:
        text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"))
    print(text)


def _issues_to_jsonable(issues: List[FrameworkIssue]) -> List[Dict[str, Any]]:
    """将 FrameworkIssue 列表投影为可 JSON 序列化结构。"""

    return [{"code": it.code, "message": it.message, "details": dict(it.details)} for it in issues]


def _dump_failure(issues: List[FrameworkIssue], *, pretty: bool) -> None:
    """输出失败 payload。"""

    _dump_json_to_stdout({"ok": False, "issues": _issues_to_jsonable(issues)}, pretty=pretty)


def _overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """把命令行覆盖项转为一层 overlay（只包含显式给出的字段）。"""

    launch: Dict[str, Any] = {}
    if args.binary is not None:
        launch["binary"] = str(args.binary)
    if args.openvpn_config is not None:
        launch["config"] = str(args.openvpn_config)
    if args.remote:
        launch["remotes"] = [str(r) for r in args.remote]
    if args.plugin is not None:
        launch["plugin"] = {"path": str(args.plugin), "args": [str(a) for a in (args.plugin_arg or [])]}
    if args.no_capture:
        launch["capture_output"] = False
    return {"openvpn": launch} if launch else {}


def _load_command(args: argparse.Namespace) -> Tuple[Optional[OpenVpnCommand], List[FrameworkIssue]]:
    """
    加载默认配置 + overlays + 命令行覆盖项，并构建 `OpenVpnCommand`。

    返回：
    - (command, issues)：失败时 command 为 None，issues 至少包含一条。
    """

    overlays: List[Dict[str, Any]] = [load_default_config_dict()]
    issues: List[FrameworkIssue] = []
    for raw in args.config or []:
        path = Path(raw).expanduser()
        try:
            overlays.append(load_yaml_mapping(path))
        except FileNotFoundError:
            issues.append(
                FrameworkIssue(code="CLI_OVERLAY_NOT_FOUND", message="Overlay config not found.", details={"path": str(path)})
            )
        except (ValueError, yaml.YAMLError) as exc:
            issues.append(
                FrameworkIssue(
                    code="CLI_OVERLAY_INVALID",
                    message="Overlay config is invalid.",
                    details={"path": str(path), "reason": str(exc)},
                )
            )
    if issues:
        return None, issues

    overlays.append(_overrides_from_args(args))
    try:
        config = load_config_dicts(overlays)
    except ValidationError as exc:
        return None, [FrameworkIssue(code="CLI_CONFIG_INVALID", message="Config is invalid.", details={"reason": str(exc)})]

    try:
        return build_command(config), []
    except ResolutionError as exc:
        return None, [exc.to_issue()]


def _drain(stream: Optional[IO[bytes]], sink: List[bytes]) -> None:
    """持续读取子进程管道直到 EOF（用于后台线程）。"""

    if stream is None:
        return
    with stream:
        while True:
            chunk = stream.read(4096)
            if not chunk:
                return
            sink.append(chunk)


def _handle_args(args: argparse.Namespace) -> int:
    """执行 `args`：输出 argv（不含可执行文件）。"""

    command, issues = _load_command(args)
    if command is None:
        _dump_failure(issues, pretty=bool(args.pretty))
        return EXIT_CONFIG_ERROR
    argv = [to_text_lossy(a) for a in command.get_arguments()]
    _dump_json_to_stdout({"ok": True, "binary": to_text_lossy(command.binary), "argv": argv}, pretty=bool(args.pretty))
    return EXIT_OK


def _handle_show(args: argparse.Namespace) -> int:
    """执行 `show`：输出单行诊断文本。"""

    command, issues = _load_command(args)
    if command is None:
        _dump_failure(issues, pretty=bool(args.pretty))
        return EXIT_CONFIG_ERROR
    _dump_json_to_stdout({"ok": True, "display": str(command)}, pretty=bool(args.pretty))
    return EXIT_OK


def _handle_spawn(args: argparse.Namespace) -> int:
    """
    执行 `spawn`：启动 OpenVPN 并输出 pid。

    说明：
    - `--wait`：等待进程退出；若捕获输出，则后台线程读取 stdout/stderr 并随结果输出；
    - 不带 `--wait` 时 CLI 立即返回，没有读取方，因此强制不捕获输出（stdout/stderr 接到 null 设备）。
    """

    command, issues = _load_command(args)
    if command is None:
        _dump_failure(issues, pretty=bool(args.pretty))
        return EXIT_CONFIG_ERROR

    if not args.wait:
        command.set_output_capture(False)

    try:
        child = command.spawn()
    except SpawnError as exc:
        _dump_failure([exc.to_issue()], pretty=bool(args.pretty))
        return EXIT_SPAWN_ERROR

    payload: Dict[str, Any] = {
        "ok": True,
        "pid": child.pid,
        "display": str(command),
        "capture_output": command.capture_output,
        "exit_code": None,
    }
    if not args.wait:
        _dump_json_to_stdout(payload, pretty=bool(args.pretty))
        return EXIT_OK

    out_chunks: List[bytes] = []
    err_chunks: List[bytes] = []
    readers = [
        threading.Thread(target=_drain, args=(child.take_stdout(), out_chunks), daemon=True),
        threading.Thread(target=_drain, args=(child.take_stderr(), err_chunks), daemon=True),
    ]
    for t in readers:
        t.start()
    with child:
        payload["exit_code"] = child.wait()
    for t in readers:
        t.join()
    if command.capture_output:
        payload["stdout"] = b"".join(out_chunks).decode("utf-8", errors="replace")
        payload["stderr"] = b"".join(err_chunks).decode("utf-8", errors="replace")
    _dump_json_to_stdout(payload, pretty=bool(args.pretty))
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    """构建 CLI argparse parser。"""

    parser = argparse.ArgumentParser(
        prog="openvpn-runtime",
        description="OpenVPN launch command builder (args/show/spawn).",
    )
    root_sub = parser.add_subparsers(dest="command", required=True)

    def _add_common_flags(p: argparse.ArgumentParser) -> None:
        """为子命令添加公共 flags。"""

        p.add_argument("--config", action="append", default=[], help="Overlay config YAML path (repeatable).")
        p.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
        p.add_argument("--log-level", default="WARNING", help="Log level for stderr logging (default: WARNING).")
        p.add_argument("--binary", default=None, help="OpenVPN binary (overrides openvpn.binary).")
        p.add_argument("--openvpn-config", default=None, help="File passed as --config to OpenVPN.")
        p.add_argument("--remote", action="append", default=[], help="Remote host:port (repeatable, ordered).")
        p.add_argument("--plugin", default=None, help="Plugin path passed as --plugin.")
        p.add_argument("--plugin-arg", action="append", default=[], help="Plugin argument (repeatable, ordered).")
        p.add_argument("--no-capture", action="store_true", help="Discard child stdout/stderr.")

    args_p = root_sub.add_parser("args", help="Print the argument list OpenVPN would be started with")
    _add_common_flags(args_p)

    show_p = root_sub.add_parser("show", help="Print a one-line rendering of the full invocation")
    _add_common_flags(show_p)

    spawn_p = root_sub.add_parser("spawn", help="Start OpenVPN as a child process (output is discarded unless --wait is given)")
    _add_common_flags(spawn_p)
    spawn_p.add_argument(
        "--wait",
        action="store_true",
        help="Wait for the process to exit and report its status and captured output.",
    )

    return parser


def _configure_logging(level_name: str) -> None:
    """配置 stderr 日志（未知级别回退到 WARNING）。"""

    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    CLI 入口函数（用于 console_scripts 与测试）。

    参数：
    - argv：命令行参数列表（不含程序名）；为 None 时读取 sys.argv[1:]。

    返回：
    - int：exit code（不会直接 sys.exit，便于测试）。
    """

    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:
        code = getattr(exc, "code", 2)
        if code is None:
            return 2
        return int(code)

    _configure_logging(args.log_level)

    if args.command == "args":
        return _handle_args(args)
    if args.command == "show":
        return _handle_show(args)
    if args.command == "spawn":
        return _handle_spawn(args)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
