from __future__ import annotations

import pytest

from openvpn_runtime.core.errors import ResolutionError
from openvpn_runtime.net import RemoteAddr
from openvpn_runtime.process.openvpn import OpenVpnCommand


def _remote_pairs(args: list[str]) -> list[tuple[str, str]]:
    """提取 argv 中所有 `--remote <addr> <port>` 三元组的 (addr, port)。"""

    return [(args[i + 1], args[i + 2]) for i, tok in enumerate(args) if tok == "--remote"]


def test_no_arguments() -> None:
    assert OpenVpnCommand("").get_arguments() == []


def test_binary_does_not_affect_arguments() -> None:
    assert OpenVpnCommand("/usr/sbin/openvpn").get_arguments() == OpenVpnCommand("").get_arguments()


def test_passes_one_remote() -> None:
    args = OpenVpnCommand("").set_remotes(RemoteAddr("example.com", 3333)).get_arguments()

    assert args == ["--remote", "example.com", "3333"]


def test_passes_two_remotes_in_order() -> None:
    remotes = [RemoteAddr("127.0.0.1", 998), RemoteAddr("fe80::1", 1337)]

    args = OpenVpnCommand("").set_remotes(remotes).get_arguments()

    assert args.count("--remote") == 2
    assert _remote_pairs(args) == [("127.0.0.1", "998"), ("fe80::1", "1337")]


def test_remote_order_and_duplicates_are_preserved() -> None:
    remotes = ["b.example:2", "a.example:1", "b.example:2"]

    args = OpenVpnCommand("").set_remotes(remotes).get_arguments()

    assert _remote_pairs(args) == [("b.example", "2"), ("a.example", "1"), ("b.example", "2")]


def test_accepts_str() -> None:
    cmd = OpenVpnCommand("").set_remotes("10.0.0.1:1377")

    assert cmd.remotes == (RemoteAddr("10.0.0.1", 1377),)


def test_accepts_list_of_str() -> None:
    args = OpenVpnCommand("").set_remotes(["10.0.0.1:1337", "127.0.0.1:99"]).get_arguments()

    assert _remote_pairs(args) == [("10.0.0.1", "1337"), ("127.0.0.1", "99")]


def test_set_remotes_replaces_instead_of_appending() -> None:
    cmd = OpenVpnCommand("").set_remotes(["10.0.0.1:1"]).set_remotes("10.0.0.2:2")

    assert _remote_pairs(cmd.get_arguments()) == [("10.0.0.2", "2")]


def test_failed_resolution_leaves_remotes_unchanged() -> None:
    cmd = OpenVpnCommand("").set_remotes("10.0.0.1:1")

    with pytest.raises(ResolutionError):
        cmd.set_remotes(["10.0.0.2:2", "not-a-remote"])

    assert cmd.remotes == (RemoteAddr("10.0.0.1", 1),)


def test_full_grammar_order() -> None:
    cmd = (
        OpenVpnCommand("openvpn")
        .set_plugin("/lib/plugin.so", ["b", "a"])
        .set_remotes(["1.1.1.1:1194", "[2001:db8::1]:443"])
        .set_config("/etc/openvpn/client.conf")
    )

    assert cmd.get_arguments() == [
        "--config",
        "/etc/openvpn/client.conf",
        "--remote",
        "1.1.1.1",
        "1194",
        "--remote",
        "2001:db8::1",
        "443",
        "--plugin",
        "/lib/plugin.so",
        "b",
        "a",
    ]


def test_plugin_without_args() -> None:
    assert OpenVpnCommand("").set_plugin("p.so", []).get_arguments() == ["--plugin", "p.so"]


def test_tokens_are_raw_values() -> None:
    """序列化阶段不做引号/转义：含空格的路径作为单个原样 token。"""

    args = OpenVpnCommand("").set_config("/tmp/my config.ovpn").get_arguments()

    assert args == ["--config", "/tmp/my config.ovpn"]


def test_get_arguments_is_idempotent_and_returns_fresh_list() -> None:
    cmd = OpenVpnCommand("").set_config("c").set_remotes("h:1")

    first = cmd.get_arguments()
    first.append("mutated")

    assert cmd.get_arguments() == ["--config", "c", "--remote", "h", "1"]
    assert cmd.get_arguments() == cmd.get_arguments()


def test_equal_state_serializes_identically() -> None:
    a = OpenVpnCommand("ovpn").set_config("c").set_remotes(["h:1", "g:2"])
    b = OpenVpnCommand("ovpn").set_remotes([RemoteAddr("h", 1), ("g", 2)]).set_config("c")

    assert a == b
    assert a.get_arguments() == b.get_arguments()


def test_clone_is_independent() -> None:
    original = OpenVpnCommand("ovpn").set_config("c")
    copy = original.clone()

    copy.set_config("other").set_output_capture(False)

    assert original.config == "c"
    assert original.capture_output is True
    assert copy != original


def test_bytes_paths_round_trip_byte_exact() -> None:
    import os

    raw = b"/etc/openvpn/\xff.conf"
    args = OpenVpnCommand(b"openvpn").set_config(raw).get_arguments()

    assert os.fsencode(args[1]) == raw


def test_injected_resolver_is_used() -> None:
    seen: list[object] = []

    def resolver(spec):  # type: ignore[no-untyped-def]
        seen.append(spec)
        return [RemoteAddr("resolved.example", 7)]

    cmd = OpenVpnCommand("", resolver=resolver).set_remotes("anything")

    assert seen == ["anything"]
    assert cmd.get_arguments() == ["--remote", "resolved.example", "7"]


def test_defaults() -> None:
    cmd = OpenVpnCommand("openvpn")

    assert cmd.binary == "openvpn"
    assert cmd.config is None
    assert cmd.remotes == ()
    assert cmd.plugin is None
    assert cmd.capture_output is True
