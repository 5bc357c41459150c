from __future__ import annotations

from openvpn_runtime.process.openvpn import OpenVpnCommand, format_command, to_text_lossy


def test_display_without_arguments_is_binary_only() -> None:
    assert str(OpenVpnCommand("/usr/sbin/openvpn")) == "/usr/sbin/openvpn"


def test_display_quotes_arguments_with_whitespace() -> None:
    cmd = OpenVpnCommand("openvpn").set_config("/tmp/my config.ovpn").set_remotes("10.0.0.1:1194")

    assert str(cmd) == 'openvpn --config "/tmp/my config.ovpn" --remote 10.0.0.1 1194'


def test_display_quotes_any_whitespace_character() -> None:
    assert format_command("bin", ["a\tb", "c\nd", "plain"]) == 'bin "a\tb" "c\nd" plain'


def test_display_does_not_escape_inner_quotes() -> None:
    assert format_command("bin", ['say "hi" now']) == 'bin "say "hi" now"'


def test_display_lossy_converts_invalid_utf8() -> None:
    cmd = OpenVpnCommand(b"open\xffvpn").set_config(b"/etc/\xfe\xfd.conf")

    assert str(cmd) == "open�vpn --config /etc/��.conf"


def test_to_text_lossy_keeps_valid_text() -> None:
    assert to_text_lossy("10.0.0.1") == "10.0.0.1"
    assert to_text_lossy("päth") == "päth"


def test_display_includes_plugin_arguments_in_order() -> None:
    cmd = OpenVpnCommand("openvpn").set_plugin("/lib/p.so", ["--flag", "two words"])

    assert str(cmd) == 'openvpn --plugin /lib/p.so --flag "two words"'


def test_display_replaces_lone_surrogates() -> None:
    assert format_command("bin\udfff", []) == "bin�"
    assert to_text_lossy("a\ud800b") == "a�b"


def test_display_of_command_with_lone_surrogates_does_not_raise() -> None:
    cmd = OpenVpnCommand("open\ud800vpn").set_plugin("p.so", ["a\ud800b"])

    assert str(cmd) == "open�vpn --plugin p.so a�b"


def test_display_keeps_surrogateescape_bytes_lossy() -> None:
    assert to_text_lossy("x\udcffy") == "x�y"
