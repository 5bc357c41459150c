from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest
import yaml
from pydantic import ValidationError

from openvpn_runtime.config.defaults import load_default_config_dict
from openvpn_runtime.config.loader import build_command, load_config, load_config_dicts
from openvpn_runtime.core.errors import ResolutionError
from openvpn_runtime.net import RemoteAddr


def _write_yaml(path: Path, obj: Dict[str, Any]) -> Path:
    """写入 YAML overlay（根节点必须为 mapping）。"""

    path.write_text(yaml.safe_dump(obj, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return path


def test_default_config_is_valid_and_builds_empty_command() -> None:
    cfg = load_config_dicts([load_default_config_dict()])
    cmd = build_command(cfg)

    assert cfg.openvpn.binary == "openvpn"
    assert cmd.get_arguments() == []
    assert cmd.capture_output is True


def test_overlays_merge_in_order_and_lists_replace(tmp_path: Path) -> None:
    base = _write_yaml(
        tmp_path / "base.yaml",
        {"openvpn": {"config": "/etc/openvpn/a.conf", "remotes": ["a.example:1194", "b.example:1194"]}},
    )
    overlay = _write_yaml(tmp_path / "overlay.yaml", {"openvpn": {"remotes": ["c.example:443"]}})

    cfg = load_config([base, overlay])

    assert cfg.openvpn.config == "/etc/openvpn/a.conf"
    assert cfg.openvpn.remotes == ["c.example:443"]


def test_build_command_applies_all_fields() -> None:
    cfg = load_config_dicts(
        [
            load_default_config_dict(),
            {
                "openvpn": {
                    "binary": "/usr/sbin/openvpn",
                    "config": "/etc/openvpn/client.conf",
                    "remotes": ["10.0.0.1:1194", "[fe80::1]:443"],
                    "plugin": {"path": "/lib/talpid.so", "args": ["ipc-path", "/tmp/sock"]},
                    "capture_output": False,
                }
            },
        ]
    )

    cmd = build_command(cfg)

    assert cmd.binary == "/usr/sbin/openvpn"
    assert cmd.remotes == (RemoteAddr("10.0.0.1", 1194), RemoteAddr("fe80::1", 443))
    assert cmd.capture_output is False
    assert cmd.get_arguments()[-4:] == ["--plugin", "/lib/talpid.so", "ipc-path", "/tmp/sock"]


def test_build_command_uses_injected_resolver() -> None:
    cfg = load_config_dicts([{"openvpn": {"remotes": ["ignored"]}}])

    cmd = build_command(cfg, resolver=lambda spec: [RemoteAddr("r", 1)])

    assert cmd.get_arguments() == ["--remote", "r", "1"]


def test_build_command_bad_remote_raises_resolution_error() -> None:
    cfg = load_config_dicts([{"openvpn": {"remotes": ["10.0.0.1"]}}])

    with pytest.raises(ResolutionError):
        build_command(cfg)


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ValidationError):
        load_config_dicts([{"openvpn": {"remote": ["a:1"]}}])
    with pytest.raises(ValidationError):
        load_config_dicts([{"vpn": {}}])


def test_empty_binary_is_rejected() -> None:
    with pytest.raises(ValidationError):
        load_config_dicts([{"openvpn": {"binary": "  "}}])


def test_missing_and_non_mapping_files(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config([tmp_path / "missing.yaml"])

    bad = tmp_path / "list.yaml"
    bad.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config([bad])


def test_empty_file_is_empty_overlay(tmp_path: Path) -> None:
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")

    assert load_config([empty]).openvpn.remotes == []
