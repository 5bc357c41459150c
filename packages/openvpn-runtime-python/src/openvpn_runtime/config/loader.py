"""
配置加载器（YAML）。

设计目标：
- 支持加载多个 YAML，并按顺序做深度合并（后者覆盖前者）；
- 使用 pydantic 做 schema 校验；默认拒绝未知字段（避免拼写错误被静默吞掉）；
- 把校验后的启动 profile 应用到 `OpenVpnCommand`（`build_command`）。

说明：
- 本模块只描述“如何启动 OpenVPN”；不校验配置文件/plugin 在磁盘上是否存在。
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from openvpn_runtime.net import EndpointResolver
from openvpn_runtime.process.openvpn import OpenVpnCommand


def _deep_merge(base: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """
    深度合并两个 dict（overlay 覆盖 base）。

    合并规则：
    - dict + dict：递归合并
    - 其它类型：overlay 直接覆盖
    - list：整体覆盖（remotes 的顺序有语义，不做拼接）
    """

    for key, overlay_value in overlay.items():
        if key in base and isinstance(base[key], dict) and isinstance(overlay_value, Mapping):
            _deep_merge(base[key], overlay_value)  # type: ignore[arg-type]
            continue
        base[key] = deepcopy(overlay_value)
    return base


class OpenVpnPluginConfig(BaseModel):
    """OpenVPN plugin（路径 + 有序参数）。"""

    model_config = ConfigDict(extra="forbid")

    path: str
    args: List[str] = Field(default_factory=list)


class OpenVpnLaunchConfig(BaseModel):
    """OpenVPN 启动 profile。"""

    model_config = ConfigDict(extra="forbid")

    binary: str = Field(default="openvpn")
    config: Optional[str] = None
    # "host:port" / "[ipv6]:port"；由 resolver 在 build_command 时解析
    remotes: List[str] = Field(default_factory=list)
    plugin: Optional[OpenVpnPluginConfig] = None
    capture_output: bool = True

    @field_validator("binary")
    @classmethod
    def _validate_binary(cls, value: str) -> str:
        """binary 不能为空白。"""

        if not value.strip():
            raise ValueError("openvpn.binary must not be empty")
        return value


class OpenVpnRuntimeConfig(BaseModel):
    """配置根对象。"""

    model_config = ConfigDict(extra="forbid")

    config_version: int = Field(default=1, ge=1)
    openvpn: OpenVpnLaunchConfig = Field(default_factory=OpenVpnLaunchConfig)


def load_yaml_mapping(path: Path) -> Dict[str, Any]:
    """读取 YAML 文件为 dict；空文件返回空 dict。"""

    if not path.exists():
        raise FileNotFoundError(f"config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config root must be a mapping(dict): {path}")
    return data


def load_config_dicts(config_dicts: List[Dict[str, Any]]) -> OpenVpnRuntimeConfig:
    """
    加载并合并多个 dict 配置，返回校验后的 `OpenVpnRuntimeConfig`。

    参数：
    - config_dicts：按顺序做深度合并（后者覆盖前者）
    """

    merged: Dict[str, Any] = {}
    for overlay in config_dicts:
        if not overlay:
            continue
        _deep_merge(merged, overlay)
    return OpenVpnRuntimeConfig.model_validate(merged)


def load_config(config_paths: List[Path]) -> OpenVpnRuntimeConfig:
    """
    加载并合并多个配置文件，返回校验后的 `OpenVpnRuntimeConfig`。

    参数：
    - config_paths：YAML 路径列表；按顺序合并（后者覆盖前者）
    """

    overlays: List[Dict[str, Any]] = []
    for path in config_paths:
        overlays.append(load_yaml_mapping(Path(path)))
    return load_config_dicts(overlays)


def build_command(config: OpenVpnRuntimeConfig, *, resolver: Optional[EndpointResolver] = None) -> OpenVpnCommand:
    """
    把启动 profile 应用到一个新的 `OpenVpnCommand`。

    异常：
    - ResolutionError：remotes 中存在非法项
    """

    launch = config.openvpn
    command = OpenVpnCommand(launch.binary, resolver=resolver)
    if launch.config is not None:
        command.set_config(launch.config)
    if launch.remotes:
        command.set_remotes(launch.remotes)
    if launch.plugin is not None:
        command.set_plugin(launch.plugin.path, launch.plugin.args)
    command.set_output_capture(launch.capture_output)
    return command
