"""Runtime configuration loaded from a JSON file."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any

CONFIG_PATH_ENV_NAME = "FIRECRACKER_CONTAINERD_RUNTIME_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "/etc/containerd/firecracker-runtime.json"
DEFAULT_KERNEL_ARGS = "console=ttyS0 noapic reboot=k panic=1 pci=off nomodules rw"
DEFAULT_FILES_PATH = "/var/lib/firecracker-containerd/runtime/"
DEFAULT_KERNEL_PATH = DEFAULT_FILES_PATH + "default-vmlinux.bin"
DEFAULT_ROOTFS_PATH = DEFAULT_FILES_PATH + "default-rootfs.img"
DEFAULT_CPU_TEMPLATE = "T2"
DEFAULT_SHIM_BASE_DIR = "/var/lib/firecracker-containerd/shim-base"
RUNC_CONFIG_PATH = "/etc/containerd/firecracker-runc-config.json"


class ConfigError(Exception):
    """Raised when the configuration cannot be read or parsed."""


@dataclass
class JailerConfig:
    """Settings for jailing the VMM."""

    runc_binary_path: str = ""
    runc_config_path: str = RUNC_CONFIG_PATH


@dataclass
class Config:
    """Runtime configuration parameters."""

    firecracker_binary_path: str = ""
    kernel_image_path: str = DEFAULT_KERNEL_PATH
    kernel_args: str = DEFAULT_KERNEL_ARGS
    root_drive: str = DEFAULT_ROOTFS_PATH
    cpu_template: str = DEFAULT_CPU_TEMPLATE
    log_levels: list[str] = field(default_factory=list)
    ht_enabled: bool = False
    default_network_interfaces: list[dict[str, Any]] = field(default_factory=list)
    shim_base_dir: str = DEFAULT_SHIM_BASE_DIR
    jailer: JailerConfig = field(default_factory=JailerConfig)


_STRING_FIELDS = {
    "firecracker_binary_path",
    "kernel_image_path",
    "kernel_args",
    "root_drive",
    "cpu_template",
    "shim_base_dir",
}


def _expect(value: Any, kind: type, key: str) -> Any:
    if kind is str and not isinstance(value, str):
        raise ConfigError(f"field {key!r} must be a string, got {value!r}")
    if kind is bool and not isinstance(value, bool):
        raise ConfigError(f"field {key!r} must be a boolean, got {value!r}")
    return value


def _apply_jailer(jailer: JailerConfig, data: Any) -> None:
    if not isinstance(data, dict):
        raise ConfigError(f"field 'jailer' must be an object, got {data!r}")
    for key in ("runc_binary_path", "runc_config_path"):
        value = data.get(key)
        if value is not None:
            setattr(jailer, key, _expect(value, str, f"jailer.{key}"))


def _apply(cfg: Config, data: dict[str, Any]) -> None:
    for key, value in data.items():
        # null leaves the existing value in place; unknown keys are ignored
        if value is None:
            continue
        if key in _STRING_FIELDS:
            setattr(cfg, key, _expect(value, str, key))
        elif key == "ht_enabled":
            cfg.ht_enabled = _expect(value, bool, key)
        elif key == "log_levels":
            if not isinstance(value, list):
                raise ConfigError(f"field 'log_levels' must be a list, got {value!r}")
            cfg.log_levels = [_expect(item, str, "log_levels[]") for item in value]
        elif key == "default_network_interfaces":
            if not isinstance(value, list) or not all(
                isinstance(item, dict) for item in value
            ):
                raise ConfigError(
                    "field 'default_network_interfaces' must be a list of objects"
                )
            cfg.default_network_interfaces = [dict(item) for item in value]
        elif key == "jailer":
            _apply_jailer(cfg.jailer, value)


def load_config(path: str | os.PathLike[str] | None = None) -> Config:
    """Load the configuration from ``path``.

    Without a path, the environment variable named by CONFIG_PATH_ENV_NAME is
    used, and failing that the default configuration path.
    """
    resolved = os.fspath(path) if path else ""
    if not resolved:
        resolved = os.environ.get(CONFIG_PATH_ENV_NAME, "")
    if not resolved:
        resolved = DEFAULT_CONFIG_PATH

    try:
        with open(resolved, "rb") as handle:
            raw = handle.read()
    except OSError as exc:
        raise ConfigError(f"failed to read config from {resolved!r}: {exc}") from exc

    cfg = Config()
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ConfigError(
            f"failed to unmarshal config from {resolved!r}: {exc}"
        ) from exc

    if data is None:
        return cfg
    if not isinstance(data, dict):
        raise ConfigError(
            f"failed to unmarshal config from {resolved!r}: expected a JSON object"
        )
    try:
        _apply(cfg, data)
    except ConfigError as exc:
        raise ConfigError(f"failed to unmarshal config from {resolved!r}: {exc}") from exc
    return cfg