"""Client settings -- where plugins and network configs live.

A CNISettings object is everything the registry facade needs to know
about the host:

- Plugin search paths (``CNI_PATH`` for every delegate call)
- The network configuration directory and accepted file extensions
- Interface naming (``prefix`` + sequence number)
- Registry limits and the per-invocation timeout

Settings can be built directly, loaded from a YAML file, or overlaid from
environment variables::

    settings = load_settings("/etc/cni-protocol.yaml")
    settings = settings_from_env(settings)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from cni_protocol.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PLUGIN_DIRS = ("/opt/cni/bin",)
DEFAULT_CONF_DIR = "/etc/cni/net.d"
DEFAULT_EXTENSIONS = ("conf", "conflist", "json")

ENV_PLUGIN_DIRS = "CNI_PROTOCOL_PLUGIN_DIRS"
ENV_CONF_DIR = "CNI_PROTOCOL_CONF_DIR"
ENV_CACHE_DIR = "CNI_PROTOCOL_CACHE_DIR"


@dataclass
class CNISettings:
    """Host-level settings for the CNI client.

    Attributes:
        plugin_dirs: Directories searched, in order, for delegate binaries.
        conf_dir: Directory holding network configuration files.
        cache_dir: Passed through to plugins via RuntimeParams; empty
            means unset.
        prefix: Interface name prefix for loaded networks.
        max_conf_num: Maximum number of networks loaded from ``conf_dir``.
            0 means no limit.
        min_networks: ``status()`` fails while fewer bindings are loaded.
        extensions: Config file extensions, without the leading dot.
        exec_timeout: Seconds to wait for each delegate; None waits forever.
    """

    plugin_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_PLUGIN_DIRS))
    conf_dir: str = DEFAULT_CONF_DIR
    cache_dir: str = ""
    prefix: str = "eth"
    max_conf_num: int = 1
    min_networks: int = 1
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    exec_timeout: float | None = None

    def __post_init__(self) -> None:
        self.plugin_dirs = _string_list("plugin_dirs", self.plugin_dirs)
        self.extensions = tuple(
            ext.lstrip(".") for ext in _string_list("extensions", self.extensions)
        )
        for name in ("conf_dir", "cache_dir", "prefix"):
            if not isinstance(getattr(self, name), str):
                raise TypeError(f"{name} must be a string")
        for name in ("max_conf_num", "min_networks"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an integer")
        if self.exec_timeout is not None and (
            isinstance(self.exec_timeout, bool)
            or not isinstance(self.exec_timeout, (int, float))
        ):
            raise TypeError("exec_timeout must be a number of seconds")

        if not self.plugin_dirs:
            raise ValueError("plugin_dirs must list at least one directory")
        if self.max_conf_num < 0:
            raise ValueError("max_conf_num must not be negative")
        if self.min_networks < 0:
            raise ValueError("min_networks must not be negative")
        if self.exec_timeout is not None and self.exec_timeout <= 0:
            raise ValueError("exec_timeout must be positive")


def _string_list(name: str, value: Any) -> list[str]:
    """A bare string is one entry, not a sequence of characters."""
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} must be a string or a list of strings")
    if not all(isinstance(item, str) and item for item in value):
        raise TypeError(f"{name} entries must be non-empty strings")
    return list(value)


def load_settings(path: str | Path) -> CNISettings:
    """Read CNISettings from a YAML mapping. Unknown keys are rejected."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"cannot read settings file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid settings YAML {path}: {exc}") from exc

    if raw_data is None:
        return CNISettings()
    if not isinstance(raw_data, dict):
        raise ConfigError(f"Settings YAML root must be a mapping: {path}")

    data: dict[str, Any] = raw_data
    known = set(CNISettings.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown settings keys in {path}: {', '.join(unknown)}")

    try:
        return CNISettings(**data)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid settings in {path}: {exc}") from exc


def settings_from_env(
    base: CNISettings | None = None,
    environ: dict[str, str] | None = None,
) -> CNISettings:
    """Overlay ``CNI_PROTOCOL_*`` environment variables on *base*."""
    settings = base or CNISettings()
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    plugin_dirs = [p for p in env.get(ENV_PLUGIN_DIRS, "").split(":") if p.strip()]
    if plugin_dirs:
        overrides["plugin_dirs"] = plugin_dirs
    conf_dir = env.get(ENV_CONF_DIR, "").strip()
    if conf_dir:
        overrides["conf_dir"] = conf_dir
    cache_dir = env.get(ENV_CACHE_DIR, "").strip()
    if cache_dir:
        overrides["cache_dir"] = cache_dir

    if overrides:
        logger.debug("Applying settings overrides from environment: %s", sorted(overrides))
        settings = replace(settings, **overrides)
    return settings
