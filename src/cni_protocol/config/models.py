"""Pydantic models for network chains and the plugins they are built from.

Each plugin keeps the exact bytes it was loaded from.  Decoded fields are
read-only projections of those bytes, so keys this package does not know
about travel to the delegate untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _FrozenModel(BaseModel):
    """Shared settings for loaded configuration contracts."""

    model_config = ConfigDict(extra="forbid", frozen=True)


def _decode_object(raw: bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"plugin config is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("plugin config must be a JSON object")
    return data


class PluginConfig(_FrozenModel):
    """One element of a chain: a plugin type and its original JSON bytes."""

    plugin_type: str
    raw: bytes

    @field_validator("plugin_type")
    @classmethod
    def require_type(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("plugin type must be non-empty")
        return value

    @model_validator(mode="after")
    def raw_matches_type(self) -> PluginConfig:
        data = _decode_object(self.raw)
        if data.get("type") != self.plugin_type:
            raise ValueError(
                f"plugin bytes declare type {data.get('type')!r}, "
                f"expected {self.plugin_type!r}"
            )
        return self

    @classmethod
    def from_bytes(cls, raw: bytes) -> PluginConfig:
        data = _decode_object(raw)
        plugin_type = data.get("type")
        if not isinstance(plugin_type, str):
            raise ValueError("plugin config requires a string 'type' field")
        return cls(plugin_type=plugin_type, raw=raw)

    def to_dict(self) -> dict[str, Any]:
        """Return a fresh decoded copy of the plugin's JSON object."""
        return _decode_object(self.raw)

    @property
    def capabilities(self) -> dict[str, bool]:
        caps = self.to_dict().get("capabilities")
        if not isinstance(caps, dict):
            return {}
        return {str(k): bool(v) for k, v in caps.items()}


class NetworkChain(_FrozenModel):
    """An ordered list of plugins forming one logical network (a conflist)."""

    name: str
    cni_version: str
    disable_check: bool = False
    plugins: tuple[PluginConfig, ...] = Field(default_factory=tuple)
    raw: bytes = b""

    @field_validator("name", "cni_version")
    @classmethod
    def require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must be non-empty")
        return value

    @property
    def plugin_types(self) -> list[str]:
        return [p.plugin_type for p in self.plugins]


@dataclass(frozen=True)
class NetworkBinding:
    """A chain attached to one interface name inside the target namespace."""

    chain: NetworkChain
    ifname: str

    @property
    def name(self) -> str:
        return self.chain.name
