"""Plugin result decoding.

A ChainResult wraps the decoded JSON object exactly as the plugin printed
it; that object is what the next plugin receives as ``prevResult``.  The
pydantic models below only check the handful of fields chaining relies on.
"""

from __future__ import annotations

import copy
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cni_protocol.errors import DecodeError


class _ResultShape(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    cni_version: str = Field(default="", alias="cniVersion")
    interfaces: list[dict[str, Any]] | None = None
    ips: list[dict[str, Any]] | None = None
    dns: dict[str, Any] | None = None


class PluginInfo(BaseModel):
    """Decoded response to a VERSION command."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    cni_version: str = Field(alias="cniVersion")
    supported_versions: list[str] = Field(default_factory=list, alias="supportedVersions")

    def supports(self, version: str) -> bool:
        return version in self.supported_versions


class ChainResult:
    """Opaque result of the most recently executed plugin in a chain."""

    def __init__(self, data: dict[str, Any], shape: _ResultShape) -> None:
        self._data = data
        self._shape = shape

    @property
    def cni_version(self) -> str:
        return self._shape.cni_version

    @property
    def interfaces(self) -> list[dict[str, Any]]:
        return self._shape.interfaces or []

    @property
    def ips(self) -> list[dict[str, Any]]:
        return self._shape.ips or []

    @property
    def dns(self) -> dict[str, Any]:
        return self._shape.dns or {}

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ChainResult):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"ChainResult(cni_version={self.cni_version!r}, interfaces={len(self.interfaces)})"


def _decode_object(data: bytes, what: str) -> dict[str, Any]:
    if not data.strip():
        raise DecodeError(f"empty {what}")
    try:
        decoded = json.loads(data)
    except ValueError as exc:
        raise DecodeError(f"failed to parse {what}: {exc}") from exc
    if not isinstance(decoded, dict):
        raise DecodeError(f"{what} must be a JSON object, got {type(decoded).__name__}")
    return decoded


def decode_result(data: bytes) -> ChainResult:
    decoded = _decode_object(data, "plugin result")
    try:
        shape = _ResultShape.model_validate(decoded)
    except ValidationError as exc:
        raise DecodeError(f"unexpected plugin result shape: {exc}") from exc
    return ChainResult(decoded, shape)


def decode_plugin_info(data: bytes) -> PluginInfo:
    decoded = _decode_object(data, "version result")
    try:
        return PluginInfo.model_validate(decoded)
    except ValidationError as exc:
        raise DecodeError(f"unexpected version result shape: {exc}") from exc
