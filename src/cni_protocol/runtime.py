"""Per-invocation runtime parameters derived from a target namespace."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeParams:
    """What one delegate call needs to know about its target.

    ``args`` keeps insertion order; it becomes ``CNI_ARGS``.
    ``capability_args`` feeds ``runtimeConfig`` for plugins that declare
    the matching capability.
    """

    container_id: str
    netns: str
    ifname: str
    args: tuple[tuple[str, str], ...] = ()
    capability_args: dict[str, Any] = field(default_factory=dict)
    cache_dir: str = ""

    @property
    def args_string(self) -> str:
        return ";".join(f"{k}={v}" for k, v in self.args)


class NamespaceHandle:
    """Caller-supplied container identity plus optional args and capabilities."""

    def __init__(self, container_id: str, path: str) -> None:
        logger.debug("Creating namespace handle for container %s at %s", container_id, path)
        self.container_id = container_id
        self.path = path
        self.args: dict[str, str] = {}
        self.capability_args: dict[str, Any] = {}

    def with_args(self, args: dict[str, str]) -> NamespaceHandle:
        self.args = dict(args)
        return self

    def with_capabilities(self, capabilities: dict[str, Any]) -> NamespaceHandle:
        self.capability_args = dict(capabilities)
        return self

    def add_arg(self, key: str, value: str) -> None:
        self.args[key] = value

    def add_capability(self, key: str, value: Any) -> None:
        self.capability_args[key] = value

    def runtime_params(self, ifname: str, *, cache_dir: str = "") -> RuntimeParams:
        """Build fresh RuntimeParams for one chain bound to *ifname*."""
        return RuntimeParams(
            container_id=self.container_id,
            netns=self.path,
            ifname=ifname,
            args=tuple(self.args.items()),
            capability_args=dict(self.capability_args),
            cache_dir=cache_dir,
        )
