"""Chain orchestration -- ADD, DEL and CHECK sequencing across a plugin list.

ADD runs plugins front to back and threads each decoded result into the
next plugin's config as ``prevResult``.  DEL runs back to front so that
teardown mirrors setup.  CHECK runs every plugin and collects failures.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from typing import TypeVar

from cni_protocol.config.models import NetworkChain, PluginConfig
from cni_protocol.errors import ChainExecutionError, CNIError
from cni_protocol.execution.executor import (
    ADD,
    CHECK,
    DEL,
    VERSION,
    PluginExecutor,
    build_environment,
)
from cni_protocol.result import ChainResult, PluginInfo, decode_plugin_info, decode_result
from cni_protocol.runtime import RuntimeParams
from cni_protocol.telemetry import (
    PLUGIN_INVOKE,
    NoOpTelemetrySink,
    TelemetryEvent,
    TelemetrySink,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


def build_plugin_stdin(
    chain: NetworkChain,
    plugin: PluginConfig,
    params: RuntimeParams,
    prev_result: ChainResult | None = None,
) -> bytes:
    """Rebuild *plugin*'s JSON object into the bytes sent to the delegate.

    ``name`` and ``cniVersion`` come from the chain.  ``prevResult`` is only
    present when a previous result is given.  Capabilities the plugin enables
    and the caller supplied are passed in ``runtimeConfig``.
    """
    data = plugin.to_dict()
    data["name"] = chain.name
    data["cniVersion"] = chain.cni_version
    if prev_result is not None:
        data["prevResult"] = prev_result.to_dict()

    runtime_config = {
        cap: params.capability_args[cap]
        for cap, enabled in plugin.capabilities.items()
        if enabled and cap in params.capability_args
    }
    if runtime_config:
        data["runtimeConfig"] = runtime_config
    return json.dumps(data).encode("utf-8")


class ChainOrchestrator:
    """Drives one executor over network chains.

    The executor is injected and shared; the orchestrator holds no
    per-chain state between calls.
    """

    def __init__(
        self,
        executor: PluginExecutor,
        search_paths: Sequence[str],
        *,
        timeout: float | None = None,
        telemetry_sink: TelemetrySink | None = None,
    ) -> None:
        if not search_paths:
            raise ValueError("search_paths must list at least one directory")
        self.executor = executor
        self.search_paths = list(search_paths)
        self.timeout = timeout
        self.telemetry = telemetry_sink or NoOpTelemetrySink()

    # ── single plugin ─────────────────────────────────────────────

    def _invoke(
        self,
        command: str,
        network: str,
        plugin_type: str,
        stdin_data: bytes,
        params: RuntimeParams,
        decode: Callable[[bytes], _T] | None = None,
    ) -> _T | bytes:
        """Run one plugin; the telemetry event covers decoding as well."""
        start = time.perf_counter()
        ok = False
        error = ""
        try:
            plugin_path = self.executor.resolve(plugin_type, self.search_paths)
            env = build_environment(command, params, self.search_paths)
            logger.debug(
                "%s %s for network %s (container=%s, ifname=%s)",
                command, plugin_path, network, params.container_id, params.ifname,
            )
            output = self.executor.execute(plugin_path, stdin_data, env, self.timeout)
            decoded = decode(output) if decode is not None else output
            ok = True
            return decoded
        except CNIError as exc:
            error = str(exc)
            raise
        finally:
            self.telemetry.emit(TelemetryEvent(
                name=PLUGIN_INVOKE,
                attributes={
                    "command": command,
                    "network": network,
                    "plugin_type": plugin_type,
                    "container_id": params.container_id,
                    "ifname": params.ifname,
                    "ok": ok,
                    "error": error,
                    "latency_ms": (time.perf_counter() - start) * 1000,
                },
            ))

    def add_plugin(
        self,
        chain: NetworkChain,
        plugin: PluginConfig,
        params: RuntimeParams,
        prev_result: ChainResult | None = None,
    ) -> ChainResult:
        stdin_data = build_plugin_stdin(chain, plugin, params, prev_result)
        return self._invoke(
            ADD, chain.name, plugin.plugin_type, stdin_data, params, decode_result,
        )

    def del_plugin(
        self, chain: NetworkChain, plugin: PluginConfig, params: RuntimeParams,
    ) -> None:
        stdin_data = build_plugin_stdin(chain, plugin, params)
        self._invoke(DEL, chain.name, plugin.plugin_type, stdin_data, params)

    def check_plugin(
        self,
        chain: NetworkChain,
        plugin: PluginConfig,
        params: RuntimeParams,
        prev_result: ChainResult | None = None,
    ) -> None:
        stdin_data = build_plugin_stdin(chain, plugin, params, prev_result)
        self._invoke(CHECK, chain.name, plugin.plugin_type, stdin_data, params)

    # ── whole chain ───────────────────────────────────────────────

    def add_chain(self, chain: NetworkChain, params: RuntimeParams) -> ChainResult:
        """Run ADD for every plugin in order; return the last plugin's result.

        The first failure stops the chain.  Plugins already added are left in
        place; callers that need cleanup issue ``del_chain``.
        """
        if not chain.plugins:
            raise ChainExecutionError(
                ADD, chain.name, "", 0, CNIError("network has no plugins"),
            )
        prev_result: ChainResult | None = None
        for index, plugin in enumerate(chain.plugins):
            try:
                prev_result = self.add_plugin(chain, plugin, params, prev_result)
            except CNIError as exc:
                raise ChainExecutionError(
                    ADD, chain.name, plugin.plugin_type, index, exc,
                ) from exc
        assert prev_result is not None
        logger.info(
            "Attached network %s to %s as %s", chain.name, params.netns, params.ifname,
        )
        return prev_result

    def del_chain(self, chain: NetworkChain, params: RuntimeParams) -> None:
        """Run DEL for every plugin in reverse order; stop at the first failure."""
        for index in reversed(range(len(chain.plugins))):
            plugin = chain.plugins[index]
            try:
                self.del_plugin(chain, plugin, params)
            except CNIError as exc:
                raise ChainExecutionError(
                    DEL, chain.name, plugin.plugin_type, index, exc,
                ) from exc
        logger.info("Removed network %s from %s", chain.name, params.netns)

    def check_chain(
        self,
        chain: NetworkChain,
        params: RuntimeParams,
        prev_result: ChainResult | None = None,
    ) -> list[ChainExecutionError]:
        """Run CHECK for every plugin; an empty list means healthy."""
        if chain.disable_check:
            logger.debug("Skipping CHECK for network %s (disableCheck)", chain.name)
            return []

        failures: list[ChainExecutionError] = []
        for index, plugin in enumerate(chain.plugins):
            try:
                self.check_plugin(chain, plugin, params, prev_result)
            except CNIError as exc:
                logger.warning(
                    "CHECK of %s in network %s failed: %s", plugin.plugin_type, chain.name, exc,
                )
                failures.append(
                    ChainExecutionError(CHECK, chain.name, plugin.plugin_type, index, exc)
                )
        return failures

    def version_info(self, plugin_type: str, cni_version: str = "1.0.0") -> PluginInfo:
        """Ask a plugin which protocol versions it supports."""
        params = RuntimeParams(container_id="", netns="", ifname="")
        stdin_data = json.dumps({"cniVersion": cni_version}).encode("utf-8")
        return self._invoke(
            VERSION, "", plugin_type, stdin_data, params, decode_plugin_info,
        )
