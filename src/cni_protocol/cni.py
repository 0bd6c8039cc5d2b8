"""CNI facade -- owns the network registry and drives setup/remove/check."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cni_protocol.config.loader import LOOPBACK_IFNAME, load_all, loopback_binding
from cni_protocol.config.models import NetworkBinding
from cni_protocol.config.validator import validate_config_directory
from cni_protocol.errors import ChainExecutionError, CNIError, NetworkNotReadyError
from cni_protocol.execution.executor import PluginExecutor
from cni_protocol.execution.raw import RawExec
from cni_protocol.orchestration.chain import ChainOrchestrator
from cni_protocol.orchestration.errors import log_and_capture_error
from cni_protocol.result import ChainResult
from cni_protocol.runtime import NamespaceHandle, RuntimeParams
from cni_protocol.settings import CNISettings, load_settings, settings_from_env
from cni_protocol.telemetry import (
    NoOpTelemetrySink,
    TelemetryEvent,
    TelemetrySink,
    network_event_name,
)

logger = logging.getLogger(__name__)


@dataclass
class BindingOutcome:
    network: str
    ifname: str
    result: ChainResult | None = None
    error: CNIError | None = None
    check_failures: list[ChainExecutionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.check_failures


@dataclass
class OperationReport:
    """Outcome of setup/remove/check across every binding that was attempted."""

    operation: str
    container_id: str
    outcomes: list[BindingOutcome] = field(default_factory=list)
    error: CNIError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and all(o.ok for o in self.outcomes)

    @property
    def errors(self) -> list[CNIError]:
        errors: list[CNIError] = [self.error] if self.error is not None else []
        for outcome in self.outcomes:
            if outcome.error is not None:
                errors.append(outcome.error)
            errors.extend(outcome.check_failures)
        return errors

    @property
    def results(self) -> dict[str, ChainResult]:
        return {o.ifname: o.result for o in self.outcomes if o.result is not None}


class CNI:
    """Single entry point that wires settings, executor, and orchestrator.

    The binding list is replaced as a whole under a lock; operations work on
    a snapshot taken at their start.
    """

    def __init__(
        self,
        settings: CNISettings | None = None,
        *,
        executor: PluginExecutor | None = None,
        telemetry_sink: TelemetrySink | None = None,
    ) -> None:
        self.settings = settings or CNISettings()
        self.executor = executor or RawExec()
        self.telemetry = telemetry_sink or NoOpTelemetrySink()
        self.orchestrator = ChainOrchestrator(
            self.executor,
            self.settings.plugin_dirs,
            timeout=self.settings.exec_timeout,
            telemetry_sink=self.telemetry,
        )
        self._bindings: tuple[NetworkBinding, ...] = ()
        self._lock = threading.Lock()

    @classmethod
    def from_settings_file(
        cls,
        path: str | Path,
        *,
        executor: PluginExecutor | None = None,
        telemetry_sink: TelemetrySink | None = None,
    ) -> CNI:
        """Build a CNI instance from a YAML settings file plus environment overrides."""
        settings = settings_from_env(load_settings(path))
        return cls(settings, executor=executor, telemetry_sink=telemetry_sink)

    # ── registry ──────────────────────────────────────────────────

    @property
    def networks(self) -> tuple[NetworkBinding, ...]:
        with self._lock:
            return self._bindings

    def load_default_config(self) -> int:
        """Replace the registry with the networks found in ``settings.conf_dir``."""
        bindings = load_all(
            self.settings.conf_dir,
            prefix=self.settings.prefix,
            extensions=self.settings.extensions,
            max_conf_num=self.settings.max_conf_num,
        )
        with self._lock:
            self._bindings = tuple(bindings)
        return len(bindings)

    def add_loopback(self) -> bool:
        """Append the loopback network. Returns False if one is already bound."""
        binding = loopback_binding()
        with self._lock:
            if any(b.ifname == LOOPBACK_IFNAME for b in self._bindings):
                logger.debug("Loopback network already registered")
                return False
            self._bindings = (*self._bindings, binding)
        return True

    def status(self) -> None:
        """Raise NetworkNotReadyError unless enough networks are loaded."""
        loaded = len(self.networks)
        if loaded < self.settings.min_networks:
            raise NetworkNotReadyError(loaded, self.settings.min_networks)

    def validate_config(self) -> tuple[int, list[str]]:
        return validate_config_directory(self.settings.conf_dir, self.settings.extensions)

    # ── operations ────────────────────────────────────────────────

    def _namespace(
        self,
        container_id: str,
        ns_path: str,
        args: dict[str, str] | None,
        capabilities: dict[str, Any] | None,
    ) -> NamespaceHandle:
        handle = NamespaceHandle(container_id, ns_path)
        if args:
            handle.with_args(args)
        if capabilities:
            handle.with_capabilities(capabilities)
        return handle

    def _params(self, handle: NamespaceHandle, binding: NetworkBinding) -> RuntimeParams:
        return handle.runtime_params(binding.ifname, cache_dir=self.settings.cache_dir)

    def _begin(self, operation: str, container_id: str) -> tuple[OperationReport, tuple[NetworkBinding, ...]]:
        report = OperationReport(operation=operation, container_id=container_id)
        bindings = self.networks
        try:
            self.status()
        except NetworkNotReadyError as exc:
            report.error = log_and_capture_error(operation=operation, network="*", exc=exc)
        return report, bindings

    def _finish(self, report: OperationReport) -> OperationReport:
        self.telemetry.emit(TelemetryEvent(
            name=network_event_name(report.operation),
            attributes={
                "container_id": report.container_id,
                "networks": [o.network for o in report.outcomes],
                "ok": report.ok,
                "error_count": len(report.errors),
            },
        ))
        return report

    def setup(
        self,
        container_id: str,
        ns_path: str,
        *,
        args: dict[str, str] | None = None,
        capabilities: dict[str, Any] | None = None,
    ) -> OperationReport:
        """Attach every network in registry order; stop at the first failure."""
        report, bindings = self._begin("setup", container_id)
        if report.error is not None:
            return self._finish(report)

        handle = self._namespace(container_id, ns_path, args, capabilities)
        for binding in bindings:
            outcome = BindingOutcome(network=binding.name, ifname=binding.ifname)
            report.outcomes.append(outcome)
            try:
                outcome.result = self.orchestrator.add_chain(
                    binding.chain, self._params(handle, binding),
                )
            except CNIError as exc:
                outcome.error = log_and_capture_error(
                    operation="setup", network=binding.name, exc=exc,
                )
                break
        return self._finish(report)

    def remove(
        self,
        container_id: str,
        ns_path: str,
        *,
        args: dict[str, str] | None = None,
        capabilities: dict[str, Any] | None = None,
    ) -> OperationReport:
        """Detach every network, continuing past failures and reporting all of them."""
        report, bindings = self._begin("remove", container_id)
        if report.error is not None:
            return self._finish(report)

        handle = self._namespace(container_id, ns_path, args, capabilities)
        for binding in bindings:
            outcome = BindingOutcome(network=binding.name, ifname=binding.ifname)
            report.outcomes.append(outcome)
            try:
                self.orchestrator.del_chain(binding.chain, self._params(handle, binding))
            except CNIError as exc:
                outcome.error = log_and_capture_error(
                    operation="remove", network=binding.name, exc=exc,
                )
        return self._finish(report)

    def check(
        self,
        container_id: str,
        ns_path: str,
        *,
        args: dict[str, str] | None = None,
        capabilities: dict[str, Any] | None = None,
    ) -> OperationReport:
        """Run CHECK on every network and collect the per-plugin failures."""
        report, bindings = self._begin("check", container_id)
        if report.error is not None:
            return self._finish(report)

        handle = self._namespace(container_id, ns_path, args, capabilities)
        for binding in bindings:
            outcome = BindingOutcome(network=binding.name, ifname=binding.ifname)
            report.outcomes.append(outcome)
            outcome.check_failures = self.orchestrator.check_chain(
                binding.chain, self._params(handle, binding),
            )
        return self._finish(report)
