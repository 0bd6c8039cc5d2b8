"""Orchestration of ADD/DEL/CHECK across plugin chains."""

from cni_protocol.orchestration.chain import ChainOrchestrator, build_plugin_stdin
from cni_protocol.orchestration.errors import log_and_capture_error

__all__ = [
    "ChainOrchestrator",
    "build_plugin_stdin",
    "log_and_capture_error",
]
