"""Delegate execution -- locating plugin binaries and running the exec protocol."""

from cni_protocol.execution.executor import (
    ADD,
    CHECK,
    COMMANDS,
    DEL,
    VERSION,
    PluginExecutor,
    build_environment,
    interpret_output,
)
from cni_protocol.execution.fake import FakeCall, FakeExec, FakeResponse
from cni_protocol.execution.raw import RawExec

__all__ = [
    "ADD",
    "CHECK",
    "COMMANDS",
    "DEL",
    "VERSION",
    "FakeCall",
    "FakeExec",
    "FakeResponse",
    "PluginExecutor",
    "RawExec",
    "build_environment",
    "interpret_output",
]
