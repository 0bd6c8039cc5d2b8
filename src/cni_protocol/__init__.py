"""CNI Protocol -- client side of the exec-based Container Network Interface.

Network chains are loaded from a conf directory and every plugin in a
chain is run as a delegate binary, with each plugin's result threaded into
the next.

Public API::

    from cni_protocol import CNI, CNISettings
    from cni_protocol.config import parse_chain, load_all
    from cni_protocol.execution import RawExec, FakeExec
"""

from cni_protocol.cni import CNI, BindingOutcome, OperationReport
from cni_protocol.errors import (
    ChainExecutionError,
    CNIError,
    ConfigError,
    DecodeError,
    ExecuteError,
    NetworkNotReadyError,
    PluginNotFoundError,
    PluginTimeoutError,
)
from cni_protocol.runtime import NamespaceHandle, RuntimeParams
from cni_protocol.settings import CNISettings

__all__ = [
    "BindingOutcome",
    "CNI",
    "CNIError",
    "CNISettings",
    "ChainExecutionError",
    "ConfigError",
    "DecodeError",
    "ExecuteError",
    "NamespaceHandle",
    "NetworkNotReadyError",
    "OperationReport",
    "PluginNotFoundError",
    "PluginTimeoutError",
    "RuntimeParams",
]
__version__ = "0.1.0"
