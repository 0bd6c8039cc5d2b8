"""Plugin executor protocol -- the process-exec capability behind every call.

Defines the contract that the subprocess executor and the in-memory fake
both satisfy, plus the environment builder for the six ``CNI_*``
variables.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from cni_protocol.errors import ExecuteError
from cni_protocol.runtime import RuntimeParams

logger = logging.getLogger(__name__)

ADD = "ADD"
DEL = "DEL"
CHECK = "CHECK"
VERSION = "VERSION"
COMMANDS = frozenset({ADD, DEL, CHECK, VERSION})


@runtime_checkable
class PluginExecutor(Protocol):
    """Abstract interface for locating and running delegate binaries.

    Any class that implements ``resolve`` and ``execute`` with the correct
    signatures satisfies this protocol at runtime.
    """

    def resolve(self, plugin_type: str, search_paths: Sequence[str]) -> str:
        """Return the path of *plugin_type* in the first search path holding it."""
        ...

    def execute(
        self,
        plugin_path: str,
        stdin_data: bytes,
        env: Mapping[str, str],
        timeout: float | None = None,
    ) -> bytes:
        """Run the plugin and return its raw stdout on success."""
        ...


def build_environment(
    command: str,
    params: RuntimeParams,
    search_paths: Sequence[str],
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge the protocol variables over a snapshot of the inherited environment.

    The returned dict is handed straight to the spawn call; ``os.environ``
    itself is only read.
    """
    if command not in COMMANDS:
        raise ValueError(f"Unknown CNI command: {command!r}")
    if not search_paths:
        raise ValueError("search_paths must list at least one directory")

    env = dict(os.environ if base_env is None else base_env)
    env.update({
        "CNI_COMMAND": command,
        "CNI_CONTAINERID": params.container_id,
        "CNI_NETNS": params.netns,
        "CNI_IFNAME": params.ifname,
        "CNI_ARGS": params.args_string,
        "CNI_PATH": ":".join(search_paths),
    })
    return env


def interpret_output(
    plugin_path: str, stdout: bytes, stderr: bytes, exit_status: int,
) -> bytes:
    """Turn a finished delegate's output into a result or an ExecuteError.

    A JSON object carrying ``code`` is an error whatever the exit status.
    Unparseable output only counts as an error when the exit status is
    non-zero; otherwise the bytes are returned for the caller to decode.
    """
    stderr_text = stderr.decode("utf-8", errors="replace").strip()
    decoded = None
    parsed = False
    if stdout.strip():
        try:
            decoded = json.loads(stdout)
            parsed = True
        except ValueError:
            parsed = False

    if parsed and isinstance(decoded, dict) and "code" in decoded:
        stdout_text = stdout.decode("utf-8", errors="replace").strip()
        code = decoded.get("code")
        raise ExecuteError(
            stdout_text or stderr_text,
            code=code if isinstance(code, int) else None,
            msg=str(decoded.get("msg", "")),
            details=str(decoded.get("details", "")),
            exit_status=exit_status,
            stderr=stderr_text,
        )

    if not parsed and exit_status != 0:
        raise ExecuteError(
            stderr_text or f"plugin {plugin_path} exited with status {exit_status}",
            exit_status=exit_status,
            stderr=stderr_text,
        )

    if exit_status != 0:
        logger.warning(
            "Plugin %s exited with status %d but returned a result", plugin_path, exit_status
        )
    return stdout
