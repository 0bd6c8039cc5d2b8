from __future__ import annotations

import logging
import os
import signal
import subprocess
from collections.abc import Mapping, Sequence

from cni_protocol.errors import ExecuteError, PluginNotFoundError, PluginTimeoutError
from cni_protocol.execution.executor import interpret_output

logger = logging.getLogger(__name__)


class RawExec:
    """Runs delegate binaries as child processes."""

    def resolve(self, plugin_type: str, search_paths: Sequence[str]) -> str:
        if not search_paths:
            raise ValueError("search_paths must list at least one directory")
        for directory in search_paths:
            candidate = os.path.abspath(os.path.join(directory, plugin_type))
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate
        raise PluginNotFoundError(plugin_type, list(search_paths))

    def execute(
        self,
        plugin_path: str,
        stdin_data: bytes,
        env: Mapping[str, str],
        timeout: float | None = None,
    ) -> bytes:
        logger.debug(
            "Executing %s (%s) with %d byte(s) of config",
            plugin_path, env.get("CNI_COMMAND", "?"), len(stdin_data),
        )
        try:
            proc = subprocess.Popen(
                [plugin_path],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=dict(env),
                start_new_session=os.name != "nt",
            )
        except OSError as exc:
            raise ExecuteError(f"failed to start plugin {plugin_path}: {exc}") from exc

        # communicate() feeds stdin and drains both pipes on helper threads.
        try:
            stdout, stderr = proc.communicate(stdin_data, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            _kill_process_group(proc)
            proc.communicate()
            raise PluginTimeoutError(plugin_path, timeout or 0.0) from exc

        return interpret_output(plugin_path, stdout, stderr, proc.returncode)


def _kill_process_group(proc: subprocess.Popen) -> None:
    """Kill the plugin and anything it spawned; grandchildren hold the pipes."""
    if os.name != "nt":
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            logger.warning("Cannot kill process group of plugin pid %d", proc.pid)
    proc.kill()
