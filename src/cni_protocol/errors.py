"""Error taxonomy for configuration loading, plugin execution, and chaining."""

from __future__ import annotations


class CNIError(Exception):
    """Base class for every error raised by cni_protocol."""


class ConfigError(CNIError):
    """Unreadable config directory, malformed document, or missing field."""


class PluginNotFoundError(CNIError):
    def __init__(self, plugin_type: str, search_paths: list[str]) -> None:
        self.plugin_type = plugin_type
        self.search_paths = list(search_paths)
        super().__init__(
            f"failed to find plugin {plugin_type!r} in path {self.search_paths}"
        )


class ExecuteError(CNIError):
    """A delegate reported an error envelope or exited non-zero.

    ``code``, ``msg`` and ``details`` are populated from the plugin's JSON
    error object when one was returned.
    """

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        msg: str = "",
        details: str = "",
        exit_status: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.msg = msg
        self.details = details
        self.exit_status = exit_status
        self.stderr = stderr


class PluginTimeoutError(CNIError, TimeoutError):
    def __init__(self, plugin_path: str, timeout: float) -> None:
        self.plugin_path = plugin_path
        self.timeout = timeout
        super().__init__(f"plugin {plugin_path} timed out after {timeout}s")


class DecodeError(CNIError):
    """Plugin output did not parse as the expected result shape."""


class ChainExecutionError(CNIError):
    """First failing plugin of a chain, wrapped with its position."""

    def __init__(
        self,
        command: str,
        network: str,
        plugin_type: str,
        index: int,
        cause: CNIError,
    ) -> None:
        self.command = command
        self.network = network
        self.plugin_type = plugin_type
        self.index = index
        self.cause = cause
        super().__init__(
            f"{command} of plugin {plugin_type!r} (#{index}) "
            f"in network {network!r} failed: {cause}"
        )


class NetworkNotReadyError(CNIError):
    def __init__(self, loaded: int, required: int) -> None:
        self.loaded = loaded
        self.required = required
        super().__init__(
            f"cni plugin not initialized: {loaded} network(s) loaded, "
            f"at least {required} required"
        )
