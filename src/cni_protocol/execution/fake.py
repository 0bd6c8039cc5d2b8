from __future__ import annotations

import json
import os
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from cni_protocol.errors import PluginNotFoundError, PluginTimeoutError
from cni_protocol.execution.executor import ADD, VERSION, interpret_output


@dataclass
class FakeCall:
    """One recorded delegate invocation."""

    plugin_path: str
    env: dict[str, str]
    stdin: bytes
    timeout: float | None = None

    @property
    def plugin_type(self) -> str:
        return os.path.basename(self.plugin_path)

    @property
    def command(self) -> str:
        return self.env.get("CNI_COMMAND", "")

    @property
    def config(self) -> dict[str, Any]:
        return json.loads(self.stdin)


@dataclass
class FakeResponse:
    stdout: bytes = b""
    stderr: bytes = b""
    exit_status: int = 0
    timeout: bool = False

    @classmethod
    def result(cls, payload: dict[str, Any]) -> FakeResponse:
        return cls(stdout=json.dumps(payload).encode("utf-8"))

    @classmethod
    def error(cls, code: int, msg: str, details: str = "") -> FakeResponse:
        body = {"cniVersion": "0.4.0", "code": code, "msg": msg, "details": details}
        return cls(stdout=json.dumps(body).encode("utf-8"), exit_status=1)


Responder = Callable[[FakeCall], FakeResponse]


def _default_response(call: FakeCall) -> FakeResponse:
    if call.command == ADD:
        config = call.config
        return FakeResponse.result({
            "cniVersion": config.get("cniVersion", ""),
            "interfaces": [{"name": call.env.get("CNI_IFNAME", "")}],
            "ips": [],
        })
    if call.command == VERSION:
        version = call.config.get("cniVersion", "")
        return FakeResponse.result({
            "cniVersion": version,
            "supportedVersions": ["0.3.0", "0.3.1", "0.4.0", "1.0.0"],
        })
    return FakeResponse()


class FakeExec:
    """In-memory executor that records calls instead of spawning processes.

    ``installed`` maps directories to the plugin types they hold.  When it is
    omitted every plugin resolves into the first search path.
    """

    def __init__(self, installed: Mapping[str, Iterable[str]] | None = None) -> None:
        self.installed: dict[str, set[str]] | None = (
            {d: set(types) for d, types in installed.items()}
            if installed is not None else None
        )
        self.calls: list[FakeCall] = []
        self._responses: dict[tuple[str, str], FakeResponse | Responder] = {}

    def respond(
        self, plugin_type: str, command: str, response: FakeResponse | Responder,
    ) -> None:
        self._responses[(plugin_type, command)] = response

    def calls_for(self, command: str) -> list[FakeCall]:
        return [c for c in self.calls if c.command == command]

    def resolve(self, plugin_type: str, search_paths: Sequence[str]) -> str:
        if not search_paths:
            raise ValueError("search_paths must list at least one directory")
        if self.installed is None:
            return os.path.join(search_paths[0], plugin_type)
        for directory in search_paths:
            if plugin_type in self.installed.get(directory, ()):
                return os.path.join(directory, plugin_type)
        raise PluginNotFoundError(plugin_type, list(search_paths))

    def execute(
        self,
        plugin_path: str,
        stdin_data: bytes,
        env: Mapping[str, str],
        timeout: float | None = None,
    ) -> bytes:
        call = FakeCall(plugin_path=plugin_path, env=dict(env), stdin=stdin_data, timeout=timeout)
        self.calls.append(call)

        configured = self._responses.get((call.plugin_type, call.command))
        if configured is None:
            response = _default_response(call)
        elif callable(configured):
            response = configured(call)
        else:
            response = configured

        if response.timeout:
            raise PluginTimeoutError(plugin_path, timeout or 0.0)
        return interpret_output(plugin_path, response.stdout, response.stderr, response.exit_status)
