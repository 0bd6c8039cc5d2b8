"""Test fixtures for CNI Protocol tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from cni_protocol import CNI, CNISettings
from cni_protocol.config.loader import parse_chain
from cni_protocol.config.models import NetworkChain
from cni_protocol.execution.fake import FakeExec
from cni_protocol.telemetry import InMemoryTelemetrySink

PLUGIN_DIR = "/opt/cni/bin"


def make_chain(
    name: str = "net1",
    cni_version: str = "0.4.0",
    plugins: list[dict[str, Any]] | None = None,
    disable_check: bool = False,
) -> NetworkChain:
    """Build a chain by parsing a serialized conflist document."""
    doc: dict[str, Any] = {
        "cniVersion": cni_version,
        "name": name,
        "plugins": plugins if plugins is not None else [{"type": "bridge"}],
    }
    if disable_check:
        doc["disableCheck"] = True
    return parse_chain(json.dumps(doc).encode("utf-8"))


def write_config(directory: Path, filename: str, doc: dict[str, Any] | str) -> Path:
    path = directory / filename
    text = doc if isinstance(doc, str) else json.dumps(doc, indent=2)
    path.write_text(text, encoding="utf-8")
    return path


def make_test_cni(
    conf_dir: Path | str = "/nonexistent",
    executor: FakeExec | None = None,
    sink: InMemoryTelemetrySink | None = None,
    **settings: Any,
) -> CNI:
    settings.setdefault("plugin_dirs", [PLUGIN_DIR])
    return CNI(
        CNISettings(conf_dir=str(conf_dir), **settings),
        executor=executor or FakeExec(),
        telemetry_sink=sink,
    )


@pytest.fixture()
def conf_dir(tmp_path: Path) -> Path:
    d = tmp_path / "net.d"
    d.mkdir()
    return d


@pytest.fixture()
def fake_exec() -> FakeExec:
    return FakeExec()
