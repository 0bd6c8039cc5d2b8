"""Network configuration loading from a conf directory.

``.conflist`` files hold a chain of plugins; ``.conf``/``.json`` files hold
either a single plugin or a chain.  Every plugin keeps the exact source
bytes of its JSON object.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from cni_protocol.config.models import NetworkBinding, NetworkChain, PluginConfig
from cni_protocol.errors import ConfigError
from cni_protocol.settings import DEFAULT_EXTENSIONS

logger = logging.getLogger(__name__)

LOOPBACK_IFNAME = "lo"
LOOPBACK_CHAIN_BYTES = b"""{
    "cniVersion": "0.3.1",
    "name": "cni-loopback",
    "plugins": [{
        "type": "loopback"
    }]
}"""

_WS = re.compile(r"[ \t\n\r]*")


def list_config_files(
    directory: str | Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS,
) -> list[Path]:
    """Return files in *directory* whose extension is allowed, sorted by name."""
    directory = Path(directory)
    allowed = {ext.lstrip(".") for ext in extensions}
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        raise ConfigError(f"cannot read config directory {directory}: {exc}") from exc

    return sorted(
        (p for p in entries if p.is_file() and p.suffix.lstrip(".") in allowed),
        key=lambda p: p.name,
    )


def _load_document(raw: bytes) -> tuple[str, dict[str, Any]]:
    try:
        text = raw.decode("utf-8-sig")
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigError(f"error parsing configuration: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object")
    return text, data


def _required_text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"error parsing configuration: missing {key!r}")
    return value


def _disable_check(data: dict[str, Any]) -> bool:
    value = data.get("disableCheck", False)
    if not isinstance(value, bool):
        raise ConfigError(f"error parsing configuration: invalid disableCheck value {value!r}")
    return value


def _skip(text: str, idx: int) -> int:
    return _WS.match(text, idx).end()


def _array_spans(
    text: str, idx: int, decoder: json.JSONDecoder,
) -> tuple[list[str], int]:
    spans: list[str] = []
    idx = _skip(text, idx + 1)
    if text[idx:idx + 1] == "]":
        return spans, idx + 1
    while True:
        start = idx
        _, idx = decoder.raw_decode(text, start)
        spans.append(text[start:idx])
        idx = _skip(text, idx)
        sep = text[idx:idx + 1]
        if sep == "]":
            return spans, idx + 1
        if sep != ",":
            raise ValueError(f"unexpected {sep!r} at offset {idx}")
        idx = _skip(text, idx + 1)


def _plugin_spans(text: str) -> list[str]:
    """Exact source text of each element of the top-level ``plugins`` array.

    Only called on text that already parsed as a JSON object.  A repeated
    ``plugins`` key resolves to the last occurrence, like ``json.loads``.
    """
    decoder = json.JSONDecoder()
    spans: list[str] = []
    idx = _skip(text, 0)
    if text[idx:idx + 1] != "{":
        raise ValueError("expected a JSON object")
    idx = _skip(text, idx + 1)
    if text[idx:idx + 1] == "}":
        return spans
    while True:
        key, idx = decoder.raw_decode(text, idx)
        idx = _skip(text, idx)
        if text[idx:idx + 1] != ":":
            raise ValueError(f"expected ':' at offset {idx}")
        idx = _skip(text, idx + 1)
        if key == "plugins" and text[idx:idx + 1] == "[":
            spans, idx = _array_spans(text, idx, decoder)
        else:
            _, idx = decoder.raw_decode(text, idx)
        idx = _skip(text, idx)
        sep = text[idx:idx + 1]
        if sep == "}":
            return spans
        if sep != ",":
            raise ValueError(f"unexpected {sep!r} at offset {idx}")
        idx = _skip(text, idx + 1)


def parse_chain(raw: bytes) -> NetworkChain:
    """Parse a conflist document into a NetworkChain."""
    text, data = _load_document(raw)
    name = _required_text(data, "name")
    version = _required_text(data, "cniVersion")

    disable_check = _disable_check(data)

    elements = data.get("plugins")
    if not isinstance(elements, list):
        raise ConfigError(f"error parsing configuration list {name!r}: no 'plugins' key")
    if not elements:
        raise ConfigError(f"error parsing configuration list {name!r}: no plugins in list")

    try:
        spans = _plugin_spans(text)
    except ValueError as exc:
        raise ConfigError(f"error parsing configuration list {name!r}: {exc}") from exc

    plugins: list[PluginConfig] = []
    for index, (element, span) in enumerate(zip(elements, spans)):
        if not isinstance(element, dict):
            raise ConfigError(
                f"error parsing configuration list {name!r}: plugin #{index} "
                "is not a JSON object"
            )
        try:
            plugins.append(PluginConfig.from_bytes(span.encode("utf-8")))
        except ValueError as exc:
            raise ConfigError(
                f"error parsing configuration list {name!r}: plugin #{index}: {exc}"
            ) from exc

    return NetworkChain(
        name=name,
        cni_version=version,
        disable_check=disable_check,
        plugins=tuple(plugins),
        raw=raw,
    )


def parse_plugin_conf(raw: bytes) -> NetworkChain:
    """Wrap a single-plugin ``.conf`` document into a one-element chain.

    A top-level ``disableCheck`` applies to the chain, as in a conflist.
    """
    text, data = _load_document(raw)
    name = _required_text(data, "name")
    version = _required_text(data, "cniVersion")
    try:
        plugin = PluginConfig.from_bytes(text.encode("utf-8"))
    except ValueError as exc:
        raise ConfigError(f"error parsing configuration {name!r}: {exc}") from exc
    return NetworkChain(
        name=name,
        cni_version=version,
        disable_check=_disable_check(data),
        plugins=(plugin,),
        raw=raw,
    )


def read_chain_file(path: str | Path) -> NetworkChain:
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ConfigError(f"cannot read configuration {path}: {exc}") from exc

    if path.suffix == ".conflist":
        return parse_chain(raw)
    _, data = _load_document(raw)
    if "plugins" in data:
        return parse_chain(raw)
    return parse_plugin_conf(raw)


def load_all(
    directory: str | Path,
    *,
    prefix: str = "eth",
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    max_conf_num: int = 0,
) -> list[NetworkBinding]:
    """Load every network in *directory* and bind it to ``prefix + N``.

    N is the file's 1-based position in the sorted listing.  Loading stops
    once *max_conf_num* networks are collected (0 means no limit).
    """
    bindings: list[NetworkBinding] = []
    for position, path in enumerate(list_config_files(directory, extensions), start=1):
        if max_conf_num and len(bindings) >= max_conf_num:
            logger.debug("Reached max_conf_num=%d, skipping %s", max_conf_num, path)
            break
        chain = read_chain_file(path)
        ifname = f"{prefix}{position}"
        logger.debug(
            "Loaded network %s (%d plugin(s)) from %s as %s",
            chain.name, len(chain.plugins), path, ifname,
        )
        bindings.append(NetworkBinding(chain=chain, ifname=ifname))

    logger.info("Loaded %d network(s) from %s", len(bindings), directory)
    return bindings


def loopback_binding() -> NetworkBinding:
    return NetworkBinding(chain=parse_chain(LOOPBACK_CHAIN_BYTES), ifname=LOOPBACK_IFNAME)
