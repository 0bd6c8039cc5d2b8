"""Network config validator -- catches problems before any plugin runs.

Validation checks:
  - Chain name and cniVersion present
  - cniVersion looks like a semantic version
  - Plugin types are bare names, not paths
  - Stored plugin configs do not carry a stale prevResult
  - No duplicate network names across a directory
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from cni_protocol.config.loader import list_config_files, read_chain_file
from cni_protocol.config.models import NetworkChain
from cni_protocol.errors import ConfigError
from cni_protocol.settings import DEFAULT_EXTENSIONS

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")


def validate_chain(chain: NetworkChain) -> list[str]:
    """Return a list of problems; empty means the chain is usable."""
    errors: list[str] = []
    if not _VERSION_RE.match(chain.cni_version):
        errors.append(
            f"Network {chain.name!r}: cniVersion '{chain.cni_version}' doesn't "
            "look like a version number"
        )

    for index, plugin in enumerate(chain.plugins):
        if "/" in plugin.plugin_type or plugin.plugin_type in (".", ".."):
            errors.append(
                f"Network {chain.name!r}: plugin #{index} type "
                f"'{plugin.plugin_type}' must be a bare binary name"
            )
        if "prevResult" in plugin.to_dict():
            errors.append(
                f"Network {chain.name!r}: plugin #{index} config already "
                "contains 'prevResult'"
            )
    return errors


def validate_chain_file(path: Path) -> tuple[NetworkChain | None, list[str]]:
    """Validate a single config file.

    Returns a tuple of (chain_or_none, list_of_errors).
    """
    try:
        chain = read_chain_file(path)
    except ConfigError as exc:
        return None, [f"{path}: Failed to load -- {exc}"]
    return chain, [f"{path}: {err}" for err in validate_chain(chain)]


def validate_config_directory(
    directory: str | Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS,
) -> tuple[int, list[str]]:
    """Validate every config file in a directory.

    Returns a tuple of (valid_network_count, list_of_errors).
    """
    directory = Path(directory)
    try:
        paths = list_config_files(directory, extensions)
    except ConfigError as exc:
        return 0, [str(exc)]
    if not paths:
        return 0, [f"No network configuration files found in {directory}"]

    errors: list[str] = []
    seen: dict[str, Path] = {}
    loaded = 0
    for path in paths:
        chain, file_errors = validate_chain_file(path)
        if file_errors:
            errors.extend(file_errors)
            continue

        assert chain is not None
        loaded += 1
        if chain.name in seen:
            errors.append(
                f"{path}: Duplicate network name '{chain.name}' -- "
                f"already defined in {seen[chain.name]}"
            )
        else:
            seen[chain.name] = path

    for err in errors:
        logger.warning("%s", err)
    return loaded, errors
