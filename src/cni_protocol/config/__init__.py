"""Network configuration subsystem -- conflist files into plugin chains."""

from cni_protocol.config.loader import (
    LOOPBACK_CHAIN_BYTES,
    LOOPBACK_IFNAME,
    list_config_files,
    load_all,
    loopback_binding,
    parse_chain,
    parse_plugin_conf,
    read_chain_file,
)
from cni_protocol.config.models import NetworkBinding, NetworkChain, PluginConfig
from cni_protocol.config.validator import (
    validate_chain,
    validate_chain_file,
    validate_config_directory,
)

__all__ = [
    "LOOPBACK_CHAIN_BYTES",
    "LOOPBACK_IFNAME",
    "NetworkBinding",
    "NetworkChain",
    "PluginConfig",
    "list_config_files",
    "load_all",
    "loopback_binding",
    "parse_chain",
    "parse_plugin_conf",
    "read_chain_file",
    "validate_chain",
    "validate_chain_file",
    "validate_config_directory",
]
