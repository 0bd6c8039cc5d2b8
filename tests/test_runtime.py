"""Tests for NamespaceHandle and RuntimeParams."""

from __future__ import annotations

from cni_protocol.runtime import NamespaceHandle, RuntimeParams


class TestNamespaceHandle:
    def test_runtime_params_copy_identity(self):
        handle = NamespaceHandle("c1", "/proc/123/ns/net")
        params = handle.runtime_params("eth1", cache_dir="/var/lib/cni")
        assert params.container_id == "c1"
        assert params.netns == "/proc/123/ns/net"
        assert params.ifname == "eth1"
        assert params.cache_dir == "/var/lib/cni"
        assert params.args == ()
        assert params.capability_args == {}

    def test_args_keep_insertion_order(self):
        handle = NamespaceHandle("c1", "/ns")
        handle.add_arg("IgnoreUnknown", "1")
        handle.add_arg("K8S_POD_NAME", "web")
        params = handle.runtime_params("eth0")
        assert params.args == (("IgnoreUnknown", "1"), ("K8S_POD_NAME", "web"))
        assert params.args_string == "IgnoreUnknown=1;K8S_POD_NAME=web"

    def test_with_args_and_capabilities_chain(self):
        handle = NamespaceHandle("c1", "/ns").with_args({"A": "1"}).with_capabilities(
            {"portMappings": [{"hostPort": 8080, "containerPort": 80}]}
        )
        params = handle.runtime_params("eth0")
        assert params.args == (("A", "1"),)
        assert params.capability_args["portMappings"][0]["hostPort"] == 8080

    def test_params_are_independent_of_later_changes(self):
        handle = NamespaceHandle("c1", "/ns")
        handle.add_capability("bandwidth", {"ingressRate": 1})
        params = handle.runtime_params("eth0")
        handle.add_capability("mac", "aa:bb")
        assert "mac" not in params.capability_args


class TestRuntimeParams:
    def test_empty_args_string(self):
        assert RuntimeParams(container_id="c", netns="/n", ifname="lo").args_string == ""
