"""Tests for the CNI facade."""

from __future__ import annotations

import json
import textwrap
import threading
from pathlib import Path

import pytest
from conftest import PLUGIN_DIR, make_test_cni, write_config

from cni_protocol import CNI, NetworkNotReadyError, OperationReport
from cni_protocol.errors import ChainExecutionError
from cni_protocol.execution import ADD, CHECK, DEL, FakeExec, FakeResponse, RawExec
from cni_protocol.telemetry import InMemoryTelemetrySink

NET1 = {
    "cniVersion": "0.4.0",
    "name": "net1",
    "plugins": [{"type": "bridge", "bridge": "cni0", "ipam": {"type": "host-local"}}],
}


def _two_networks(conf_dir: Path) -> None:
    write_config(conf_dir, "10-net1.conflist", NET1)
    write_config(conf_dir, "20-net2.conflist", {
        "cniVersion": "1.0.0",
        "name": "net2",
        "plugins": [{"type": "macvlan"}, {"type": "tuning"}],
    })


class TestRegistry:
    def test_load_default_config(self, conf_dir: Path):
        _two_networks(conf_dir)
        cni = make_test_cni(conf_dir, max_conf_num=0, prefix="vethcni")
        assert cni.load_default_config() == 2
        assert [(n.name, n.ifname) for n in cni.networks] == [("net1", "vethcni1"), ("net2", "vethcni2")]

    def test_reload_replaces_bindings(self, conf_dir: Path):
        _two_networks(conf_dir)
        cni = make_test_cni(conf_dir, max_conf_num=0)
        cni.load_default_config()
        cni.add_loopback()
        (conf_dir / "20-net2.conflist").unlink()
        cni.load_default_config()
        assert [n.name for n in cni.networks] == ["net1"]

    def test_add_loopback_is_idempotent(self):
        cni = make_test_cni()
        assert cni.add_loopback() is True
        assert cni.add_loopback() is False
        assert [n.ifname for n in cni.networks] == ["lo"]

    def test_networks_snapshot_is_immutable(self):
        cni = make_test_cni()
        snapshot = cni.networks
        cni.add_loopback()
        assert snapshot == ()
        assert len(cni.networks) == 1

    def test_concurrent_loopback_adds_keep_one_binding(self):
        cni = make_test_cni()
        threads = [threading.Thread(target=cni.add_loopback) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cni.networks) == 1

    def test_default_executor_is_raw(self):
        assert isinstance(CNI().executor, RawExec)


class TestStatus:
    def test_fails_when_not_enough_networks(self):
        cni = make_test_cni()
        with pytest.raises(NetworkNotReadyError):
            cni.status()

    def test_idempotent(self):
        cni = make_test_cni()
        cni.add_loopback()
        assert cni.status() is None
        assert cni.status() is None

    def test_min_networks_setting(self):
        cni = make_test_cni(min_networks=2)
        cni.add_loopback()
        with pytest.raises(NetworkNotReadyError) as exc_info:
            cni.status()
        assert exc_info.value.loaded == 1
        assert exc_info.value.required == 2

    def test_setup_reports_not_ready_without_running_plugins(self, fake_exec: FakeExec):
        cni = make_test_cni(executor=fake_exec)
        report = cni.setup("c1", "/proc/123/ns/net")
        assert not report.ok
        assert isinstance(report.error, NetworkNotReadyError)
        assert report.outcomes == []
        assert fake_exec.calls == []


class TestSetup:
    def test_loopback_only(self, fake_exec: FakeExec):
        cni = make_test_cni(executor=fake_exec)
        cni.add_loopback()
        report = cni.setup("c1", "/proc/123/ns/net")

        assert report.ok
        assert len(fake_exec.calls) == 1
        env = fake_exec.calls[0].env
        assert env["CNI_COMMAND"] == ADD
        assert env["CNI_IFNAME"] == "lo"
        assert env["CNI_CONTAINERID"] == "c1"
        assert env["CNI_NETNS"] == "/proc/123/ns/net"
        assert fake_exec.calls[0].plugin_type == "loopback"

    def test_end_to_end_single_bridge(self, conf_dir: Path):
        write_config(conf_dir, "10-net1.conflist", NET1)
        fake = FakeExec(installed={"/usr/libexec/cni": set(), PLUGIN_DIR: {"bridge"}})
        cni = make_test_cni(conf_dir, executor=fake, plugin_dirs=["/usr/libexec/cni", PLUGIN_DIR])
        cni.load_default_config()

        report = cni.setup("c1", "/proc/123/ns/net")

        assert report.ok
        assert len(fake.calls) == 1
        call = fake.calls[0]
        assert call.plugin_path == f"{PLUGIN_DIR}/bridge"
        assert call.env["CNI_COMMAND"] == "ADD"
        assert call.env["CNI_CONTAINERID"] == "c1"
        assert call.env["CNI_NETNS"] == "/proc/123/ns/net"
        assert call.env["CNI_IFNAME"] == "eth1"
        assert call.env["CNI_PATH"] == f"/usr/libexec/cni:{PLUGIN_DIR}"
        expected = dict(NET1["plugins"][0], name="net1", cniVersion="0.4.0")
        assert call.config == expected
        assert "prevResult" not in call.config
        assert report.results["eth1"].interfaces == [{"name": "eth1"}]

    def test_first_failure_short_circuits_bindings(self, conf_dir: Path, fake_exec: FakeExec):
        _two_networks(conf_dir)
        fake_exec.respond("bridge", ADD, FakeResponse.error(11, "no ipam"))
        cni = make_test_cni(conf_dir, executor=fake_exec, max_conf_num=0)
        cni.load_default_config()
        cni.add_loopback()

        report = cni.setup("c1", "/ns")

        assert not report.ok
        assert [o.network for o in report.outcomes] == ["net1"]
        assert isinstance(report.outcomes[0].error, ChainExecutionError)
        assert [c.plugin_type for c in fake_exec.calls] == ["bridge"]

    def test_args_and_capabilities(self, conf_dir: Path, fake_exec: FakeExec):
        write_config(conf_dir, "10-pm.conflist", {
            "cniVersion": "0.4.0",
            "name": "pm",
            "plugins": [{"type": "portmap", "capabilities": {"portMappings": True}}],
        })
        cni = make_test_cni(conf_dir, executor=fake_exec)
        cni.load_default_config()
        mappings = [{"hostPort": 8080, "containerPort": 80, "protocol": "tcp"}]

        cni.setup("c1", "/ns", args={"IgnoreUnknown": "1"}, capabilities={"portMappings": mappings})

        call = fake_exec.calls[0]
        assert call.env["CNI_ARGS"] == "IgnoreUnknown=1"
        assert call.config["runtimeConfig"] == {"portMappings": mappings}

    def test_emits_operation_event(self, fake_exec: FakeExec):
        sink = InMemoryTelemetrySink()
        cni = make_test_cni(executor=fake_exec, sink=sink)
        cni.add_loopback()
        cni.setup("c1", "/ns")
        (event,) = sink.named("network.setup")
        assert event.attributes["networks"] == ["cni-loopback"]
        assert event.attributes["ok"] is True


class TestRemove:
    def test_best_effort_across_bindings(self, conf_dir: Path, fake_exec: FakeExec):
        _two_networks(conf_dir)
        fake_exec.respond("bridge", DEL, FakeResponse(stderr=b"device busy", exit_status=1))
        cni = make_test_cni(conf_dir, executor=fake_exec, max_conf_num=0)
        cni.load_default_config()
        cni.add_loopback()

        report = cni.remove("c1", "/ns")

        assert isinstance(report, OperationReport)
        assert not report.ok
        assert [o.network for o in report.outcomes] == ["net1", "net2", "cni-loopback"]
        assert [o.ok for o in report.outcomes] == [False, True, True]
        assert len(report.errors) == 1
        assert [c.plugin_type for c in fake_exec.calls] == ["bridge", "tuning", "macvlan", "loopback"]
        assert all(c.command == DEL for c in fake_exec.calls)

    def test_remove_not_ready(self, fake_exec: FakeExec):
        report = make_test_cni(executor=fake_exec).remove("c1", "/ns")
        assert isinstance(report.error, NetworkNotReadyError)
        assert fake_exec.calls == []


class TestCheck:
    def test_aggregates_failures(self, conf_dir: Path, fake_exec: FakeExec):
        _two_networks(conf_dir)
        fake_exec.respond("macvlan", CHECK, FakeResponse.error(1, "master down"))
        cni = make_test_cni(conf_dir, executor=fake_exec, max_conf_num=0)
        cni.load_default_config()

        report = cni.check("c1", "/ns")

        assert not report.ok
        assert [o.ok for o in report.outcomes] == [True, False]
        assert report.outcomes[1].check_failures[0].plugin_type == "macvlan"
        assert len(fake_exec.calls) == 3

    def test_healthy(self, fake_exec: FakeExec):
        cni = make_test_cni(executor=fake_exec)
        cni.add_loopback()
        assert cni.check("c1", "/ns").ok


class TestFromSettingsFile:
    def test_builds_from_yaml(self, tmp_path: Path, conf_dir: Path, monkeypatch):
        for var in ("CNI_PROTOCOL_PLUGIN_DIRS", "CNI_PROTOCOL_CONF_DIR", "CNI_PROTOCOL_CACHE_DIR"):
            monkeypatch.delenv(var, raising=False)
        write_config(conf_dir, "10-net1.conflist", NET1)
        settings_path = tmp_path / "cni.yaml"
        settings_path.write_text(textwrap.dedent(f"""\
            plugin_dirs: [{PLUGIN_DIR}]
            conf_dir: {conf_dir}
            prefix: vethcni
        """), encoding="utf-8")
        fake = FakeExec()

        cni = CNI.from_settings_file(settings_path, executor=fake)
        cni.load_default_config()
        cni.setup("c1", "/ns")

        assert cni.networks[0].ifname == "vethcni1"
        assert json.loads(fake.calls[0].stdin)["name"] == "net1"

    def test_validate_config(self, conf_dir: Path):
        write_config(conf_dir, "10-net1.conflist", NET1)
        assert make_test_cni(conf_dir).validate_config() == (1, [])
