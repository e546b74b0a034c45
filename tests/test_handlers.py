import logging
import types

import pytest
from conftest import NAMESPACE, FakeStore

from nodeset_operator.correlator import NodeSetKey, ReverseIndex
from nodeset_operator.handlers import nodeset_handler
from nodeset_operator.models.nodeset import NodeSetSpec


class FakePlugin:
    def __init__(self, store):
        self.index = ReverseIndex()
        self.store = store
        self.enqueued = []

    def enqueue(self, keys):
        self.enqueued.extend(keys)


def failed_pod(name, reason="Error", message="ansible-runner exited 2"):
    return types.SimpleNamespace(
        metadata=types.SimpleNamespace(name=name),
        status=types.SimpleNamespace(reason=reason, message=message),
    )


def deployment(name="deploy-1", nodesets=("edge-a",)):
    return {
        "metadata": {"name": name, "namespace": NAMESPACE},
        "spec": {"nodeSets": list(nodesets)},
    }


@pytest.fixture
def plugin(monkeypatch):
    plugin = FakePlugin(FakeStore())
    monkeypatch.setattr(nodeset_handler, "_plugin", lambda: plugin)
    return plugin


def test_deployment_event_scans_failed_pods(plugin, caplog):
    plugin.store.failed_pods["deploy-1"] = [failed_pod("deploy-1-edge-a-xyz")]

    with caplog.at_level(logging.INFO, logger="nodeset_operator.correlator"):
        nodeset_handler.deployment_event(event={"type": "MODIFIED"}, body=deployment())

    assert plugin.enqueued == [NodeSetKey(NAMESPACE, "edge-a")]
    assert "deploy-1-edge-a-xyz" in caplog.text
    assert "ansible-runner exited 2" in caplog.text


def test_deployment_event_enqueues_when_pod_scan_fails(plugin):
    class BrokenStore:
        def list_failed_pods(self, namespace, deployment_name):
            raise RuntimeError("api down")

    plugin.store = BrokenStore()

    nodeset_handler.deployment_event(
        event={"type": "MODIFIED"}, body=deployment(nodesets=["edge-a", "edge-b"])
    )

    assert set(plugin.enqueued) == {
        NodeSetKey(NAMESPACE, "edge-a"),
        NodeSetKey(NAMESPACE, "edge-b"),
    }


def test_deleted_deployment_skips_pod_scan(plugin):
    calls = []
    plugin.store.list_failed_pods = lambda namespace, name: calls.append(name) or []

    nodeset_handler.deployment_event(event={"type": "DELETED"}, body=deployment())

    assert plugin.enqueued == [NodeSetKey(NAMESPACE, "edge-a")]
    assert calls == []


def test_configmap_event_uses_reverse_index(plugin):
    plugin.index.update(
        NAMESPACE,
        "edge-a",
        NodeSetSpec.model_validate(
            {"nodeTemplate": {"ansible": {"ansibleVarsFrom": [{"configMapRef": {"name": "net-config"}}]}}}
        ),
    )

    nodeset_handler.configmap_event(
        body={"metadata": {"name": "net-config", "namespace": NAMESPACE}}
    )

    assert plugin.enqueued == [NodeSetKey(NAMESPACE, "edge-a")]
