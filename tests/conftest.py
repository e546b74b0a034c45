import copy
import types
from datetime import datetime, timedelta, timezone

import pytest
from kubernetes.client.exceptions import ApiException

from nodeset_operator.aggregator import DeploymentStatusAggregator
from nodeset_operator.config import OperatorConfig
from nodeset_operator.correlator import ReverseIndex
from nodeset_operator.errors import SecretWaitingError, StatusConflictError
from nodeset_operator.orchestrator import DependencyOrchestrator
from nodeset_operator.reconciler import Reconciler
from nodeset_operator.services.dns_manager import DNSResult

NAMESPACE = "openstack"
NODESET = "edpm-compute"
START = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class FakeStore:
    """In-memory stand-in for NodeSetStore."""

    def __init__(self, nodeset=None, deployments=None):
        self.nodeset = nodeset
        self.deployments = deployments or []
        self.status_writes = []
        self.conflict = False
        self.vanish_on_write = False
        self.failed_pods = {}

    def get_nodeset(self, namespace, name):
        if self.nodeset is None:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(self.nodeset)

    def replace_nodeset_status(self, body, status):
        if self.conflict:
            raise StatusConflictError(f"Conflict writing status of {body['metadata']['name']}")
        if self.vanish_on_write:
            raise ApiException(status=404, reason="Not Found")
        self.status_writes.append(copy.deepcopy(status))
        self.nodeset = copy.deepcopy(body)
        self.nodeset["status"] = copy.deepcopy(status)
        version = int(self.nodeset["metadata"].get("resourceVersion", "1"))
        self.nodeset["metadata"]["resourceVersion"] = str(version + 1)
        return self.nodeset

    def list_deployments(self, namespace):
        return copy.deepcopy(self.deployments)

    def list_failed_pods(self, namespace, deployment_name):
        return self.failed_pods.get(deployment_name, [])


class FakeServices:
    def __init__(self):
        self.error = None
        self.calls = []

    def ensure(self, namespace, services):
        self.calls.append((namespace, list(services)))
        if self.error is not None:
            raise self.error


class FakeIPSets:
    def __init__(self):
        self.ready = True
        self.error = None
        self.calls = 0
        self.reservations = {
            "compute-0": [
                {
                    "network": "ctlplane",
                    "address": "192.168.122.100",
                    "dnsDomain": "ctlplane.example.com",
                }
            ]
        }

    def ensure(self, nodeset):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reservations, self.ready


class FakeDNS:
    def __init__(self):
        self.calls = 0
        self.result = DNSResult(
            ready=True,
            cluster_addresses=["172.30.0.10"],
            server_addresses=["192.168.122.80"],
            ctlplane_search_domain="ctlplane.example.com",
            hostnames={"compute-0": {"ctlplane": "compute-0.ctlplane.example.com"}},
            all_ips={"compute-0": {"ctlplane": "192.168.122.100"}},
        )

    def ensure(self, nodeset, reservations):
        self.calls += 1
        return self.result


class FakeSecrets:
    def __init__(self):
        self.missing = False
        self.calls = []

    def verify(self, namespace, name, required_keys, timeout):
        self.calls.append((namespace, name, list(required_keys), timeout))
        if self.missing:
            raise SecretWaitingError(name, delay=timeout)


class FakeIdentity:
    def __init__(self):
        self.in_progress = False
        self.calls = 0

    def create_or_patch(self, nodeset):
        self.calls += 1
        return self.in_progress


class FakeBaremetal:
    def __init__(self):
        self.ready = True
        self.calls = 0

    def deploy(self, nodeset, reservations, server_addresses):
        self.calls += 1
        return self.ready


class FakeInventory:
    def __init__(self):
        self.error = None
        self.calls = 0

    def generate(self, nodeset, reservations, server_addresses, images):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return f"dataplanenodeset-{nodeset.name}"


def nodeset_body(
    name=NODESET,
    namespace=NAMESPACE,
    generation=1,
    spec=None,
    status=None,
    deletion_timestamp=None,
):
    metadata = {
        "name": name,
        "namespace": namespace,
        "uid": f"uid-{name}",
        "generation": generation,
        "resourceVersion": "1",
    }
    if deletion_timestamp:
        metadata["deletionTimestamp"] = deletion_timestamp
    return {
        "apiVersion": "dataplane.openstack.org/v1beta1",
        "kind": "OpenStackDataPlaneNodeSet",
        "metadata": metadata,
        "spec": spec
        if spec is not None
        else {
            "preProvisioned": True,
            "services": ["bootstrap", "configure-network"],
            "nodeTemplate": {
                "ansibleSSHPrivateKeySecret": "dataplane-ansible-ssh-private-key-secret",
                "ansible": {"ansibleUser": "cloud-admin"},
            },
            "nodes": {
                "compute-0": {
                    "hostName": "compute-0",
                    "networks": [{"name": "ctlplane", "subnetName": "subnet1"}],
                }
            },
        },
        "status": status or {},
    }


def deployment_body(
    name,
    nodesets=(NODESET,),
    deployed=False,
    ready_status=None,
    ready_severity="",
    transition=None,
    created=None,
    nodeset_hashes=None,
    config_map_hashes=None,
    secret_hashes=None,
    nodeset_conditions=None,
    deleting=False,
):
    conditions = []
    if ready_status is not None:
        conditions.append(
            {
                "type": "Ready",
                "status": ready_status,
                "severity": ready_severity,
                "reason": "Ready" if ready_status == "True" else "Error",
                "message": name,
                "lastTransitionTime": transition,
            }
        )
    metadata = {
        "name": name,
        "namespace": NAMESPACE,
        "creationTimestamp": created or "2024-05-01T10:00:00Z",
    }
    if deleting:
        metadata["deletionTimestamp"] = "2024-05-01T12:00:00Z"
    return {
        "apiVersion": "dataplane.openstack.org/v1beta1",
        "kind": "OpenStackDataPlaneDeployment",
        "metadata": metadata,
        "spec": {"nodeSets": list(nodesets)},
        "status": {
            "conditions": conditions,
            "deployed": deployed,
            "nodeSetHashes": nodeset_hashes or {},
            "configMapHashes": config_map_hashes or {},
            "secretHashes": secret_hashes or {},
            "nodeSetConditions": nodeset_conditions or {},
        },
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return OperatorConfig(secret_verify_timeout=5.0, identity_requeue_delay=2.0)


@pytest.fixture
def collaborators():
    return types.SimpleNamespace(
        services=FakeServices(),
        ipsets=FakeIPSets(),
        dns=FakeDNS(),
        secrets=FakeSecrets(),
        identity=FakeIdentity(),
        baremetal=FakeBaremetal(),
        inventory=FakeInventory(),
    )


@pytest.fixture
def orchestrator(collaborators, config, clock):
    return DependencyOrchestrator(
        services=collaborators.services,
        ipsets=collaborators.ipsets,
        dns=collaborators.dns,
        secrets=collaborators.secrets,
        identity=collaborators.identity,
        baremetal=collaborators.baremetal,
        inventory=collaborators.inventory,
        config=config,
        clock=clock,
    )


@pytest.fixture
def store():
    return FakeStore(nodeset=nodeset_body())


@pytest.fixture
def index():
    return ReverseIndex()


@pytest.fixture
def reconciler(store, orchestrator, index, clock):
    return Reconciler(
        store=store,
        orchestrator=orchestrator,
        aggregator=DeploymentStatusAggregator(store),
        index=index,
        clock=clock,
    )
