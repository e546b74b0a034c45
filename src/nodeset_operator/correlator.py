""" Mapping of watch events on related objects to node set keys.
"""

import logging
import threading
from collections import defaultdict
from typing import Dict, NamedTuple, Set

from nodeset_operator.models.deployment import DeploymentSpec
from nodeset_operator.models.nodeset import KIND as NODESET_KIND, NodeSetSpec

logger = logging.getLogger(__name__)

CONFIGMAP = "ConfigMap"
SECRET = "Secret"
DEPLOYMENT = "OpenStackDataPlaneDeployment"
DNSMASQ = "DNSMasq"
OWNED = "Owned"


class NodeSetKey(NamedTuple):
    namespace: str
    name: str


def _ansible_sections(spec: NodeSetSpec):
    yield spec.node_template.ansible
    for _, node in sorted(spec.nodes.items()):
        yield node.ansible


def config_map_references(spec: NodeSetSpec):
    """Names of the ConfigMaps a node set reads ansible variables from."""
    names = []
    for ansible in _ansible_sections(spec):
        for source in ansible.ansible_vars_from:
            ref = source.config_map_ref
            if ref is not None and ref.name and ref.name not in names:
                names.append(ref.name)
    return names


def secret_references(spec: NodeSetSpec):
    """Names of the Secrets a node set depends on, SSH key Secret first."""
    names = [spec.node_template.ansible_ssh_private_key_secret]
    for ansible in _ansible_sections(spec):
        for source in ansible.ansible_vars_from:
            ref = source.secret_ref
            if ref is not None and ref.name and ref.name not in names:
                names.append(ref.name)
    return names


class ReverseIndex:
    """Per namespace map from referenced object names to node set names.

    Safe to use from the kopf event handlers and the worker threads at once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._refs: Dict[str, Dict[str, Dict[str, Set[str]]]] = {
            CONFIGMAP: defaultdict(lambda: defaultdict(set)),
            SECRET: defaultdict(lambda: defaultdict(set)),
        }
        self._nodesets: Dict[str, Set[str]] = defaultdict(set)

    def _drop(self, namespace, name):
        for by_namespace in self._refs.values():
            refs = by_namespace[namespace]
            for ref_name in list(refs):
                refs[ref_name].discard(name)
                if not refs[ref_name]:
                    del refs[ref_name]

    def update(self, namespace, name, spec: NodeSetSpec):
        """Replace the references recorded for one node set."""
        with self._lock:
            self._drop(namespace, name)
            for ref_name in config_map_references(spec):
                self._refs[CONFIGMAP][namespace][ref_name].add(name)
            for ref_name in secret_references(spec):
                self._refs[SECRET][namespace][ref_name].add(name)
            self._nodesets[namespace].add(name)

    def remove(self, namespace, name):
        with self._lock:
            self._drop(namespace, name)
            self._nodesets[namespace].discard(name)

    def lookup(self, kind, namespace, ref_name) -> Set[str]:
        with self._lock:
            return set(self._refs[kind][namespace].get(ref_name, ()))

    def nodesets_in(self, namespace) -> Set[str]:
        with self._lock:
            return set(self._nodesets[namespace])


def _metadata(obj):
    return obj.get("metadata") or {}


def _owner_requests(obj):
    meta = _metadata(obj)
    return {
        NodeSetKey(meta.get("namespace"), ref["name"])
        for ref in meta.get("ownerReferences") or []
        if ref.get("kind") == NODESET_KIND and ref.get("name")
    }


def requests_for(kind, obj, index: ReverseIndex) -> Set[NodeSetKey]:
    """ Node sets to reconcile after a change to a related object.

    Args:
        kind: One of ConfigMap, Secret, OpenStackDataPlaneDeployment, DNSMasq
            or Owned
        obj: The changed object as a dict
        index: Reverse index of ConfigMap and Secret references

    Returns:
        Set of NodeSetKey
    """
    meta = _metadata(obj)
    namespace = meta.get("namespace")

    if kind in (CONFIGMAP, SECRET):
        keys = {
            NodeSetKey(namespace, name)
            for name in index.lookup(kind, namespace, meta.get("name"))
        }
        if kind == SECRET:
            # generated inventory Secrets are owned by their node set
            keys |= _owner_requests(obj)
        return keys

    if kind == DEPLOYMENT:
        spec = DeploymentSpec.model_validate(obj.get("spec") or {})
        return {NodeSetKey(namespace, name) for name in spec.node_sets}

    if kind == DNSMASQ:
        return {NodeSetKey(namespace, name) for name in index.nodesets_in(namespace)}

    if kind == OWNED:
        return _owner_requests(obj)

    raise ValueError(f"Unknown watched kind: {kind}")


def log_failed_job_pods(store, namespace, deployment_name):
    """Log the failed execution pods of a deployment. Never raises."""
    try:
        pods = store.list_failed_pods(namespace, deployment_name)
    except Exception as e:
        logger.warning(f"Unable to list pods of deployment {deployment_name}: {e}")
        return []

    names = []
    for pod in pods:
        name = pod.metadata.name
        names.append(name)
        reason = getattr(pod.status, "reason", None) or "unknown reason"
        message = getattr(pod.status, "message", None) or ""
        logger.info(
            f"Execution pod {name} of deployment {deployment_name} failed due to "
            f"{reason} with message: {message}"
        )
    return names
