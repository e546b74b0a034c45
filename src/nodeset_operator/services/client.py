""" Kubernetes access shared by the node set collaborators.
"""

import copy
import logging

import kubernetes
from kubernetes.client.exceptions import ApiException

from nodeset_operator.crd.registry import CRDInfo, api_coordinates
from nodeset_operator.errors import StatusConflictError
from nodeset_operator.models.deployment import DEPLOYMENT_LABEL, DeploymentSpec
from nodeset_operator.models.nodeset import KIND, NodeSetSpec

logger = logging.getLogger(__name__)

MANAGED_BY_LABEL = "dataplane.openstack.org/managed-by"
NODESET_LABEL = "openstackdataplanenodeset"


IPSET = CRDInfo("network.openstack.org", "v1beta1", "IPSet", "ipsets")
DNSDATA = CRDInfo("network.openstack.org", "v1beta1", "DNSData", "dnsdata")
DNSMASQ = CRDInfo("network.openstack.org", "v1beta1", "DNSMasq", "dnsmasqs")
BAREMETALSET = CRDInfo(
    "baremetal.openstack.org", "v1beta1", "OpenStackBaremetalSet", "openstackbaremetalsets"
)
ANSIBLEEE = CRDInfo(
    "ansibleee.openstack.org", "v1beta1", "OpenStackAnsibleEE", "openstackansibleees"
)


def load_kube_config():
    """Load in-cluster config, falling back to the local kubeconfig."""
    try:
        kubernetes.config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes config")
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()
        logger.info("Loaded local Kubernetes config")


def owner_reference(nodeset):
    """Owner reference making the API server cascade deletion from the node set."""
    return {
        "apiVersion": nodeset.api_version,
        "kind": KIND,
        "name": nodeset.name,
        "uid": nodeset.metadata.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def owned_metadata(nodeset, name, labels=None):
    """Metadata for a sub-resource owned by the node set."""
    return {
        "name": name,
        "namespace": nodeset.namespace,
        "labels": {
            MANAGED_BY_LABEL: "nodeset-operator",
            NODESET_LABEL: nodeset.name,
            **(labels or {}),
        },
        "ownerReferences": [owner_reference(nodeset)],
    }


def condition_is_true(obj, cond_type="Ready"):
    """Whether a raw custom object reports the given condition as True."""
    for cond in (obj or {}).get("status", {}).get("conditions") or []:
        if cond.get("type") == cond_type:
            return cond.get("status") == "True"
    return False


def contains(live, desired):
    """Whether every value set in ``desired`` is present in ``live``.

    Keys only the API server sets, such as defaulted spec fields, are ignored.
    Lists must match in length and element by element.
    """
    if isinstance(desired, dict):
        if not isinstance(live, dict):
            return False
        return all(key in live and contains(live[key], value) for key, value in desired.items())
    if isinstance(desired, list):
        if not isinstance(live, list) or len(live) != len(desired):
            return False
        return all(contains(have, want) for have, want in zip(live, desired))
    return live == desired


def is_settled(obj):
    """Whether the status of a custom object reflects its latest spec."""
    observed = ((obj or {}).get("status") or {}).get("observedGeneration")
    if observed is None:
        return True
    return observed >= (obj.get("metadata") or {}).get("generation", 0)


def _needs_patch(existing, desired):
    if not contains(existing.get("spec") or {}, desired.get("spec") or {}):
        return True
    live_meta = existing.get("metadata", {})
    want_meta = desired.get("metadata", {})
    live_labels = live_meta.get("labels") or {}
    for key, value in (want_meta.get("labels") or {}).items():
        if live_labels.get(key) != value:
            return True
    live_owners = {ref.get("uid") for ref in live_meta.get("ownerReferences") or []}
    for ref in want_meta.get("ownerReferences") or []:
        if ref.get("uid") not in live_owners:
            return True
    return False


def create_or_patch_custom_object(custom_api, kind: CRDInfo, namespace, body):
    """Create a custom object, or patch it when the live copy differs.

    Returns:
        (operation, object) where operation is "created", "patched" or "unchanged"
    """
    name = body["metadata"]["name"]
    body = {"apiVersion": kind.api_version, "kind": kind.kind, **body}
    try:
        existing = custom_api.get_namespaced_custom_object(
            group=kind.group,
            version=kind.version,
            namespace=namespace,
            plural=kind.plural,
            name=name,
        )
    except ApiException as e:
        if e.status != 404:
            raise
        created = custom_api.create_namespaced_custom_object(
            group=kind.group,
            version=kind.version,
            namespace=namespace,
            plural=kind.plural,
            body=body,
        )
        logger.info(f"Created {kind.kind}/{name} in {namespace}")
        return "created", created

    if not _needs_patch(existing, body):
        return "unchanged", existing

    patched = custom_api.patch_namespaced_custom_object(
        group=kind.group,
        version=kind.version,
        namespace=namespace,
        plural=kind.plural,
        name=name,
        body=body,
    )
    logger.info(f"Patched {kind.kind}/{name} in {namespace}")
    return "patched", patched


class NodeSetStore:
    """Reads node sets and deployments and writes node set status."""

    def __init__(self, custom_api=None, core_api=None):
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi()
        self.core_api = core_api or kubernetes.client.CoreV1Api()

    def get_nodeset(self, namespace, name):
        group, version, plural = api_coordinates(NodeSetSpec)
        return self.custom_api.get_namespaced_custom_object(
            group=group, version=version, namespace=namespace, plural=plural, name=name
        )

    def list_nodesets(self, namespace):
        group, version, plural = api_coordinates(NodeSetSpec)
        result = self.custom_api.list_namespaced_custom_object(
            group=group, version=version, namespace=namespace, plural=plural
        )
        return result.get("items", [])

    def replace_nodeset_status(self, body, status):
        """Write status conditioned on the resourceVersion of ``body``.

        Raises:
            StatusConflictError: the object changed since it was read
        """
        group, version, plural = api_coordinates(NodeSetSpec)
        updated = copy.deepcopy(body)
        updated["status"] = status
        try:
            return self.custom_api.replace_namespaced_custom_object_status(
                group=group,
                version=version,
                namespace=body["metadata"]["namespace"],
                plural=plural,
                name=body["metadata"]["name"],
                body=updated,
            )
        except ApiException as e:
            if e.status == 409:
                raise StatusConflictError(
                    f"Conflict writing status of {body['metadata']['name']}"
                ) from e
            raise

    def list_deployments(self, namespace):
        group, version, plural = api_coordinates(DeploymentSpec)
        result = self.custom_api.list_namespaced_custom_object(
            group=group, version=version, namespace=namespace, plural=plural
        )
        return result.get("items", [])

    def list_failed_pods(self, namespace, deployment_name):
        pods = self.core_api.list_namespaced_pod(
            namespace=namespace,
            label_selector=f"{DEPLOYMENT_LABEL}={deployment_name}",
            field_selector="status.phase=Failed",
        )
        return pods.items
