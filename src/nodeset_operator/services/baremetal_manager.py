""" Bare-metal provisioning requests for nodes that are not pre-provisioned.
"""

import copy
import logging

import kubernetes

from nodeset_operator.services.client import (
    BAREMETALSET,
    condition_is_true,
    create_or_patch_custom_object,
    is_settled,
    owned_metadata,
)
from nodeset_operator.services.ipset_manager import node_hostname

logger = logging.getLogger(__name__)


def management_address(nodeset, node, reservations):
    """Reservation address of the node on its management network."""
    network = (
        node.management_network or nodeset.spec.node_template.management_network
    ).lower()
    for res in reservations:
        if res.get("network", "").lower() == network:
            return res.get("address")
    return None


def baremetal_set_spec(nodeset, reservations, server_addresses):
    """Build the OpenStackBaremetalSet spec from the node set template."""
    spec = copy.deepcopy(nodeset.spec.baremetal_set_template)
    template_hosts = spec.pop("baremetalHosts", None) or {}
    hosts = {}

    for name, node in sorted(nodeset.spec.nodes.items()):
        hostname = node_hostname(name, node)
        host = dict(template_hosts.get(hostname) or template_hosts.get(name) or {})
        address = management_address(nodeset, node, reservations.get(name, []))
        if address:
            host["ctlPlaneIP"] = address
        if node.user_data:
            host["userData"] = node.user_data
        if node.network_data:
            host["networkData"] = node.network_data
        if node.preprovisioning_network_data_name:
            host["preprovisioningNetworkDataName"] = node.preprovisioning_network_data_name
        hosts[hostname] = host

    spec["baremetalHosts"] = hosts
    if server_addresses:
        spec["bootstrapDns"] = list(server_addresses)
    return spec


class BareMetalProvisioner:
    """Requests provisioning of the node set hosts through an OpenStackBaremetalSet."""

    def __init__(self, custom_api=None):
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi()

    def deploy(self, nodeset, reservations, server_addresses):
        """Create or patch the OpenStackBaremetalSet.

        Returns:
            True once the provisioning engine reports the set as Ready
        """
        body = {
            "metadata": owned_metadata(nodeset, nodeset.name),
            "spec": baremetal_set_spec(nodeset, reservations, server_addresses),
        }
        _, baremetal_set = create_or_patch_custom_object(
            self.custom_api, BAREMETALSET, nodeset.namespace, body
        )
        ready = condition_is_true(baremetal_set) and is_settled(baremetal_set)
        if not ready:
            logger.info(f"BaremetalSet {nodeset.name} provisioning in progress")
        return ready
