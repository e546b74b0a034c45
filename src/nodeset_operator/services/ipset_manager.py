""" IP reservations for the nodes of a node set.
"""

import logging

import kubernetes

from nodeset_operator.services.client import (
    IPSET,
    condition_is_true,
    create_or_patch_custom_object,
    owned_metadata,
)

logger = logging.getLogger(__name__)


def node_networks(nodeset, node):
    """Networks of a node, falling back to the template networks."""
    return node.networks or nodeset.spec.node_template.networks


def node_hostname(name, node):
    return node.host_name or name


class IPSetEnsurer:
    """Keeps one IPSet per node and collects the reservations."""

    def __init__(self, custom_api=None):
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi()

    def ensure(self, nodeset):
        """Create or patch the IPSets of every node with networks.

        Returns:
            (reservations, ready): reservations maps node name to the list of
            reservation dicts from the IPSet status, ready is False while any
            IPSet has not been allocated yet
        """
        reservations = {}
        ready = True

        for name, node in sorted(nodeset.spec.nodes.items()):
            networks = node_networks(nodeset, node)
            if not networks:
                logger.debug(f"Node {name} has no networks, skipping IPSet")
                continue

            body = {
                "metadata": owned_metadata(nodeset, node_hostname(name, node)),
                "spec": {
                    "networks": [
                        net.model_dump(by_alias=True, mode="json", exclude_none=True)
                        for net in networks
                    ]
                },
            }
            _, ipset = create_or_patch_custom_object(
                self.custom_api, IPSET, nodeset.namespace, body
            )

            if not condition_is_true(ipset):
                logger.info(f"IPSet {body['metadata']['name']} not ready yet")
                ready = False
                continue
            reservations[name] = ipset.get("status", {}).get("reservations") or []

        return reservations, ready
