""" Name resolution data for the nodes of a node set.
"""

import logging
from typing import Dict, List

import kubernetes
from pydantic import BaseModel, Field

from nodeset_operator.services.client import (
    DNSDATA,
    DNSMASQ,
    condition_is_true,
    create_or_patch_custom_object,
    owned_metadata,
)
from nodeset_operator.services.ipset_manager import node_hostname

logger = logging.getLogger(__name__)

CTLPLANE_NETWORK = "ctlplane"
DNSDATA_LABEL_SELECTOR_VALUE = "dnsdata"


class DNSResult(BaseModel):
    """Name resolution data published into the node set status."""

    ready: bool = False
    cluster_addresses: List[str] = Field(default_factory=list)
    server_addresses: List[str] = Field(default_factory=list)
    ctlplane_search_domain: str = ""
    hostnames: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    all_ips: Dict[str, Dict[str, str]] = Field(default_factory=dict)


def build_host_entries(nodeset, reservations):
    """Derive DNS host entries and the hostname/IP maps from reservations.

    Returns:
        (hosts, hostnames, all_ips, search_domain)
    """
    hosts = []
    hostnames = {}
    all_ips = {}
    search_domain = ""

    for name in sorted(reservations):
        node = nodeset.spec.nodes.get(name)
        short_name = node_hostname(name, node) if node else name
        for res in reservations[name]:
            network = res.get("network", "")
            address = res.get("address")
            domain = res.get("dnsDomain", "")
            if not address:
                continue
            fqdn = f"{short_name}.{domain}" if domain else short_name
            hosts.append({"hostnames": [fqdn], "ip": address})
            hostnames.setdefault(name, {})[network] = fqdn
            all_ips.setdefault(name, {})[network] = address
            if network.lower() == CTLPLANE_NETWORK and domain:
                search_domain = domain

    return hosts, hostnames, all_ips, search_domain


class DNSDataEnsurer:
    """Publishes a DNSData object built from the node reservations."""

    def __init__(self, custom_api=None):
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi()

    def _find_dnsmasq(self, namespace):
        result = self.custom_api.list_namespaced_custom_object(
            group=DNSMASQ.group,
            version=DNSMASQ.version,
            namespace=namespace,
            plural=DNSMASQ.plural,
        )
        items = result.get("items", [])
        return items[0] if items else None

    def ensure(self, nodeset, reservations):
        """Create or patch the DNSData of the node set.

        When no DNSMasq runs in the namespace there is nothing to publish and
        the result is ready with empty data.
        """
        hosts, hostnames, all_ips, search_domain = build_host_entries(
            nodeset, reservations
        )
        result = DNSResult(
            ctlplane_search_domain=search_domain,
            hostnames=hostnames,
            all_ips=all_ips,
        )

        dnsmasq = self._find_dnsmasq(nodeset.namespace)
        if dnsmasq is None:
            logger.info(f"No DNSMasq in {nodeset.namespace}, skipping DNSData")
            result.ready = True
            return result

        dnsmasq_status = dnsmasq.get("status", {})
        result.server_addresses = dnsmasq_status.get("dnsAddresses") or []
        result.cluster_addresses = dnsmasq_status.get("dnsClusterAddresses") or []

        body = {
            "metadata": owned_metadata(nodeset, nodeset.name),
            "spec": {
                "hosts": hosts,
                "dnsDataLabelSelectorValue": DNSDATA_LABEL_SELECTOR_VALUE,
            },
        }
        _, dnsdata = create_or_patch_custom_object(
            self.custom_api, DNSDATA, nodeset.namespace, body
        )
        result.ready = condition_is_true(dnsdata) and bool(result.server_addresses)
        return result
