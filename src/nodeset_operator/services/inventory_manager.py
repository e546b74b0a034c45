""" Ansible inventory generation for a node set.

The inventory has a single group named after the node set. Group vars come
from the node template, host vars from each node section. Values read from
``ansibleVarsFrom`` sources are applied first so that inline ``ansibleVars``
always win.
"""

import base64
import logging

import kubernetes
import yaml
from kubernetes.client.exceptions import ApiException

from nodeset_operator.errors import InventoryError
from nodeset_operator.services.client import owned_metadata
from nodeset_operator.services.ipset_manager import node_hostname
from nodeset_operator.services.secret_manager import decode_secret_data

logger = logging.getLogger(__name__)

INVENTORY_KEY = "inventory"
INVENTORY_SECRET_PREFIX = "dataplanenodeset"
TLS_VAR = "edpm_tls_certs_enabled"


def inventory_secret_name(nodeset_name):
    return f"{INVENTORY_SECRET_PREFIX}-{nodeset_name}"


def _parse_value(value):
    try:
        return yaml.safe_load(value)
    except yaml.YAMLError:
        return value


def _network_vars(reservations):
    """Per network host vars such as ctlplane_ip and ctlplane_cidr."""
    host_vars = {}
    for res in reservations:
        net = res.get("network", "").lower()
        if not net or not res.get("address"):
            continue
        host_vars[f"{net}_ip"] = res["address"]
        cidr = res.get("cidr")
        if cidr and "/" in cidr:
            host_vars[f"{net}_cidr"] = cidr.split("/", 1)[1]
        if res.get("vlan") is not None:
            host_vars[f"{net}_vlan_id"] = res["vlan"]
        if res.get("mtu") is not None:
            host_vars[f"{net}_mtu"] = res["mtu"]
        if res.get("gateway"):
            host_vars[f"{net}_gateway_ip"] = res["gateway"]
    return host_vars


class InventoryGenerator:
    """Renders the node set inventory into a Secret."""

    def __init__(self, core_api=None):
        self.core_api = core_api or kubernetes.client.CoreV1Api()

    def _read_source(self, namespace, source):
        """ Read one ansibleVarsFrom source.

        Returns:
            Dict of prefixed, parsed values. Empty for a missing optional source.

        Raises:
            InventoryError: a required source is missing
        """
        if source.config_map_ref is not None:
            ref, kind = source.config_map_ref, "ConfigMap"
        elif source.secret_ref is not None:
            ref, kind = source.secret_ref, "Secret"
        else:
            return {}

        try:
            if kind == "ConfigMap":
                obj = self.core_api.read_namespaced_config_map(
                    name=ref.name, namespace=namespace
                )
                data = obj.data or {}
            else:
                obj = self.core_api.read_namespaced_secret(
                    name=ref.name, namespace=namespace
                )
                data = decode_secret_data(obj)
        except ApiException as e:
            if e.status == 404:
                if ref.optional:
                    logger.info(f"Optional {kind} {ref.name} not found, skipping")
                    return {}
                raise InventoryError(f"{kind} {ref.name} not found in {namespace}") from e
            raise

        return {f"{source.prefix}{key}": _parse_value(value) for key, value in data.items()}

    def _resolve_vars(self, namespace, ansible):
        resolved = {}
        for source in ansible.ansible_vars_from:
            resolved.update(self._read_source(namespace, source))
        resolved.update(ansible.ansible_vars)
        return resolved

    def build(self, nodeset, reservations, server_addresses, images):
        """ Build the inventory document.

        Args:
            nodeset: NodeSet being reconciled
            reservations: Node name to reservation dicts
            server_addresses: DNS server addresses
            images: ImageDefaults used for unset image variables

        Returns:
            Inventory as a dict
        """
        template = nodeset.spec.node_template
        group_vars = self._resolve_vars(nodeset.namespace, template.ansible)
        for var, image in images.ansible_vars().items():
            group_vars.setdefault(var, image)
        group_vars[TLS_VAR] = nodeset.spec.tls_enabled
        if template.ansible.ansible_user:
            group_vars.setdefault("ansible_user", template.ansible.ansible_user)
        if template.ansible.ansible_port:
            group_vars.setdefault("ansible_port", template.ansible.ansible_port)
        if server_addresses:
            group_vars["dns_servers"] = list(server_addresses)
        if nodeset.status.ctlplane_search_domain:
            group_vars["ctlplane_search_domain"] = nodeset.status.ctlplane_search_domain

        hosts = {}
        for name, node in sorted(nodeset.spec.nodes.items()):
            hostname = node_hostname(name, node)
            node_reservations = reservations.get(name, [])
            host_vars = _network_vars(node_reservations)

            management = (node.management_network or template.management_network).lower()
            domains = []
            for res in node_reservations:
                domain = res.get("dnsDomain")
                if not domain:
                    continue
                domains.append(domain)
                if res.get("network", "").lower() == management:
                    host_vars["canonical_hostname"] = f"{hostname}.{domain}"
            if domains:
                host_vars["dns_search_domains"] = domains

            host_vars["ansible_host"] = (
                node.ansible.ansible_host
                or host_vars.get(f"{management}_ip")
                or hostname
            )
            if node.ansible.ansible_user:
                host_vars["ansible_user"] = node.ansible.ansible_user
            if node.ansible.ansible_port:
                host_vars["ansible_port"] = node.ansible.ansible_port
            host_vars.update(self._resolve_vars(nodeset.namespace, node.ansible))
            hosts[hostname] = host_vars

        return {nodeset.name: {"vars": group_vars, "hosts": hosts}}

    def generate(self, nodeset, reservations, server_addresses, images):
        """ Render the inventory and store it in the inventory Secret.

        The Secret is only written when its content changes.

        Returns:
            Name of the inventory Secret

        Raises:
            InventoryError: a required source is missing or the inventory is
                larger than the node set secretMaxSize
        """
        inventory = self.build(nodeset, reservations, server_addresses, images)
        rendered = yaml.safe_dump(inventory, default_flow_style=False, sort_keys=True)
        encoded = base64.b64encode(rendered.encode()).decode()

        if len(encoded) > nodeset.spec.secret_max_size:
            raise InventoryError(
                f"inventory of {nodeset.name} is {len(encoded)} bytes, "
                f"larger than secretMaxSize {nodeset.spec.secret_max_size}"
            )

        name = inventory_secret_name(nodeset.name)
        meta = owned_metadata(nodeset, name)
        body = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": meta,
            "type": "Opaque",
            "data": {INVENTORY_KEY: encoded},
        }

        try:
            existing = self.core_api.read_namespaced_secret(
                name=name, namespace=nodeset.namespace
            )
        except ApiException as e:
            if e.status == 404:
                self.core_api.create_namespaced_secret(
                    namespace=nodeset.namespace, body=body
                )
                logger.info(f"Created inventory Secret {name} in {nodeset.namespace}")
                return name
            raise

        if (existing.data or {}).get(INVENTORY_KEY) == encoded:
            logger.debug(f"Inventory Secret {name} unchanged")
            return name

        self.core_api.patch_namespaced_secret(
            name=name, namespace=nodeset.namespace, body=body
        )
        logger.info(f"Updated inventory Secret {name} in {nodeset.namespace}")
        return name
