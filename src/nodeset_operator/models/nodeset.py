"""Node set CRD models."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from nodeset_operator.crd.registry import CRDRegistry
from nodeset_operator.crd.base import CRDCondition, CRDMetadata, CRDSpec, CRDStatus

GROUP = "dataplane.openstack.org"
VERSION = "v1beta1"
KIND = "OpenStackDataPlaneNodeSet"
PLURAL = "openstackdataplanenodesets"

DEFAULT_SERVICES = [
    "download-cache",
    "bootstrap",
    "configure-network",
    "validate-network",
    "install-os",
    "configure-os",
    "ssh-known-hosts",
    "run-os",
    "reboot-os",
    "install-certs",
    "ovn",
    "neutron-metadata",
    "libvirt",
    "nova",
    "telemetry",
]

DEFAULT_SECRET_MAX_SIZE = 1048576


class LocalObjectRef(CRDSpec):
    """Reference to a ConfigMap or Secret in the node set namespace."""

    name: str = Field(..., description="Name of the referenced object")
    optional: bool = Field(
        default=False, description="Skip silently when the object is missing"
    )


class AnsibleVarsFromSource(CRDSpec):
    """Source of ansible variables read from a ConfigMap or Secret."""

    prefix: str = Field(default="", description="Prefix prepended to every key")
    config_map_ref: Optional[LocalObjectRef] = Field(default=None, alias="configMapRef")
    secret_ref: Optional[LocalObjectRef] = Field(default=None, alias="secretRef")


class AnsibleOpts(CRDSpec):
    """Ansible connection settings and variables."""

    ansible_user: Optional[str] = Field(default=None, alias="ansibleUser")
    ansible_host: Optional[str] = Field(default=None, alias="ansibleHost")
    ansible_port: Optional[int] = Field(default=None, alias="ansiblePort")
    ansible_vars: Dict[str, Any] = Field(default_factory=dict, alias="ansibleVars")
    ansible_vars_from: List[AnsibleVarsFromSource] = Field(
        default_factory=list, alias="ansibleVarsFrom"
    )


class NetworkConfig(CRDSpec):
    """Network a node is attached to."""

    name: str
    subnet_name: str = Field(default="", alias="subnetName")
    fixed_ip: Optional[str] = Field(default=None, alias="fixedIP")
    default_route: Optional[bool] = Field(default=None, alias="defaultRoute")


class NodeTemplate(CRDSpec):
    """Defaults shared by every node of the set."""

    ansible_ssh_private_key_secret: str = Field(
        default="dataplane-ansible-ssh-private-key-secret",
        alias="ansibleSSHPrivateKeySecret",
    )
    networks: List[NetworkConfig] = Field(default_factory=list)
    management_network: str = Field(default="ctlplane", alias="managementNetwork")
    ansible: AnsibleOpts = Field(default_factory=AnsibleOpts)
    extra_mounts: List[Dict[str, Any]] = Field(default_factory=list, alias="extraMounts")
    user_data: Optional[Dict[str, Any]] = Field(default=None, alias="userData")
    network_data: Optional[Dict[str, Any]] = Field(default=None, alias="networkData")


class NodeSection(CRDSpec):
    """Per-node overrides of the node template."""

    host_name: str = Field(default="", alias="hostName")
    networks: List[NetworkConfig] = Field(default_factory=list)
    management_network: str = Field(default="", alias="managementNetwork")
    ansible: AnsibleOpts = Field(default_factory=AnsibleOpts)
    extra_mounts: List[Dict[str, Any]] = Field(default_factory=list, alias="extraMounts")
    user_data: Optional[Dict[str, Any]] = Field(default=None, alias="userData")
    network_data: Optional[Dict[str, Any]] = Field(default=None, alias="networkData")
    preprovisioning_network_data_name: str = Field(
        default="", alias="preprovisioningNetworkDataName"
    )


class EnvVar(CRDSpec):
    """Environment variable passed to execution jobs."""

    name: str
    value: str = ""


@CRDRegistry.register(GROUP, VERSION, KIND, PLURAL)
class NodeSetSpec(CRDSpec):
    """OpenStackDataPlaneNodeSet CRD specification."""

    baremetal_set_template: Dict[str, Any] = Field(
        default_factory=dict,
        alias="baremetalSetTemplate",
        description="Template for the BaremetalSet of this node set",
    )
    node_template: NodeTemplate = Field(
        default_factory=NodeTemplate,
        alias="nodeTemplate",
        description="Attributes shared by all nodes unless overridden per node",
    )
    nodes: Dict[str, NodeSection] = Field(
        default_factory=dict, description="Node names and node specific data"
    )
    secret_max_size: int = Field(
        default=DEFAULT_SECRET_MAX_SIZE,
        alias="secretMaxSize",
        description="Maximum size in bytes of a generated Secret",
    )
    pre_provisioned: bool = Field(
        default=False,
        alias="preProvisioned",
        description="Set when the nodes have been provisioned out of band",
    )
    env: List[EnvVar] = Field(default_factory=list)
    network_attachments: List[str] = Field(
        default_factory=list, alias="networkAttachments"
    )
    services: List[str] = Field(default_factory=lambda: list(DEFAULT_SERVICES))
    tls_enabled: bool = Field(default=True, alias="tlsEnabled")
    tags: List[str] = Field(default_factory=list)

    def baremetal_hosts(self) -> Dict[str, Any]:
        return self.baremetal_set_template.get("baremetalHosts") or {}


class NodeSetStatus(CRDStatus):
    """Observed state of a node set."""

    conditions: List[CRDCondition] = Field(default_factory=list)
    deployed: bool = False
    deployment_statuses: Dict[str, List[CRDCondition]] = Field(
        default_factory=dict, alias="deploymentStatuses"
    )
    dns_cluster_addresses: List[str] = Field(
        default_factory=list, alias="dnsClusterAddresses"
    )
    ctlplane_search_domain: str = Field(default="", alias="ctlplaneSearchDomain")
    all_hostnames: Dict[str, Dict[str, str]] = Field(
        default_factory=dict, alias="allHostnames"
    )
    all_ips: Dict[str, Dict[str, str]] = Field(default_factory=dict, alias="allIPs")
    config_map_hashes: Dict[str, str] = Field(
        default_factory=dict, alias="configMapHashes"
    )
    secret_hashes: Dict[str, str] = Field(default_factory=dict, alias="secretHashes")
    config_hash: str = Field(default="", alias="configHash")
    deployed_config_hash: str = Field(default="", alias="deployedConfigHash")


class NodeSet(BaseModel):
    """A full OpenStackDataPlaneNodeSet object as read from the API."""

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(default=f"{GROUP}/{VERSION}", alias="apiVersion")
    kind: str = KIND
    metadata: CRDMetadata
    spec: NodeSetSpec = Field(default_factory=NodeSetSpec)
    status: NodeSetStatus = Field(default_factory=NodeSetStatus)

    @property
    def name(self):
        return self.metadata.name

    @property
    def namespace(self):
        return self.metadata.namespace

    @property
    def is_deleting(self):
        return self.metadata.deletion_timestamp is not None

    def status_body(self) -> dict:
        """Status serialised for the API, empty fields omitted."""
        return self.status.model_dump(by_alias=True, mode="json", exclude_none=True)
