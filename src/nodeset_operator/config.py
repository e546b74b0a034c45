""" Operator configuration read once from the environment at startup.
"""

import logging
import os
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

FRR_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-frr:current-podified"
ISCSID_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-iscsid:current-podified"
LOGROTATE_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-cron:current-podified"
MULTIPATHD_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-multipathd:current-podified"
NEUTRON_METADATA_AGENT_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-neutron-metadata-agent-ovn:current-podified"
NEUTRON_SRIOV_AGENT_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-neutron-sriov-agent:current-podified"
NOVA_COMPUTE_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-nova-compute:current-podified"
OVN_CONTROLLER_AGENT_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-ovn-controller:current-podified"
OVN_BGP_AGENT_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-ovn-bgp-agent:current-podified"
CEILOMETER_COMPUTE_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-ceilometer-compute:current-podified"
CEILOMETER_IPMI_DEFAULT_IMAGE = "quay.io/podified-antelope-centos9/openstack-ceilometer-ipmi:current-podified"
NODE_EXPORTER_DEFAULT_IMAGE = "quay.io/prometheus/node-exporter:v1.5.0"

# field name -> (environment variable, built-in default, inventory variable)
IMAGE_SETTINGS = {
    "frr": (
        "RELATED_IMAGE_EDPM_FRR_IMAGE_URL_DEFAULT",
        FRR_DEFAULT_IMAGE,
        "edpm_frr_image",
    ),
    "iscsid": (
        "RELATED_IMAGE_EDPM_ISCSID_IMAGE_URL_DEFAULT",
        ISCSID_DEFAULT_IMAGE,
        "edpm_iscsid_image",
    ),
    "logrotate": (
        "RELATED_IMAGE_EDPM_LOGROTATE_CROND_IMAGE_URL_DEFAULT",
        LOGROTATE_DEFAULT_IMAGE,
        "edpm_logrotate_crond_image",
    ),
    "multipathd": (
        "RELATED_IMAGE_EDPM_MULTIPATHD_IMAGE_URL_DEFAULT",
        MULTIPATHD_DEFAULT_IMAGE,
        "edpm_multipathd_image",
    ),
    "neutron_metadata_agent": (
        "RELATED_IMAGE_EDPM_NEUTRON_METADATA_AGENT_IMAGE_URL_DEFAULT",
        NEUTRON_METADATA_AGENT_DEFAULT_IMAGE,
        "edpm_neutron_metadata_agent_image",
    ),
    "neutron_sriov_agent": (
        "RELATED_IMAGE_EDPM_NEUTRON_SRIOV_AGENT_IMAGE_URL_DEFAULT",
        NEUTRON_SRIOV_AGENT_DEFAULT_IMAGE,
        "edpm_neutron_sriov_image",
    ),
    "nova_compute": (
        "RELATED_IMAGE_EDPM_NOVA_COMPUTE_IMAGE_URL_DEFAULT",
        NOVA_COMPUTE_DEFAULT_IMAGE,
        "edpm_nova_compute_image",
    ),
    "ovn_controller_agent": (
        "RELATED_IMAGE_EDPM_OVN_CONTROLLER_AGENT_IMAGE_URL_DEFAULT",
        OVN_CONTROLLER_AGENT_DEFAULT_IMAGE,
        "edpm_ovn_controller_agent_image",
    ),
    "ovn_bgp_agent": (
        "RELATED_IMAGE_EDPM_OVN_BGP_AGENT_IMAGE_URL_DEFAULT",
        OVN_BGP_AGENT_DEFAULT_IMAGE,
        "edpm_ovn_bgp_agent_image",
    ),
    "ceilometer_compute": (
        "RELATED_IMAGE_EDPM_CEILOMETER_COMPUTE_IMAGE_URL_DEFAULT",
        CEILOMETER_COMPUTE_DEFAULT_IMAGE,
        "edpm_telemetry_ceilometer_compute_image",
    ),
    "ceilometer_ipmi": (
        "RELATED_IMAGE_EDPM_CEILOMETER_IPMI_IMAGE_URL_DEFAULT",
        CEILOMETER_IPMI_DEFAULT_IMAGE,
        "edpm_telemetry_ceilometer_ipmi_image",
    ),
    "node_exporter": (
        "RELATED_IMAGE_EDPM_NODE_EXPORTER_IMAGE_URL_DEFAULT",
        NODE_EXPORTER_DEFAULT_IMAGE,
        "edpm_telemetry_node_exporter_image",
    ),
}


class ImageDefaults(BaseModel):
    """Default container images for the data plane services."""

    model_config = ConfigDict(frozen=True)

    frr: str = FRR_DEFAULT_IMAGE
    iscsid: str = ISCSID_DEFAULT_IMAGE
    logrotate: str = LOGROTATE_DEFAULT_IMAGE
    multipathd: str = MULTIPATHD_DEFAULT_IMAGE
    neutron_metadata_agent: str = NEUTRON_METADATA_AGENT_DEFAULT_IMAGE
    neutron_sriov_agent: str = NEUTRON_SRIOV_AGENT_DEFAULT_IMAGE
    nova_compute: str = NOVA_COMPUTE_DEFAULT_IMAGE
    ovn_controller_agent: str = OVN_CONTROLLER_AGENT_DEFAULT_IMAGE
    ovn_bgp_agent: str = OVN_BGP_AGENT_DEFAULT_IMAGE
    ceilometer_compute: str = CEILOMETER_COMPUTE_DEFAULT_IMAGE
    ceilometer_ipmi: str = CEILOMETER_IPMI_DEFAULT_IMAGE
    node_exporter: str = NODE_EXPORTER_DEFAULT_IMAGE

    @classmethod
    def from_env(cls, environ=None):
        """Resolve every image from its environment override or default."""
        environ = os.environ if environ is None else environ
        values = {}
        for field, (env_name, default, _) in IMAGE_SETTINGS.items():
            values[field] = environ.get(env_name) or default
        return cls(**values)

    def ansible_vars(self) -> Dict[str, str]:
        """Image defaults keyed by their inventory variable names."""
        return {
            inventory_var: getattr(self, field)
            for field, (_, _, inventory_var) in IMAGE_SETTINGS.items()
        }


class OperatorConfig(BaseModel):
    """Settings of the reconcile loop."""

    model_config = ConfigDict(frozen=True)

    images: ImageDefaults = Field(default_factory=ImageDefaults)
    reconcile_workers: int = 2
    secret_verify_timeout: float = 5.0
    identity_requeue_delay: float = 2.0
    backoff_base: float = 1.0
    backoff_max: float = 300.0
    watch_namespace: Optional[str] = None
    registry_viewer_role: str = "registry-viewer"

    @classmethod
    def from_env(cls, environ=None):
        environ = os.environ if environ is None else environ
        config = cls(
            images=ImageDefaults.from_env(environ),
            reconcile_workers=int(environ.get("RECONCILE_WORKERS", "2")),
            secret_verify_timeout=float(environ.get("SECRET_VERIFY_TIMEOUT", "5")),
            identity_requeue_delay=float(environ.get("IDENTITY_REQUEUE_DELAY", "2")),
            backoff_base=float(environ.get("RECONCILE_BACKOFF_BASE", "1")),
            backoff_max=float(environ.get("RECONCILE_BACKOFF_MAX", "300")),
            watch_namespace=environ.get("WATCH_NAMESPACE") or None,
            registry_viewer_role=environ.get("REGISTRY_VIEWER_ROLE", "registry-viewer"),
        )
        logger.debug(f"Loaded operator config: {config}")
        return config
