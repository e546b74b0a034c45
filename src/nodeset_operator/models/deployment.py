"""Deployment and data plane service CRD models.

These resources are owned by other controllers. The node set operator only
reads them.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from nodeset_operator.conditions import (
    NODESET_DEPLOYMENT_READY,
    READY,
    ConditionSet,
)
from nodeset_operator.crd.registry import CRDRegistry
from nodeset_operator.crd.base import CRDCondition, CRDMetadata, CRDSpec, CRDStatus
from nodeset_operator.models.nodeset import GROUP, VERSION

DEPLOYMENT_LABEL = "openstackdataplanedeployment"


@CRDRegistry.register(
    GROUP, VERSION, "OpenStackDataPlaneDeployment", "openstackdataplanedeployments"
)
class DeploymentSpec(CRDSpec):
    """OpenStackDataPlaneDeployment CRD specification."""

    node_sets: List[str] = Field(default_factory=list, alias="nodeSets")
    services_override: List[str] = Field(default_factory=list, alias="servicesOverride")


class DeploymentStatus(CRDStatus):
    """Observed state of a deployment."""

    conditions: List[CRDCondition] = Field(default_factory=list)
    deployed: bool = False
    node_set_conditions: Dict[str, List[CRDCondition]] = Field(
        default_factory=dict, alias="nodeSetConditions"
    )
    node_set_hashes: Dict[str, str] = Field(default_factory=dict, alias="nodeSetHashes")
    config_map_hashes: Dict[str, str] = Field(
        default_factory=dict, alias="configMapHashes"
    )
    secret_hashes: Dict[str, str] = Field(default_factory=dict, alias="secretHashes")


class Deployment(BaseModel):
    """A full OpenStackDataPlaneDeployment object as read from the API."""

    model_config = ConfigDict(populate_by_name=True)

    metadata: CRDMetadata
    spec: DeploymentSpec = Field(default_factory=DeploymentSpec)
    status: DeploymentStatus = Field(default_factory=DeploymentStatus)

    @property
    def name(self):
        return self.metadata.name

    @property
    def is_deleting(self):
        return self.metadata.deletion_timestamp is not None

    def targets(self, nodeset_name):
        return nodeset_name in self.spec.node_sets

    def ready_condition(self) -> Optional[CRDCondition]:
        return ConditionSet(self.status.conditions).get(READY)

    def is_deployed_for(self, nodeset_name):
        """Whether this deployment has completed for the given node set."""
        if self.status.deployed:
            return True
        snapshot = ConditionSet(self.status.node_set_conditions.get(nodeset_name, []))
        return snapshot.is_true(NODESET_DEPLOYMENT_READY)


@CRDRegistry.register(
    GROUP, VERSION, "OpenStackDataPlaneService", "openstackdataplaneservices"
)
class DataPlaneServiceSpec(CRDSpec):
    """OpenStackDataPlaneService CRD specification."""

    playbook: Optional[str] = None
    playbook_contents: Optional[str] = Field(default=None, alias="playbookContents")
    role: Optional[Dict[str, Any]] = None
    config_maps: List[str] = Field(default_factory=list, alias="configMaps")
    secrets: List[str] = Field(default_factory=list)
    tls_cert: Optional[Dict[str, Any]] = Field(default=None, alias="tlsCert")

    def has_work(self):
        return bool(self.playbook or self.playbook_contents or self.role)
