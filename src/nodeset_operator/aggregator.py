""" Roll-up of sibling deployment status into the node set status.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from nodeset_operator.conditions import is_error
from nodeset_operator.crd.base import CRDCondition
from nodeset_operator.models.deployment import Deployment

logger = logging.getLogger(__name__)

DEPLOYMENT_ERROR_MESSAGE = "check deploymentStatuses for more details"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(deployment: Deployment):
    """Oldest Ready transition first; deployments without one go last."""
    ready = deployment.ready_condition()
    transition = ready.last_transition_time if ready is not None else None
    created = deployment.metadata.creation_timestamp or _EPOCH
    return (transition is None, transition or _EPOCH, created, deployment.name)


class DeploymentCheck(BaseModel):
    """Outcome of evaluating the deployments that target a node set."""

    exists: bool = False
    ready: bool = False
    config_map_hashes: Dict[str, str] = Field(default_factory=dict)
    secret_hashes: Dict[str, str] = Field(default_factory=dict)
    deployed_config_hash: Optional[str] = None
    statuses: Dict[str, List[CRDCondition]] = Field(default_factory=dict)
    error: Optional[str] = None
    failed_deployments: List[str] = Field(default_factory=list)

    def merge_into(self, status):
        """Apply the result to a NodeSetStatus."""
        status.deployment_statuses.update(self.statuses)
        status.config_map_hashes.update(self.config_map_hashes)
        status.secret_hashes.update(self.secret_hashes)
        if self.deployed_config_hash is not None:
            status.deployed_config_hash = self.deployed_config_hash
        return status


class DeploymentStatusAggregator:
    """Evaluates the sibling deployments of a node set."""

    def __init__(self, store):
        self.store = store

    def relevant(self, namespace, nodeset_name) -> List[Deployment]:
        deployments = []
        for item in self.store.list_deployments(namespace):
            deployment = Deployment.model_validate(item)
            if deployment.is_deleting or not deployment.targets(nodeset_name):
                continue
            deployments.append(deployment)
        return sorted(deployments, key=_sort_key)

    def evaluate(self, namespace, nodeset_name) -> DeploymentCheck:
        check = DeploymentCheck()
        for deployment in self.relevant(namespace, nodeset_name):
            check.exists = True
            check.ready = False

            if deployment.is_deployed_for(nodeset_name):
                check.ready = True
                check.config_map_hashes.update(deployment.status.config_map_hashes)
                check.secret_hashes.update(deployment.status.secret_hashes)
                deployed_hash = deployment.status.node_set_hashes.get(nodeset_name)
                if deployed_hash:
                    check.deployed_config_hash = deployed_hash

            check.statuses[deployment.name] = list(
                deployment.status.node_set_conditions.get(nodeset_name, [])
            )

            if is_error(deployment.ready_condition()):
                logger.info(f"Deployment {deployment.name} of {nodeset_name} reports an error")
                check.error = DEPLOYMENT_ERROR_MESSAGE
                check.failed_deployments.append(deployment.name)
            else:
                check.error = None

        return check
