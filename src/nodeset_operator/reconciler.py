""" Single reconcile pass over one node set.

A pass reads the node set, rebuilds its conditions from scratch, runs the
setup stages, folds in the deployment status and writes the status back
conditioned on the resourceVersion that was read.
"""

import logging
from datetime import datetime
from typing import Callable, NamedTuple, Optional

from kubernetes.client.exceptions import ApiException

from nodeset_operator import conditions as cond
from nodeset_operator.conditions import ConditionSet, derive_ready, init_conditions, utcnow
from nodeset_operator.confighash import config_hash
from nodeset_operator.correlator import log_failed_job_pods
from nodeset_operator.errors import DeploymentFailedError, WaitingError
from nodeset_operator.models.nodeset import NodeSet

logger = logging.getLogger(__name__)


class ReconcileResult(NamedTuple):
    requeue_after: Optional[float] = None


def is_fast_path(nodeset: NodeSet, previous_status) -> bool:
    """An already deployed, unchanged node set skips provisioning and inventory."""
    return (
        previous_status.deployed
        and previous_status.observed_generation == nodeset.metadata.generation
        and not nodeset.is_deleting
    )


class Reconciler:
    """Drives one node set toward its declared state."""

    def __init__(
        self,
        store,
        orchestrator,
        aggregator,
        index=None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.aggregator = aggregator
        self.index = index
        self.clock = clock

    def reconcile(self, namespace, name) -> ReconcileResult:
        """ Reconcile the node set ``namespace/name``.

        Returns:
            ReconcileResult with the delay before the next pass, if any

        Raises:
            StatusConflictError: the status write lost a race, retry now
            NodeSetError: the pass failed, retry with backoff
            ApiException: the node set could not be read
        """
        try:
            raw = self.store.get_nodeset(namespace, name)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"NodeSet {namespace}/{name} not found, nothing to do")
                if self.index is not None:
                    self.index.remove(namespace, name)
                return ReconcileResult()
            raise

        nodeset = NodeSet.model_validate(raw)
        if self.index is not None:
            self.index.update(namespace, name, nodeset.spec)

        original = nodeset.status_body()
        previous_status = nodeset.status.model_copy(deep=True)
        previous = ConditionSet(previous_status.conditions, clock=self.clock)

        conditions = init_conditions(bool(nodeset.spec.baremetal_hosts()), clock=self.clock)
        status = nodeset.status
        status.deployment_statuses = {}
        status.deployed = False
        status.observed_generation = nodeset.metadata.generation

        conditions.mark_false(
            cond.SETUP_READY,
            cond.REQUESTED_REASON,
            cond.SEVERITY_INFO,
            cond.READY_INIT_MESSAGE,
        )
        status.config_hash = config_hash(nodeset.spec)
        fast_path = is_fast_path(nodeset, previous_status)

        error = None
        requeue_after = None
        try:
            self.orchestrator.run(nodeset, conditions, previous, fast_path)
            self._check_deployments(nodeset, conditions)
        except WaitingError as e:
            logger.info(f"NodeSet {namespace}/{name} waiting on {e}")
            requeue_after = e.delay
        except Exception as e:
            logger.error(f"NodeSet {namespace}/{name} reconcile failed: {e}")
            error = e

        conditions.restore_last_transition_times(previous)
        derive_ready(conditions)
        # Ready is rebuilt from Unknown on every pass
        conditions.restore_last_transition_times(previous)
        status.conditions = list(conditions)

        if not self._write_status(raw, nodeset, original):
            return ReconcileResult()
        if error is not None:
            raise error
        return ReconcileResult(requeue_after)

    def _check_deployments(self, nodeset, conditions):
        if conditions.is_unknown(cond.DEPLOYMENT_READY):
            conditions.mark_false(
                cond.DEPLOYMENT_READY,
                cond.NOT_REQUESTED_REASON,
                cond.SEVERITY_INFO,
                cond.DEPLOYMENT_READY_INIT_MESSAGE,
            )

        check = self.aggregator.evaluate(nodeset.namespace, nodeset.name)
        check.merge_into(nodeset.status)

        if check.error:
            conditions.mark_false(
                cond.DEPLOYMENT_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_ERROR,
                cond.DEPLOYMENT_READY_ERROR_MESSAGE,
                check.error,
            )
            for deployment_name in check.failed_deployments:
                log_failed_job_pods(self.store, nodeset.namespace, deployment_name)
            raise DeploymentFailedError(
                f"Deployment of {nodeset.name} failed, {check.error}"
            )

        if check.ready:
            conditions.mark_true(cond.DEPLOYMENT_READY, cond.DEPLOYMENT_READY_MESSAGE)
            nodeset.status.deployed = True
        elif check.exists:
            conditions.mark_false(
                cond.DEPLOYMENT_READY,
                cond.REQUESTED_REASON,
                cond.SEVERITY_INFO,
                cond.DEPLOYMENT_READY_RUNNING_MESSAGE,
            )

    def _write_status(self, raw, nodeset, original):
        """Write the status when it changed.

        Returns:
            False when the node set disappeared before the write
        """
        updated = nodeset.status_body()
        if updated == original:
            logger.debug(f"NodeSet {nodeset.namespace}/{nodeset.name} status unchanged")
            return True

        try:
            self.store.replace_nodeset_status(raw, updated)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"NodeSet {nodeset.namespace}/{nodeset.name} deleted during reconcile")
                return False
            raise
        logger.debug(f"Updated status of NodeSet {nodeset.namespace}/{nodeset.name}")
        return True
