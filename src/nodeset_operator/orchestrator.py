""" Ordered execution of the node set setup stages.

Each stage either completes and marks its condition True, or records exactly
one condition update and raises. Later stages never run when an earlier one
has not completed.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Optional

from nodeset_operator import conditions as cond
from nodeset_operator.conditions import ConditionSet, utcnow
from nodeset_operator.config import OperatorConfig
from nodeset_operator.errors import (
    InputInvalidError,
    InventoryError,
    SecretWaitingError,
    WaitingError,
)
from nodeset_operator.services.dns_manager import DNSResult
from nodeset_operator.services.secret_manager import required_ssh_keys

logger = logging.getLogger(__name__)

INVENTORY_ERROR_MESSAGE = "Unable to generate inventory for {}"


class OrchestrationResult(NamedTuple):
    reservations: Dict[str, List[dict]]
    dns: Optional[DNSResult]
    inventory_secret: Optional[str]
    fast_path: bool


class DependencyOrchestrator:
    """Runs the setup stages of a node set in order."""

    def __init__(
        self,
        services,
        ipsets,
        dns,
        secrets,
        identity,
        baremetal,
        inventory,
        config: OperatorConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.services = services
        self.ipsets = ipsets
        self.dns = dns
        self.secrets = secrets
        self.identity = identity
        self.baremetal = baremetal
        self.inventory = inventory
        self.config = config
        self.clock = clock

    def run(self, nodeset, conditions: ConditionSet, previous: ConditionSet, fast_path):
        """ Execute the stages for one reconcile pass.

        Args:
            nodeset: NodeSet being reconciled, its status is updated in place
            conditions: Ledger of the current pass
            previous: Conditions as they were at the start of the pass
            fast_path: Skip provisioning and inventory for an unchanged,
                already deployed node set

        Raises:
            WaitingError: a dependency is not ready yet
            NodeSetError: a stage failed
        """
        self._ensure_services(nodeset, conditions)
        reservations = self._ensure_ipsets(nodeset, conditions)
        dns = self._ensure_dns(nodeset, conditions, reservations)
        self._verify_secret(nodeset, conditions, previous)
        self._ensure_identity(nodeset, conditions)

        if fast_path:
            logger.info(f"NodeSet {nodeset.name} already deployed, skipping provisioning")
            carried = previous.get(cond.BAREMETAL_PROVISION_READY)
            if carried is not None:
                conditions.set(carried.model_copy())
            conditions.mark_true(cond.SETUP_READY, cond.READY_MESSAGE)
            return OrchestrationResult(reservations, dns, None, True)

        self._provision_baremetal(nodeset, conditions, reservations, dns)
        secret = self._generate_inventory(nodeset, conditions, reservations, dns)
        return OrchestrationResult(reservations, dns, secret, False)

    def _ensure_services(self, nodeset, conditions):
        try:
            self.services.ensure(nodeset.namespace, nodeset.spec.services)
        except Exception as e:
            conditions.mark_false(
                cond.SETUP_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_ERROR,
                cond.NODESET_ERROR_MESSAGE,
                e,
            )
            raise

    def _ensure_ipsets(self, nodeset, conditions):
        try:
            reservations, ready = self.ipsets.ensure(nodeset)
        except Exception as e:
            conditions.mark_false(
                cond.IP_RESERVATION_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_ERROR,
                cond.IP_RESERVATION_ERROR_MESSAGE,
                e,
            )
            raise

        if not ready:
            conditions.mark_false(
                cond.IP_RESERVATION_READY,
                cond.REQUESTED_REASON,
                cond.SEVERITY_INFO,
                cond.IP_RESERVATION_WAITING_MESSAGE,
            )
            raise WaitingError(f"IP reservations of {nodeset.name}")

        conditions.mark_true(cond.IP_RESERVATION_READY, cond.IP_RESERVATION_READY_MESSAGE)
        return reservations

    def _ensure_dns(self, nodeset, conditions, reservations):
        try:
            dns = self.dns.ensure(nodeset, reservations)
        except Exception as e:
            conditions.mark_false(
                cond.DNS_DATA_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_ERROR,
                cond.DNS_DATA_ERROR_MESSAGE,
                e,
            )
            raise

        if not dns.ready:
            conditions.mark_false(
                cond.DNS_DATA_READY,
                cond.REQUESTED_REASON,
                cond.SEVERITY_INFO,
                cond.DNS_DATA_WAITING_MESSAGE,
            )
            raise WaitingError(f"DNSData of {nodeset.name}")

        status = nodeset.status
        status.dns_cluster_addresses = list(dns.cluster_addresses)
        status.ctlplane_search_domain = dns.ctlplane_search_domain
        status.all_hostnames = dict(dns.hostnames)
        status.all_ips = dict(dns.all_ips)
        conditions.mark_true(cond.DNS_DATA_READY, cond.DNS_DATA_READY_MESSAGE)
        return dns

    def _waited_for_input(self, previous):
        """Seconds InputReady has been False, measured from its last transition."""
        saved = previous.get(cond.INPUT_READY)
        if saved is None or saved.status != cond.FALSE or saved.last_transition_time is None:
            return 0.0
        return (self.clock() - saved.last_transition_time).total_seconds()

    def _verify_secret(self, nodeset, conditions, previous):
        secret_name = nodeset.spec.node_template.ansible_ssh_private_key_secret
        keys = required_ssh_keys(nodeset.spec.pre_provisioned)
        timeout = self.config.secret_verify_timeout
        try:
            self.secrets.verify(nodeset.namespace, secret_name, keys, timeout)
        except SecretWaitingError as e:
            if self._waited_for_input(previous) >= timeout:
                conditions.mark_false(
                    cond.INPUT_READY,
                    cond.ERROR_REASON,
                    cond.SEVERITY_ERROR,
                    cond.INPUT_READY_ERROR_MESSAGE,
                    e,
                )
                raise InputInvalidError(
                    f"{e} still missing after {timeout}s"
                ) from e
            conditions.mark_false(
                cond.INPUT_READY,
                cond.REQUESTED_REASON,
                cond.SEVERITY_INFO,
                cond.INPUT_READY_WAITING_MESSAGE,
                e,
            )
            raise
        except Exception as e:
            conditions.mark_false(
                cond.INPUT_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_ERROR,
                cond.INPUT_READY_ERROR_MESSAGE,
                e,
            )
            raise

        conditions.mark_true(cond.INPUT_READY, cond.INPUT_READY_MESSAGE)

    def _ensure_identity(self, nodeset, conditions):
        try:
            in_progress = self.identity.create_or_patch(nodeset)
        except Exception as e:
            conditions.mark_false(
                cond.SERVICE_ACCOUNT_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_WARNING,
                cond.SERVICE_ACCOUNT_ERROR_MESSAGE,
                e,
            )
            raise

        if in_progress:
            conditions.mark_false(
                cond.SERVICE_ACCOUNT_READY,
                cond.REQUESTED_REASON,
                cond.SEVERITY_INFO,
                cond.SERVICE_ACCOUNT_CREATING_MESSAGE,
            )
            raise WaitingError(
                f"ServiceAccount of {nodeset.name}",
                delay=self.config.identity_requeue_delay,
            )

        conditions.mark_true(cond.SERVICE_ACCOUNT_READY, cond.SERVICE_ACCOUNT_READY_MESSAGE)

    def _provision_baremetal(self, nodeset, conditions, reservations, dns):
        if nodeset.spec.pre_provisioned:
            return

        conditions.mark_unknown(cond.BAREMETAL_PROVISION_READY, cond.INIT_REASON, cond.INIT_REASON)
        try:
            ready = self.baremetal.deploy(nodeset, reservations, dns.server_addresses)
        except Exception as e:
            conditions.mark_false(
                cond.BAREMETAL_PROVISION_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_ERROR,
                cond.BAREMETAL_ERROR_MESSAGE,
                e,
            )
            raise

        if not ready:
            conditions.mark_false(
                cond.BAREMETAL_PROVISION_READY,
                cond.REQUESTED_REASON,
                cond.SEVERITY_INFO,
                cond.BAREMETAL_WAITING_MESSAGE,
            )
            raise WaitingError(f"BaremetalSet of {nodeset.name}")

        conditions.mark_true(cond.BAREMETAL_PROVISION_READY, cond.BAREMETAL_READY_MESSAGE)

    def _generate_inventory(self, nodeset, conditions, reservations, dns):
        try:
            secret = self.inventory.generate(
                nodeset, reservations, dns.server_addresses, self.config.images
            )
        except Exception as e:
            conditions.mark_false(
                cond.SETUP_READY,
                cond.ERROR_REASON,
                cond.SEVERITY_ERROR,
                INVENTORY_ERROR_MESSAGE,
                nodeset.name,
            )
            if isinstance(e, InventoryError):
                raise
            raise InventoryError(f"Unable to generate inventory for {nodeset.name}: {e}") from e

        conditions.mark_true(cond.SETUP_READY, cond.READY_MESSAGE)
        return secret
