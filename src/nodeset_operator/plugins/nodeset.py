""" Node set plugin.

Wires the collaborators, the reverse index and the work queue together and
runs the reconcile workers for the lifetime of the operator.
"""

import logging

import kubernetes

from nodeset_operator.aggregator import DeploymentStatusAggregator
from nodeset_operator.config import OperatorConfig
from nodeset_operator.correlator import ReverseIndex
from nodeset_operator.orchestrator import DependencyOrchestrator
from nodeset_operator.reconciler import Reconciler
from nodeset_operator.services import (
    BareMetalProvisioner,
    DNSDataEnsurer,
    IdentityProvisioner,
    InventoryGenerator,
    IPSetEnsurer,
    NodeSetStore,
    SecretVerifier,
    ServiceEnsurer,
)
from nodeset_operator.workqueue import WorkerPool, WorkQueue
from .base import PluginBase

logger = logging.getLogger(__name__)


class NodeSetPlugin(PluginBase):
    """Reconciles OpenStackDataPlaneNodeSet resources."""

    def __init__(self, config=None):
        super().__init__()
        self.config = config
        self.index = ReverseIndex()
        self.queue = None
        self.store = None
        self.reconciler = None
        self.pool = None

    @property
    def name(self):
        return "nodeset"

    @property
    def version(self):
        return "1.0.0"

    @property
    def models(self):
        from nodeset_operator.models.deployment import DataPlaneServiceSpec, DeploymentSpec
        from nodeset_operator.models.nodeset import NodeSetSpec

        return [NodeSetSpec, DeploymentSpec, DataPlaneServiceSpec]

    def build_reconciler(self, config):
        """Assemble the reconciler from kubernetes-backed collaborators."""
        custom_api = kubernetes.client.CustomObjectsApi()
        core_api = kubernetes.client.CoreV1Api()
        rbac_api = kubernetes.client.RbacAuthorizationV1Api()

        self.store = NodeSetStore(custom_api=custom_api, core_api=core_api)
        orchestrator = DependencyOrchestrator(
            services=ServiceEnsurer(custom_api),
            ipsets=IPSetEnsurer(custom_api),
            dns=DNSDataEnsurer(custom_api),
            secrets=SecretVerifier(core_api),
            identity=IdentityProvisioner(
                core_api, rbac_api, role_name=config.registry_viewer_role
            ),
            baremetal=BareMetalProvisioner(custom_api),
            inventory=InventoryGenerator(core_api),
            config=config,
        )
        return Reconciler(
            store=self.store,
            orchestrator=orchestrator,
            aggregator=DeploymentStatusAggregator(self.store),
            index=self.index,
        )

    def _initialise_plugin(self):
        if self.config is None:
            self.config = OperatorConfig.from_env()

        self.queue = WorkQueue(
            backoff_base=self.config.backoff_base,
            backoff_max=self.config.backoff_max,
        )
        self.reconciler = self.build_reconciler(self.config)
        self.pool = WorkerPool(
            self.queue, self.reconciler, workers=self.config.reconcile_workers
        )
        self.pool.start()

        logger.info(f"  Reconcile workers: {self.config.reconcile_workers}")
        logger.info(f"  Secret verify timeout: {self.config.secret_verify_timeout}s")
        logger.info(f"  Watch namespace: {self.config.watch_namespace or 'all'}")

    def _shutdown_plugin(self):
        if self.pool is not None:
            self.pool.stop()

    def enqueue(self, keys):
        for key in keys:
            logger.debug(f"Enqueueing NodeSet {key.namespace}/{key.name}")
            self.queue.add(key)

    def register_handlers(self):
        logger.info("Registering node set handlers...")
        from nodeset_operator.handlers import nodeset_handler  # noqa: F401
