"""Watch handlers feeding the node set work queue."""

import logging

import kopf

from nodeset_operator.correlator import (
    CONFIGMAP,
    DEPLOYMENT,
    DNSMASQ,
    OWNED,
    SECRET,
    NodeSetKey,
    log_failed_job_pods,
    requests_for,
)
from nodeset_operator.models.nodeset import GROUP, PLURAL, VERSION, NodeSetSpec
from nodeset_operator.plugins.registry import PluginRegistry
from nodeset_operator.services.client import (
    ANSIBLEEE,
    BAREMETALSET,
    DNSDATA,
    IPSET,
    DNSMASQ as DNSMASQ_KIND,
)

logger = logging.getLogger(__name__)


def _plugin():
    plugin = PluginRegistry().get_plugin("nodeset")
    if plugin is None or not plugin.initialised:
        raise kopf.TemporaryError("nodeset plugin not initialised", delay=5)
    return plugin


def _enqueue_related(kind, body):
    plugin = _plugin()
    plugin.enqueue(requests_for(kind, body, plugin.index))


@kopf.on.event(GROUP, VERSION, PLURAL)
def nodeset_event(event, body, meta, **kwargs):
    """Track references of a node set and queue it for reconcile."""
    plugin = _plugin()
    namespace, name = meta["namespace"], meta["name"]

    if event.get("type") == "DELETED":
        plugin.index.remove(namespace, name)
        logger.info(f"NodeSet {namespace}/{name} deleted")
        return

    plugin.index.update(namespace, name, NodeSetSpec.model_validate(body.get("spec") or {}))
    plugin.enqueue([NodeSetKey(namespace, name)])


@kopf.on.event("v1", "configmaps")
def configmap_event(body, **kwargs):
    _enqueue_related(CONFIGMAP, body)


@kopf.on.event("v1", "secrets")
def secret_event(body, **kwargs):
    _enqueue_related(SECRET, body)


@kopf.on.event(GROUP, VERSION, "openstackdataplanedeployments")
def deployment_event(event, body, **kwargs):
    plugin = _plugin()
    plugin.enqueue(requests_for(DEPLOYMENT, body, plugin.index))

    if event.get("type") == "DELETED":
        return
    meta = body.get("metadata") or {}
    log_failed_job_pods(plugin.store, meta.get("namespace"), meta.get("name"))


@kopf.on.event(DNSMASQ_KIND.group, DNSMASQ_KIND.version, DNSMASQ_KIND.plural)
def dnsmasq_event(body, **kwargs):
    _enqueue_related(DNSMASQ, body)


@kopf.on.event(IPSET.group, IPSET.version, IPSET.plural)
@kopf.on.event(DNSDATA.group, DNSDATA.version, DNSDATA.plural)
@kopf.on.event(BAREMETALSET.group, BAREMETALSET.version, BAREMETALSET.plural)
@kopf.on.event(ANSIBLEEE.group, ANSIBLEEE.version, ANSIBLEEE.plural)
def owned_event(body, **kwargs):
    _enqueue_related(OWNED, body)
