import kopf
import logging
import os

from nodeset_operator.plugins.registry import PluginRegistry
from nodeset_operator.services.client import load_kube_config

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

plugin_registry = None


@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, **kwargs):
    """Configure the operator and start the node set plugin."""
    global plugin_registry

    logger.info("NodeSet Operator is starting up...")

    try:
        load_kube_config()
    except Exception as e:
        logger.warning(f"Could not load Kubernetes config: {e}")

    plugin_registry = PluginRegistry()

    discovered_count = plugin_registry.discover_plugins()
    if discovered_count == 0:
        logger.error("No plugins discovered - operator will have no functionality")
        raise RuntimeError("No plugins available")

    init_results = plugin_registry.initialise_all_plugins()
    if not any(init_results.values()):
        logger.error("No plugins initialised successfully")
        raise RuntimeError("Plugin initialisation failed")

    plugin_registry.register_all_handlers()

    settings.posting.enabled = os.getenv("POSTING_ENABLED", "false").lower() == "true"
    settings.watching.server_timeout = int(os.getenv("SERVER_TIMEOUT", "60"))

    logger.info(f"Initialised plugins: {list(init_results.keys())}")
    logger.info(f"Posting enabled: {settings.posting.enabled}")
    logger.info("NodeSet Operator startup complete")


@kopf.on.cleanup()
def cleanup_fn(**kwargs):
    """Stop the reconcile workers."""
    logger.info("NodeSet Operator is shutting down...")

    if plugin_registry:
        plugin_registry.shutdown_all_plugins()

    logger.info("NodeSet Operator shutdown complete")


def main():
    watch_namespace = os.getenv("WATCH_NAMESPACE")
    try:
        if watch_namespace:
            kopf.run(namespaces=[watch_namespace])
        else:
            kopf.run(clusterwide=True)
    except KeyboardInterrupt:
        logger.info("Operator stopped by user")
    except Exception as e:
        logger.error(f"Operator failed: {e}")
        raise


if __name__ == "__main__":
    main()
