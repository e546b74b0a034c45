"""Lifecycle contract for operator plugins.

A plugin owns one reconcile loop: it is initialised once at operator start
up, registers its kopf handlers, and is shut down on cleanup.
"""

import logging
from abc import ABC, abstractmethod

from nodeset_operator.crd.registry import crd_info

logger = logging.getLogger(__name__)


class PluginBase(ABC):
    """Base class for all operator plugins."""

    def __init__(self):
        self._initialised = False

    @property
    @abstractmethod
    def name(self):
        """Unique name for this plugin."""

    @property
    @abstractmethod
    def version(self):
        """Plugin version."""

    @property
    def description(self):
        doc = (self.__doc__ or "").strip()
        return doc.splitlines()[0] if doc else ""

    @property
    def models(self):
        """CRD spec models this plugin reconciles or reads."""
        return []

    @property
    def initialised(self):
        return self._initialised

    def kinds(self):
        """Kinds of the registered models, failing on an unregistered one."""
        return [crd_info(model).kind for model in self.models]

    def initialise(self):
        """Start the plugin.

        Returns:
            bool: True once the plugin is running
        """
        if self._initialised:
            logger.warning(f"Plugin {self.name} already initialised")
            return True

        logger.info(f"Initialising plugin {self.name} v{self.version}")
        try:
            logger.debug(f"Plugin {self.name} handles kinds {self.kinds()}")
            self._initialise_plugin()
        except Exception as e:
            logger.error(f"Failed to initialise plugin {self.name}: {e}")
            return False

        self._initialised = True
        return True

    def _initialise_plugin(self):
        """Override for plugin specific start up."""

    def shutdown(self):
        if not self._initialised:
            return

        logger.info(f"Shutting down plugin {self.name}")
        try:
            self._shutdown_plugin()
        except Exception as e:
            logger.error(f"Error shutting down plugin {self.name}: {e}")
        self._initialised = False

    def _shutdown_plugin(self):
        """Override for plugin specific shut down."""

    @abstractmethod
    def register_handlers(self):
        """Import the modules holding this plugin's kopf handlers."""

    def get_health_status(self):
        return {
            "name": self.name,
            "version": self.version,
            "initialised": self._initialised,
            "status": "healthy" if self._initialised else "not_initialised",
        }
