"""Discovery and lifecycle of operator plugins."""

import importlib
import inspect
import logging
from importlib.metadata import entry_points

from .base import PluginBase

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "nodeset_operator_plugins"

BUILTIN_PLUGINS = [
    "nodeset_operator.plugins.nodeset",
]


def _plugin_classes(module):
    for _, attr in inspect.getmembers(module, inspect.isclass):
        if issubclass(attr, PluginBase) and not inspect.isabstract(attr):
            if attr.__module__ == module.__name__:
                yield attr


class PluginRegistry:
    """Process wide set of plugins, keyed by plugin name."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._plugins = {}
        return cls._instance

    def discover_plugins(self, builtin_only=False):
        """Load the built-in plugins and, unless ``builtin_only``, those
        advertised under the ``nodeset_operator_plugins`` entry point group.

        Returns:
            int: Number of plugins registered by this call
        """
        count = 0
        for module_name in BUILTIN_PLUGINS:
            module = importlib.import_module(module_name)
            count += sum(self.register_plugin(cls()) for cls in _plugin_classes(module))

        if not builtin_only:
            for entry_point in entry_points(group=ENTRY_POINT_GROUP):
                try:
                    plugin_class = entry_point.load()
                except Exception as e:
                    logger.error(f"Failed to load plugin {entry_point.name}: {e}")
                    continue
                if not (inspect.isclass(plugin_class) and issubclass(plugin_class, PluginBase)):
                    logger.error(f"Plugin {entry_point.name} does not inherit from PluginBase")
                    continue
                count += self.register_plugin(plugin_class())

        logger.info(f"Discovered {count} plugins: {self.list_plugin_names()}")
        return count

    def register_plugin(self, plugin):
        """Register a plugin instance.

        Returns:
            bool: False when the plugin is invalid or its name is taken
        """
        if not isinstance(plugin, PluginBase):
            logger.error(f"Plugin must inherit from PluginBase: {type(plugin)}")
            return False

        existing = self._plugins.get(plugin.name)
        if existing is not None:
            logger.warning(
                f"Plugin {plugin.name} v{plugin.version} ignored, "
                f"v{existing.version} already registered"
            )
            return False

        self._plugins[plugin.name] = plugin
        logger.debug(f"Registered plugin {plugin.name} v{plugin.version}")
        return True

    def initialise_all_plugins(self):
        """
        Returns:
            Dict[str, bool]: plugin name to initialisation success
        """
        results = {name: plugin.initialise() for name, plugin in self._plugins.items()}
        logger.info(
            f"Initialised {sum(results.values())}/{len(results)} plugins"
        )
        return results

    def register_all_handlers(self):
        """Register kopf handlers of every running plugin."""
        for name, plugin in self._plugins.items():
            if not plugin.initialised:
                logger.warning(f"Not registering handlers of uninitialised plugin {name}")
                continue
            try:
                plugin.register_handlers()
            except Exception as e:
                logger.error(f"Failed to register handlers for plugin {name}: {e}")

    def shutdown_all_plugins(self):
        for plugin in self._plugins.values():
            plugin.shutdown()

    def get_plugin(self, name: str):
        return self._plugins.get(name)

    def list_plugin_names(self):
        return list(self._plugins)

    def clear(self):
        """Forget every registered plugin."""
        self._plugins = {}
