"""Handler modules for the node set operator.

Handlers are imported by their plugin's ``register_handlers`` so that kopf
only sees them once the plugin is ready.
"""
