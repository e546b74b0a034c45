""" Errors raised while reconciling a node set.

WaitingError and its subclasses mean "not yet, try again later" and are
never surfaced as failures. Everything else deriving from NodeSetError is a
failure of the pass and is retried with backoff.
"""


class NodeSetError(Exception):
    """Base class for reconcile failures."""


class WaitingError(Exception):
    """A dependency is not ready yet.

    Args:
        message: What is being waited on
        delay: Seconds before the next attempt, or None to wait for a watch event
    """

    def __init__(self, message, delay=None):
        super().__init__(message)
        self.delay = delay


class SecretWaitingError(WaitingError):
    """A required credential Secret is missing or incomplete."""

    def __init__(self, secret_name, missing_keys=None, delay=None):
        self.secret_name = secret_name
        self.missing_keys = list(missing_keys or [])
        if self.missing_keys:
            message = f"secret/{secret_name} missing keys {self.missing_keys}"
        else:
            message = f"secret/{secret_name}"
        super().__init__(message, delay=delay)


class ServiceValidationError(NodeSetError):
    """A declared data plane service is missing or malformed."""


class InputInvalidError(NodeSetError):
    """Required input has been missing for longer than the wait timeout."""


class InventoryError(NodeSetError):
    """The execution inventory could not be generated."""


class DeploymentFailedError(NodeSetError):
    """A sibling deployment targeting the node set reports an error."""


class StatusConflictError(NodeSetError):
    """The status write lost an optimistic concurrency race."""
