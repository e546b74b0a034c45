""" Verification of the credential Secrets a node set references.
"""

import base64
import logging

import kubernetes
from kubernetes.client.exceptions import ApiException

from nodeset_operator.errors import SecretWaitingError

logger = logging.getLogger(__name__)

SSH_PRIVATE_KEY = "ssh-privatekey"
SSH_AUTHORIZED_KEYS = "authorized_keys"


def required_ssh_keys(pre_provisioned):
    """Keys the ansible SSH Secret must carry."""
    keys = [SSH_PRIVATE_KEY]
    if not pre_provisioned:
        keys.append(SSH_AUTHORIZED_KEYS)
    return keys


def decode_secret_data(secret):
    """Decode the base64 data of a V1Secret into strings."""
    return {
        key: base64.b64decode(value).decode()
        for key, value in (secret.data or {}).items()
    }


class SecretVerifier:
    """Checks that a Secret exists and carries the required keys."""

    def __init__(self, core_api=None):
        self.core_api = core_api or kubernetes.client.CoreV1Api()

    def verify(self, namespace, name, required_keys, timeout):
        """Return the Secret when complete.

        Args:
            namespace: Namespace of the Secret
            name: Secret name
            required_keys: Keys that must be present in the data
            timeout: Seconds to wait before the caller retries

        Raises:
            SecretWaitingError: the Secret is missing or lacks keys
            ApiException: any other retrieval failure
        """
        try:
            secret = self.core_api.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                logger.info(f"Secret {name} not found in {namespace}")
                raise SecretWaitingError(name, delay=timeout) from e
            raise

        data = secret.data or {}
        missing = [key for key in required_keys if key not in data]
        if missing:
            logger.info(f"Secret {name} in {namespace} is missing keys {missing}")
            raise SecretWaitingError(name, missing_keys=missing, delay=timeout)

        return secret
