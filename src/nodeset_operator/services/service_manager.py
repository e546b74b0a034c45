""" Validation of the data plane services a node set declares.
"""

import logging
from collections import Counter

import kubernetes
from kubernetes.client.exceptions import ApiException
from pydantic import ValidationError

from nodeset_operator.crd.registry import api_coordinates
from nodeset_operator.errors import ServiceValidationError
from nodeset_operator.models.deployment import DataPlaneServiceSpec

logger = logging.getLogger(__name__)


class ServiceEnsurer:
    """Checks that every declared OpenStackDataPlaneService exists and is usable."""

    def __init__(self, custom_api=None):
        self.custom_api = custom_api or kubernetes.client.CustomObjectsApi()

    def ensure(self, namespace, services):
        """Validate the declared services.

        Args:
            namespace: Namespace of the node set
            services: Ordered list of service names

        Raises:
            ServiceValidationError: a service is duplicated, missing or malformed
        """
        duplicates = sorted(name for name, count in Counter(services).items() if count > 1)
        if duplicates:
            raise ServiceValidationError(f"duplicate services declared: {duplicates}")

        group, version, plural = api_coordinates(DataPlaneServiceSpec)
        for service_name in services:
            try:
                service = self.custom_api.get_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    name=service_name,
                )
            except ApiException as e:
                if e.status == 404:
                    raise ServiceValidationError(
                        f"service {service_name} not found in {namespace}"
                    ) from e
                raise

            try:
                spec = DataPlaneServiceSpec.model_validate(service.get("spec") or {})
            except ValidationError as e:
                raise ServiceValidationError(
                    f"service {service_name} is malformed: {e}"
                ) from e

            if not spec.has_work():
                raise ServiceValidationError(
                    f"service {service_name} defines no playbook or role"
                )

        logger.debug(f"Validated {len(services)} services in {namespace}")
