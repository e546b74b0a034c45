""" ServiceAccount and registry RoleBinding of a node set.
"""

import logging

import kubernetes
from kubernetes.client.exceptions import ApiException

from nodeset_operator.services.client import owned_metadata

logger = logging.getLogger(__name__)


def _object_meta(nodeset):
    meta = owned_metadata(nodeset, nodeset.name)
    return kubernetes.client.V1ObjectMeta(
        name=meta["name"],
        namespace=meta["namespace"],
        labels=meta["labels"],
        owner_references=[
            kubernetes.client.V1OwnerReference(
                api_version=ref["apiVersion"],
                kind=ref["kind"],
                name=ref["name"],
                uid=ref["uid"],
                controller=ref["controller"],
                block_owner_deletion=ref["blockOwnerDeletion"],
            )
            for ref in meta["ownerReferences"]
        ],
    )


def _metadata_matches(existing, desired):
    live_labels = existing.metadata.labels or {}
    if any(live_labels.get(k) != v for k, v in (desired.metadata.labels or {}).items()):
        return False
    live_owners = {ref.uid for ref in existing.metadata.owner_references or []}
    return all(ref.uid in live_owners for ref in desired.metadata.owner_references)


def _binding_matches(existing, desired):
    if not _metadata_matches(existing, desired):
        return False
    if (existing.role_ref.kind, existing.role_ref.name) != (
        desired.role_ref.kind,
        desired.role_ref.name,
    ):
        return False
    live = {(s.kind, s.name, s.namespace) for s in existing.subjects or []}
    return all((s.kind, s.name, s.namespace) in live for s in desired.subjects)


class IdentityProvisioner:
    """Ensures the ServiceAccount and registry viewer RoleBinding of a node set."""

    def __init__(self, core_api=None, rbac_api=None, role_name="registry-viewer"):
        self.core_api = core_api or kubernetes.client.CoreV1Api()
        self.rbac_api = rbac_api or kubernetes.client.RbacAuthorizationV1Api()
        self.role_name = role_name

    def ensure_service_account(self, nodeset):
        """ Create or patch the node set ServiceAccount.

        Returns:
            True when the object was created or changed
        """
        body = kubernetes.client.V1ServiceAccount(metadata=_object_meta(nodeset))
        name, namespace = nodeset.name, nodeset.namespace
        try:
            existing = self.core_api.read_namespaced_service_account(
                name=name, namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                self.core_api.create_namespaced_service_account(
                    namespace=namespace, body=body
                )
                logger.info(f"Created ServiceAccount {name} in {namespace}")
                return True
            raise

        if _metadata_matches(existing, body):
            return False
        self.core_api.patch_namespaced_service_account(
            name=name, namespace=namespace, body=body
        )
        logger.info(f"Patched ServiceAccount {name} in {namespace}")
        return True

    def ensure_role_binding(self, nodeset):
        """ Bind the node set ServiceAccount to the registry viewer ClusterRole.

        Returns:
            True when the object was created or changed
        """
        name, namespace = nodeset.name, nodeset.namespace
        body = kubernetes.client.V1RoleBinding(
            metadata=_object_meta(nodeset),
            role_ref=kubernetes.client.V1RoleRef(
                api_group="rbac.authorization.k8s.io",
                kind="ClusterRole",
                name=self.role_name,
            ),
            subjects=[
                kubernetes.client.RbacV1Subject(
                    kind="ServiceAccount",
                    name=name,
                    namespace=namespace,
                )
            ],
        )

        try:
            existing = self.rbac_api.read_namespaced_role_binding(
                name=name, namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                self.rbac_api.create_namespaced_role_binding(
                    namespace=namespace, body=body
                )
                logger.info(f"Created RoleBinding {name} in {namespace}")
                return True
            raise

        if _binding_matches(existing, body):
            return False
        # roleRef is immutable, so replace rather than patch
        self.rbac_api.replace_namespaced_role_binding(
            name=name, namespace=namespace, body=body
        )
        logger.info(f"Updated RoleBinding {name} in {namespace}")
        return True

    def create_or_patch(self, nodeset):
        """ Ensure both identity objects.

        Returns:
            True while either object was created or changed in this pass
        """
        if self.ensure_service_account(nodeset):
            return True
        return self.ensure_role_binding(nodeset)
