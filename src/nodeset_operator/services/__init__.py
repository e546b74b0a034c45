"""Kubernetes-backed collaborators of the node set reconciler."""

from .baremetal_manager import BareMetalProvisioner
from .client import NodeSetStore
from .dns_manager import DNSDataEnsurer, DNSResult
from .identity_manager import IdentityProvisioner
from .inventory_manager import InventoryGenerator
from .ipset_manager import IPSetEnsurer
from .secret_manager import SecretVerifier
from .service_manager import ServiceEnsurer

__all__ = [
    "BareMetalProvisioner",
    "DNSDataEnsurer",
    "DNSResult",
    "IdentityProvisioner",
    "InventoryGenerator",
    "IPSetEnsurer",
    "NodeSetStore",
    "SecretVerifier",
    "ServiceEnsurer",
]
