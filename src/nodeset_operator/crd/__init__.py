"""CRD management system for the node set operator."""

from .registry import CRDInfo, CRDRegistry, api_coordinates, crd_info
from .base import CRDSpec, CRDStatus, CRDMetadata, CRDCondition

__all__ = [
    "CRDInfo",
    "CRDRegistry",
    "crd_info",
    "api_coordinates",
    "CRDSpec",
    "CRDStatus",
    "CRDMetadata",
    "CRDCondition",
]
