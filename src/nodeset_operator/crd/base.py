"""Base classes for CRD specifications."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict
from datetime import datetime


class CRDMetadata(BaseModel):
    """Standard Kubernetes metadata for CRDs."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    namespace: Optional[str] = None
    uid: Optional[str] = None
    generation: int = 0
    resource_version: Optional[str] = Field(default=None, alias="resourceVersion")
    creation_timestamp: Optional[datetime] = Field(
        default=None, alias="creationTimestamp"
    )
    deletion_timestamp: Optional[datetime] = Field(
        default=None, alias="deletionTimestamp"
    )
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class CRDCondition(BaseModel):
    """Custom Kubernetes condition."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    status: str  # True, False, Unknown
    severity: str = ""  # Error, Warning, Info, or empty when True
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[datetime] = Field(
        default=None, alias="lastTransitionTime"
    )


class CRDStatus(BaseModel):
    """Base class for all CRD status objects."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    observed_generation: Optional[int] = Field(
        default=None, alias="observedGeneration"
    )


class CRDSpec(BaseModel):
    """Base class for all CRD spec objects.

    Unknown fields are kept so that drift hashing and round trips never lose
    data that the API server accepted.
    """

    model_config = ConfigDict(
        populate_by_name=True, extra="allow", validate_assignment=True
    )
