""" Drift detection for node sets.

Only the node template and the per-node overrides take part in the hash.
Tags, environment overrides and the other spec fields can change without
forcing a new ansible execution.
"""

import hashlib
import json

from nodeset_operator.models.nodeset import NodeSetSpec


def hashed_fields(spec: NodeSetSpec) -> dict:
    """Return the subset of the spec that is hashed."""
    return {
        "nodeTemplate": spec.node_template.model_dump(by_alias=True, mode="json"),
        "nodes": {
            name: node.model_dump(by_alias=True, mode="json")
            for name, node in spec.nodes.items()
        },
    }


def config_hash(spec: NodeSetSpec) -> str:
    """Canonical SHA-256 hex digest of the hashed spec subset."""
    canonical = json.dumps(hashed_fields(spec), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()
