""" Condition ledger for node set status.

Conditions are kept in insertion order, keyed by type. A condition's
last transition time only moves when its status changes; everything else
(reason, severity, message) may be rewritten freely.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from nodeset_operator.crd.base import CRDCondition

logger = logging.getLogger(__name__)

Condition = CRDCondition

# Statuses
TRUE = "True"
FALSE = "False"
UNKNOWN = "Unknown"

# Severities
SEVERITY_ERROR = "Error"
SEVERITY_WARNING = "Warning"
SEVERITY_INFO = "Info"
SEVERITY_NONE = ""

# Condition types
READY = "Ready"
DEPLOYMENT_READY = "DeploymentReady"
INPUT_READY = "InputReady"
SETUP_READY = "SetupReady"
IP_RESERVATION_READY = "NodeSetIPReservationReady"
DNS_DATA_READY = "NodeSetDNSDataReady"
SERVICE_ACCOUNT_READY = "ServiceAccountReady"
BAREMETAL_PROVISION_READY = "NodeSetBaremetalProvisionReady"
NODESET_DEPLOYMENT_READY = "NodeSetDeploymentReady"

# Reasons
INIT_REASON = "Init"
REQUESTED_REASON = "Requested"
NOT_REQUESTED_REASON = "NotRequested"
ERROR_REASON = "Error"
READY_REASON = "Ready"

# Messages
READY_INIT_MESSAGE = "Setup started"
READY_MESSAGE = "Setup complete"
NODESET_READY_MESSAGE = "NodeSet Ready"
NODESET_ERROR_MESSAGE = "NodeSet error occurred {}"
INPUT_READY_MESSAGE = "Input data complete"
INPUT_READY_WAITING_MESSAGE = "Input data resources missing: {}"
INPUT_READY_ERROR_MESSAGE = "Input data error occurred {}"
SERVICE_ACCOUNT_READY_MESSAGE = "ServiceAccount created"
SERVICE_ACCOUNT_CREATING_MESSAGE = "ServiceAccount creation in progress"
SERVICE_ACCOUNT_ERROR_MESSAGE = "ServiceAccount error occurred {}"
IP_RESERVATION_READY_MESSAGE = "NodeSet IP reservations ready"
IP_RESERVATION_WAITING_MESSAGE = "NodeSet IP reservations not yet ready"
IP_RESERVATION_ERROR_MESSAGE = "NodeSet IP reservation error occurred {}"
DNS_DATA_READY_MESSAGE = "NodeSet DNSData ready"
DNS_DATA_WAITING_MESSAGE = "NodeSet DNSData not yet ready"
DNS_DATA_ERROR_MESSAGE = "NodeSet DNSData error occurred {}"
BAREMETAL_READY_MESSAGE = "NodeSet baremetal provisioning ready"
BAREMETAL_WAITING_MESSAGE = "NodeSet baremetal provisioning in progress"
BAREMETAL_ERROR_MESSAGE = "NodeSet baremetal provisioning error occurred {}"
DEPLOYMENT_READY_MESSAGE = "Deployment completed"
DEPLOYMENT_READY_INIT_MESSAGE = "Deployment not started"
DEPLOYMENT_READY_RUNNING_MESSAGE = "Deployment in progress"
DEPLOYMENT_READY_ERROR_MESSAGE = "Deployment error occurred {}"

# Lower value is more informative when mirroring into Ready.
_SEVERITY_RANK = {
    SEVERITY_ERROR: 0,
    SEVERITY_WARNING: 1,
    SEVERITY_INFO: 2,
    SEVERITY_NONE: 3,
}


def utcnow():
    return datetime.now(timezone.utc)


def _format(message, args):
    return message.format(*args) if args else message


class ConditionSet:
    """Ordered collection of conditions with unique types."""

    def __init__(
        self,
        conditions: Optional[Iterable[Condition]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._clock = clock
        self._conditions: Dict[str, Condition] = {}
        for cond in conditions or []:
            self._conditions[cond.type] = cond.model_copy()

    @classmethod
    def from_list(cls, items, clock: Callable[[], datetime] = utcnow):
        """Build a set from raw status dicts or Condition objects."""
        conditions = [
            item if isinstance(item, Condition) else Condition.model_validate(item)
            for item in items or []
        ]
        return cls(conditions, clock=clock)

    def __iter__(self):
        return iter(self._conditions.values())

    def __len__(self):
        return len(self._conditions)

    def __contains__(self, cond_type):
        return cond_type in self._conditions

    def copy(self):
        return ConditionSet(self._conditions.values(), clock=self._clock)

    def get(self, cond_type) -> Optional[Condition]:
        return self._conditions.get(cond_type)

    def set(self, cond: Condition):
        """Store a condition, stamping the time only on a status transition."""
        existing = self._conditions.get(cond.type)
        if existing is not None and existing.status == cond.status:
            cond.last_transition_time = existing.last_transition_time
        else:
            cond.last_transition_time = self._clock()
        self._conditions[cond.type] = cond

    def mark_true(self, cond_type, message, *args):
        self.set(
            Condition(
                type=cond_type,
                status=TRUE,
                severity=SEVERITY_NONE,
                reason=READY_REASON,
                message=_format(message, args),
            )
        )

    def mark_false(self, cond_type, reason, severity, message, *args):
        self.set(
            Condition(
                type=cond_type,
                status=FALSE,
                severity=severity,
                reason=reason,
                message=_format(message, args),
            )
        )

    def mark_unknown(self, cond_type, reason, message, *args):
        self.set(
            Condition(
                type=cond_type,
                status=UNKNOWN,
                severity=SEVERITY_NONE,
                reason=reason,
                message=_format(message, args),
            )
        )

    def is_true(self, cond_type):
        cond = self.get(cond_type)
        return cond is not None and cond.status == TRUE

    def is_false(self, cond_type):
        cond = self.get(cond_type)
        return cond is not None and cond.status == FALSE

    def is_unknown(self, cond_type):
        cond = self.get(cond_type)
        return cond is None or cond.status == UNKNOWN

    def all_sub_conditions_true(self):
        """True when every condition except Ready is True."""
        subs = [c for c in self._conditions.values() if c.type != READY]
        return bool(subs) and all(c.status == TRUE for c in subs)

    def mirror(self, target_type) -> Optional[Condition]:
        """Copy the state of the most informative non-Ready condition.

        False outranks Unknown which outranks True. Among False conditions a
        higher severity wins. Ties keep ledger order.
        """
        best = None
        best_rank = None
        for cond in self._conditions.values():
            if cond.type == READY:
                continue
            if cond.status == FALSE:
                rank = (0, _SEVERITY_RANK.get(cond.severity, 3))
            elif cond.status == UNKNOWN:
                rank = (1, 0)
            else:
                rank = (2, 0)
            if best_rank is None or rank < best_rank:
                best, best_rank = cond, rank
        if best is None:
            return None
        return Condition(
            type=target_type,
            status=best.status,
            severity=best.severity,
            reason=best.reason,
            message=best.message,
        )

    def restore_last_transition_times(self, previous: "ConditionSet"):
        """Carry timestamps over from the previous pass when status is unchanged."""
        for cond in self._conditions.values():
            saved = previous.get(cond.type)
            if saved is not None and saved.status == cond.status:
                cond.last_transition_time = saved.last_transition_time

    def to_list(self) -> List[dict]:
        return [
            c.model_dump(by_alias=True, mode="json") for c in self._conditions.values()
        ]


def is_error(cond: Optional[Condition]) -> bool:
    return (
        cond is not None
        and cond.status == FALSE
        and cond.severity == SEVERITY_ERROR
    )


def init_conditions(has_baremetal_hosts, clock: Callable[[], datetime] = utcnow):
    """Return the full well-known condition set, all Unknown.

    The bare-metal provisioning condition is only present when the node set
    declares at least one bare-metal host.
    """
    types = [
        READY,
        DEPLOYMENT_READY,
        INPUT_READY,
        SETUP_READY,
        IP_RESERVATION_READY,
        DNS_DATA_READY,
        SERVICE_ACCOUNT_READY,
    ]
    if has_baremetal_hosts:
        types.append(BAREMETAL_PROVISION_READY)

    conditions = ConditionSet(clock=clock)
    for cond_type in types:
        conditions.mark_unknown(cond_type, INIT_REASON, INIT_REASON)
    return conditions


def derive_ready(conditions: ConditionSet) -> Optional[Condition]:
    """Compute the Ready condition from the sub-conditions.

    Ready is True only when every other condition is True. Otherwise, if
    Ready is still Unknown it mirrors the most informative sub-condition;
    if it was set explicitly it is left alone.
    """
    if conditions.all_sub_conditions_true():
        conditions.mark_true(READY, NODESET_READY_MESSAGE)
    elif conditions.is_unknown(READY):
        mirrored = conditions.mirror(READY)
        if mirrored is not None:
            conditions.set(mirrored)
    return conditions.get(READY)
