import pytest
from conftest import nodeset_body

from nodeset_operator import conditions as cond
from nodeset_operator.conditions import ConditionSet, init_conditions
from nodeset_operator.errors import (
    InputInvalidError,
    InventoryError,
    SecretWaitingError,
    ServiceValidationError,
    WaitingError,
)
from nodeset_operator.models.nodeset import NodeSet


def make_nodeset(**spec_overrides):
    body = nodeset_body()
    body["spec"].update(spec_overrides)
    return NodeSet.model_validate(body)


def run(orchestrator, nodeset, clock, previous=None, fast_path=False):
    conditions = init_conditions(bool(nodeset.spec.baremetal_hosts()), clock=clock)
    previous = previous if previous is not None else ConditionSet()
    try:
        return conditions, orchestrator.run(nodeset, conditions, previous, fast_path)
    except Exception as e:
        e.conditions = conditions
        raise


def test_all_stages_complete(orchestrator, collaborators, clock):
    nodeset = make_nodeset()

    conditions, result = run(orchestrator, nodeset, clock)

    for cond_type in (
        cond.SETUP_READY,
        cond.IP_RESERVATION_READY,
        cond.DNS_DATA_READY,
        cond.INPUT_READY,
        cond.SERVICE_ACCOUNT_READY,
    ):
        assert conditions.is_true(cond_type), cond_type
    assert result.inventory_secret == "dataplanenodeset-edpm-compute"
    assert collaborators.baremetal.calls == 0
    assert nodeset.status.ctlplane_search_domain == "ctlplane.example.com"
    assert nodeset.status.dns_cluster_addresses == ["172.30.0.10"]
    assert nodeset.status.all_ips == {"compute-0": {"ctlplane": "192.168.122.100"}}


def test_service_failure_stops_before_ipsets(orchestrator, collaborators, clock):
    collaborators.services.error = ServiceValidationError("service nova not found")

    with pytest.raises(ServiceValidationError) as excinfo:
        run(orchestrator, make_nodeset(), clock)

    setup = excinfo.value.conditions.get(cond.SETUP_READY)
    assert (setup.status, setup.severity) == ("False", "Error")
    assert collaborators.ipsets.calls == 0


def test_ipsets_not_ready_waits(orchestrator, collaborators, clock):
    collaborators.ipsets.ready = False

    with pytest.raises(WaitingError) as excinfo:
        run(orchestrator, make_nodeset(), clock)

    ip = excinfo.value.conditions.get(cond.IP_RESERVATION_READY)
    assert (ip.status, ip.severity, ip.reason) == ("False", "Info", "Requested")
    assert excinfo.value.delay is None
    assert collaborators.dns.calls == 0


def test_ipset_error_is_recorded(orchestrator, collaborators, clock):
    collaborators.ipsets.error = RuntimeError("api down")

    with pytest.raises(RuntimeError) as excinfo:
        run(orchestrator, make_nodeset(), clock)

    ip = excinfo.value.conditions.get(cond.IP_RESERVATION_READY)
    assert (ip.status, ip.severity) == ("False", "Error")
    assert "api down" in ip.message


def test_dns_not_ready_waits(orchestrator, collaborators, clock):
    collaborators.dns.result.ready = False

    with pytest.raises(WaitingError) as excinfo:
        run(orchestrator, make_nodeset(), clock)

    assert excinfo.value.conditions.is_false(cond.DNS_DATA_READY)
    assert collaborators.secrets.calls == []


def test_required_ssh_keys_depend_on_provisioning(orchestrator, collaborators, clock):
    run(orchestrator, make_nodeset(), clock)
    run(orchestrator, make_nodeset(preProvisioned=False), clock)

    assert collaborators.secrets.calls[0][2] == ["ssh-privatekey"]
    assert collaborators.secrets.calls[1][2] == ["ssh-privatekey", "authorized_keys"]
    assert collaborators.secrets.calls[0][1] == "dataplane-ansible-ssh-private-key-secret"


def test_missing_secret_waits_then_escalates(orchestrator, collaborators, clock):
    collaborators.secrets.missing = True
    nodeset = make_nodeset()

    with pytest.raises(SecretWaitingError) as first:
        run(orchestrator, nodeset, clock)
    waiting = first.value.conditions.get(cond.INPUT_READY)
    assert (waiting.status, waiting.severity) == ("False", "Info")
    assert waiting.message == "Input data resources missing: secret/dataplane-ansible-ssh-private-key-secret"
    assert first.value.delay == 5.0
    assert collaborators.identity.calls == 0

    clock.advance(3)
    with pytest.raises(SecretWaitingError) as second:
        run(orchestrator, nodeset, clock, previous=first.value.conditions)
    second.value.conditions.restore_last_transition_times(first.value.conditions)

    clock.advance(2)
    with pytest.raises(InputInvalidError) as third:
        run(orchestrator, nodeset, clock, previous=second.value.conditions)
    failed = third.value.conditions.get(cond.INPUT_READY)
    assert (failed.status, failed.severity) == ("False", "Error")


def test_identity_in_progress_requeues(orchestrator, collaborators, clock):
    collaborators.identity.in_progress = True

    with pytest.raises(WaitingError) as excinfo:
        run(orchestrator, make_nodeset(), clock)

    sa = excinfo.value.conditions.get(cond.SERVICE_ACCOUNT_READY)
    assert (sa.status, sa.severity) == ("False", "Info")
    assert excinfo.value.delay == 2.0
    assert collaborators.inventory.calls == 0


def test_baremetal_not_ready_waits(orchestrator, collaborators, clock):
    collaborators.baremetal.ready = False
    nodeset = make_nodeset(
        preProvisioned=False,
        baremetalSetTemplate={"baremetalHosts": {"compute-0": {}}},
    )

    with pytest.raises(WaitingError) as excinfo:
        run(orchestrator, nodeset, clock)

    bm = excinfo.value.conditions.get(cond.BAREMETAL_PROVISION_READY)
    assert (bm.status, bm.severity) == ("False", "Info")
    assert collaborators.inventory.calls == 0


def test_fast_path_skips_provisioning_and_inventory(orchestrator, collaborators, clock):
    nodeset = make_nodeset(
        preProvisioned=False,
        baremetalSetTemplate={"baremetalHosts": {"compute-0": {}}},
    )
    previous = ConditionSet(clock=clock)
    previous.mark_true(cond.BAREMETAL_PROVISION_READY, cond.BAREMETAL_READY_MESSAGE)

    conditions, result = run(orchestrator, nodeset, clock, previous=previous, fast_path=True)

    assert result.fast_path
    assert collaborators.baremetal.calls == 0
    assert collaborators.inventory.calls == 0
    assert conditions.is_true(cond.SETUP_READY)
    assert conditions.is_true(cond.BAREMETAL_PROVISION_READY)


def test_inventory_failure(orchestrator, collaborators, clock):
    collaborators.inventory.error = InventoryError("inventory too large")

    with pytest.raises(InventoryError) as excinfo:
        run(orchestrator, make_nodeset(), clock)

    setup = excinfo.value.conditions.get(cond.SETUP_READY)
    assert (setup.status, setup.severity) == ("False", "Error")
    assert setup.message == "Unable to generate inventory for edpm-compute"
