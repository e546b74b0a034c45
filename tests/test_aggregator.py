from conftest import NAMESPACE, NODESET, FakeStore, deployment_body

from nodeset_operator.aggregator import DEPLOYMENT_ERROR_MESSAGE, DeploymentStatusAggregator
from nodeset_operator.models.nodeset import NodeSetStatus

T1 = "2024-05-01T10:00:00Z"
T2 = "2024-05-01T11:00:00Z"
T3 = "2024-05-01T12:00:00Z"


def evaluate(*deployments):
    store = FakeStore(deployments=list(deployments))
    return DeploymentStatusAggregator(store).evaluate(NAMESPACE, NODESET)


def test_no_deployments():
    check = evaluate()
    assert not check.exists
    assert not check.ready
    assert check.error is None
    assert check.deployed_config_hash is None


def test_merge_order_follows_ready_transition_time():
    # listed out of order on purpose
    d3 = deployment_body(
        "d3",
        deployed=True,
        ready_status="True",
        transition=T3,
        nodeset_hashes={NODESET: "h3"},
        config_map_hashes={"cm": "c3"},
    )
    d1 = deployment_body(
        "d1",
        deployed=True,
        ready_status="True",
        transition=T1,
        nodeset_hashes={NODESET: "h1"},
        config_map_hashes={"cm": "c1", "only-d1": "x"},
        secret_hashes={"s": "s1"},
    )
    d2 = deployment_body(
        "d2",
        deployed=True,
        ready_status="True",
        transition=T2,
        nodeset_hashes={NODESET: "h2"},
        config_map_hashes={"cm": "c2"},
        secret_hashes={"s": "s2"},
    )

    check = evaluate(d3, d1, d2)

    assert check.exists and check.ready
    assert check.deployed_config_hash == "h3"
    assert check.config_map_hashes == {"cm": "c3", "only-d1": "x"}
    assert check.secret_hashes == {"s": "s2"}
    assert set(check.statuses) == {"d1", "d2", "d3"}


def test_latest_incomplete_deployment_clears_ready():
    done = deployment_body(
        "done", deployed=True, ready_status="True", transition=T1, nodeset_hashes={NODESET: "h1"}
    )
    running = deployment_body("running")

    check = evaluate(running, done)

    assert check.exists
    assert not check.ready
    assert check.deployed_config_hash == "h1"


def test_completion_from_nodeset_snapshot():
    snapshot = {
        NODESET: [
            {
                "type": "NodeSetDeploymentReady",
                "status": "True",
                "reason": "Ready",
                "lastTransitionTime": T2,
            }
        ]
    }
    deployment = deployment_body(
        "partial",
        ready_status="False",
        ready_severity="Info",
        transition=T2,
        nodeset_conditions=snapshot,
        nodeset_hashes={NODESET: "h2"},
    )

    check = evaluate(deployment)

    assert check.ready
    assert check.deployed_config_hash == "h2"
    assert check.statuses["partial"][0].type == "NodeSetDeploymentReady"


def test_ignores_deleting_and_unrelated_deployments():
    deleting = deployment_body("gone", deployed=True, ready_status="True", transition=T1, deleting=True)
    other = deployment_body("other", nodesets=("another-nodeset",), deployed=True)

    check = evaluate(deleting, other)

    assert not check.exists
    assert check.statuses == {}


def test_error_reported_and_cleared_by_later_deployment():
    failed = deployment_body("failed", ready_status="False", ready_severity="Error", transition=T1)
    check = evaluate(failed)
    assert check.error == DEPLOYMENT_ERROR_MESSAGE
    assert check.failed_deployments == ["failed"]

    later = deployment_body("later", deployed=True, ready_status="True", transition=T2)
    check = evaluate(later, failed)
    assert check.error is None
    assert check.ready


def test_deployments_without_ready_condition_sort_last():
    no_ready = deployment_body("no-ready", created="2024-05-01T08:00:00Z")
    with_ready = deployment_body(
        "with-ready", deployed=True, ready_status="True", transition=T3, nodeset_hashes={NODESET: "h"}
    )

    check = evaluate(no_ready, with_ready)

    assert not check.ready
    assert list(check.statuses) == ["with-ready", "no-ready"]


def test_merge_into_status():
    status = NodeSetStatus(
        configMapHashes={"kept": "k", "cm": "old"},
        deployedConfigHash="previous",
    )
    done = deployment_body(
        "d1",
        deployed=True,
        ready_status="True",
        transition=T1,
        config_map_hashes={"cm": "new"},
        nodeset_hashes={NODESET: "h1"},
    )

    evaluate(done).merge_into(status)

    assert status.config_map_hashes == {"kept": "k", "cm": "new"}
    assert status.deployed_config_hash == "h1"
    assert "d1" in status.deployment_statuses


def test_deployed_hash_unchanged_without_completion():
    status = NodeSetStatus(deployedConfigHash="previous")
    evaluate(deployment_body("running")).merge_into(status)
    assert status.deployed_config_hash == "previous"
