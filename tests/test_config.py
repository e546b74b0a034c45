from nodeset_operator.config import (
    FRR_DEFAULT_IMAGE,
    IMAGE_SETTINGS,
    ImageDefaults,
    OperatorConfig,
)


def test_defaults_without_environment():
    config = OperatorConfig.from_env({})

    assert config.reconcile_workers == 2
    assert config.secret_verify_timeout == 5.0
    assert config.identity_requeue_delay == 2.0
    assert config.watch_namespace is None
    assert config.registry_viewer_role == "registry-viewer"
    assert config.images.frr == FRR_DEFAULT_IMAGE


def test_environment_overrides():
    config = OperatorConfig.from_env(
        {
            "RECONCILE_WORKERS": "4",
            "SECRET_VERIFY_TIMEOUT": "30",
            "WATCH_NAMESPACE": "openstack",
            "RELATED_IMAGE_EDPM_FRR_IMAGE_URL_DEFAULT": "registry.local/frr:1",
        }
    )

    assert config.reconcile_workers == 4
    assert config.secret_verify_timeout == 30.0
    assert config.watch_namespace == "openstack"
    assert config.images.frr == "registry.local/frr:1"
    assert config.images.iscsid == ImageDefaults().iscsid


def test_empty_override_falls_back_to_default():
    images = ImageDefaults.from_env({"RELATED_IMAGE_EDPM_FRR_IMAGE_URL_DEFAULT": ""})
    assert images.frr == FRR_DEFAULT_IMAGE


def test_ansible_vars_cover_every_image():
    ansible_vars = ImageDefaults().ansible_vars()

    assert len(ansible_vars) == len(IMAGE_SETTINGS)
    assert ansible_vars["edpm_frr_image"] == FRR_DEFAULT_IMAGE
    assert all(name.startswith("edpm_") for name in ansible_vars)
