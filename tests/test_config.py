import pytest

from llmcloud_operator.config import OperatorConfig


def test_defaults():
    config = OperatorConfig.from_env({})
    assert config == OperatorConfig()
    assert config.workers == 2
    assert config.field_manager == "llmcloud-operator"
    assert config.image_catalog is None


def test_overrides():
    config = OperatorConfig.from_env(
        {
            "LLMCLOUD_WORKERS": "4",
            "LLMCLOUD_RESYNC_PERIOD": "60",
            "LLMCLOUD_BACKOFF_CAP": "30.5",
            "LLMCLOUD_NAMESPACE_PREFIX": "ws-",
            "LLMCLOUD_IMAGE_CATALOG": "/etc/llmcloud/images.yaml",
            "LLMCLOUD_INSTALL_CRDS": "false",
            "LLMCLOUD_LOG_LEVEL": "debug",
        }
    )
    assert config.workers == 4
    assert config.resync_period == 60.0
    assert config.backoff_cap == 30.5
    assert config.namespace_prefix == "ws-"
    assert config.image_catalog == "/etc/llmcloud/images.yaml"
    assert config.install_crds is False
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"LLMCLOUD_WORKERS": "many"},
        {"LLMCLOUD_WORKERS": "0"},
        {"LLMCLOUD_BACKOFF_BASE": "-1"},
        {"LLMCLOUD_RESYNC_PERIOD": "0"},
        {"LLMCLOUD_INSTALL_CRDS": "maybe"},
    ],
)
def test_invalid_values_raise(env):
    with pytest.raises(ValueError):
        OperatorConfig.from_env(env)

