"""Tests for reading the stack config."""

import pytest

import stack_config
from topology import InvalidConfigError


class FakeConfig:
    """the subset of `pulumi.Config` that stack_config reads"""

    def __init__(self, values: dict):
        self.values = values

    def require_object(self, key):
        if key not in self.values:
            raise KeyError(key)
        return self.values[key]

    def get_object(self, key):
        return self.values.get(key)

    def get(self, key):
        return self.values.get(key)


NETWORK = {"name": "dev", "address_block": "10.0.0.0/16"}


def test_load_full_config():
    config = FakeConfig(
        {
            "network": NETWORK,
            "subnets": {
                "public-a": {
                    "address_block": "10.0.1.0/24",
                    "availability_zone": "us-east-1a",
                    "is_public": True,
                },
                "private-a": {
                    "address_block": "10.0.11.0/24",
                    "availability_zone": "us-east-1a",
                },
            },
            "tags": {"Environment": "dev"},
            "log_level": "debug",
        }
    )

    stack = stack_config.load(config)

    assert stack.network.name == "dev"
    assert stack.network.address_block == "10.0.0.0/16"
    assert stack.network.tags == {"Environment": "dev"}
    assert {key: spec.model_dump() for key, spec in stack.subnets.items()} == {
        "public-a": {
            "address_block": "10.0.1.0/24",
            "availability_zone": "us-east-1a",
            "is_public": True,
            "tags": {},
        },
        "private-a": {
            "address_block": "10.0.11.0/24",
            "availability_zone": "us-east-1a",
            "is_public": False,
            "tags": {},
        },
    }
    assert stack.log_level == "DEBUG"


def test_load_defaults():
    stack = stack_config.load(FakeConfig({"network": NETWORK}))

    assert stack.subnets == {}
    assert stack.network.tags == {}
    assert stack.log_level == stack_config.DEFAULT_LOG_LEVEL


def test_load_malformed_subnet():
    config = FakeConfig(
        {
            "network": NETWORK,
            "subnets": {"web": {"address_block": "10.0.1.0/24"}},
        }
    )
    with pytest.raises(InvalidConfigError) as exc:
        stack_config.load(config)
    assert exc.value.field == "subnets.web.availability_zone"


@pytest.mark.parametrize("level", ["verbose", "TRACE", "10"])
def test_load_unknown_log_level(level):
    with pytest.raises(InvalidConfigError) as exc:
        stack_config.load(FakeConfig({"network": NETWORK, "log_level": level}))
    assert exc.value.field == "log_level"
    assert exc.value.value == level


def test_load_log_level_is_case_insensitive():
    stack = stack_config.load(FakeConfig({"network": NETWORK, "log_level": "warning"}))
    assert stack.log_level == "WARNING"
